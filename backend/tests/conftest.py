"""
Shared fixtures: a scripted generation adapter and a no-wait retry policy.
"""
import os
import tempfile
from pathlib import Path

# Keep test runs away from the real database and the network check
os.environ.setdefault("DB_PATH", str(Path(tempfile.mkdtemp()) / "test_courses.db"))
os.environ.setdefault("VALIDATE_CONFIG_ON_STARTUP", "false")

import pytest

from core.errors import GenerationError
from core.retry import RetryPolicy
from models.course_models import Question
from services.generation.adapter import ChatReply, Operation
from services.generation.parsers import merge_titles


class FakeAdapter:
    """Answers every operation with canned results and records each call."""

    def __init__(self):
        self.calls = []
        # (operation, section title or None) -> [remaining failures or None for always, error]
        self.failures = {}
        self.outline = None
        # section title -> lecture text to return instead of the default
        self.section_texts = {}
        self.dropped_threads = []

    def fail(self, operation, error: GenerationError, title=None, times=None):
        self.failures[(Operation(operation), title)] = [times, error]

    def calls_for(self, operation, title=None):
        return [
            params for op, params in self.calls
            if op == Operation(operation) and (title is None or params.get("section_title") == title)
        ]

    def _maybe_fail(self, operation, params):
        for key in ((operation, params.get("section_title")), (operation, None)):
            rule = self.failures.get(key)
            if rule is None:
                continue
            times, error = rule
            if times is None:
                raise error
            if times > 0:
                rule[0] = times - 1
                raise error

    async def call(self, operation, params, attempt=0):
        operation = Operation(operation)
        self.calls.append((operation, dict(params)))
        self._maybe_fail(operation, params)

        if operation == Operation.OUTLINE:
            if self.outline is not None:
                return list(self.outline)
            count = params["section_count"]
            titles = params.get("custom_titles") or [""] * count
            generated = [f"Chapter {i + 1}" for i, t in enumerate(titles) if not t]
            return merge_titles(titles, generated)
        if operation == Operation.SECTION_TEXT:
            if params["section_title"] in self.section_texts:
                return self.section_texts[params["section_title"]]
            return f"# {params['section_title']}\n\nNotes about {params['section_title']}."
        if operation == Operation.VIDEO_PICK:
            return "https://www.youtube.com/watch?v=abc123"
        if operation == Operation.QUIZ_GEN:
            return [
                Question(
                    question_text=f"{params['section_title']} Q{n + 1}",
                    options=["A", "B", "C"],
                    answer="A",
                )
                for n in range(params["num_questions"])
            ]
        if operation == Operation.HINT_GEN:
            return f"Hint for {params['question']}"
        if operation == Operation.ESSAY_GRADE:
            return "Clear answer; add an example."
        if operation == Operation.CHAT_TURN:
            return ChatReply(answer="Here is an answer.", thread_id=params.get("thread_id") or "thread_test")
        raise AssertionError(f"unexpected operation {operation}")

    def drop_thread(self, thread_id):
        if thread_id:
            self.dropped_threads.append(thread_id)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def retry_policy(fake_adapter, no_sleep):
    return RetryPolicy(fake_adapter.call, max_attempts=3, base_delay_ms=1000, sleep=no_sleep)
