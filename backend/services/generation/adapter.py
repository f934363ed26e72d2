"""
Prompt/response adapter between the course generator and the LLM backend.

Each operation validates its parameters, renders a prompt, calls the backend
once and parses the reply into a typed result. Retrying is the caller's job
(see core.retry).
"""
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from core.config import MAX_CHAT_THREADS, MAX_QUESTIONS, MIN_QUESTIONS, SECTION_TEXT_MAX_CHARS
from core.errors import FormatError, ValidationError
from core.ollama_client import OllamaClient
from core.prompt_manager import PromptManager, describe_audience
from models.course_models import Question, QuestionType
from services.generation.parsers import (
    empty_slots,
    extract_url,
    merge_titles,
    parse_outline,
    parse_questions,
    require_text,
)
from services.generation.video_search import YouTubeSearch

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    OUTLINE = "outline"
    SECTION_TEXT = "section-text"
    VIDEO_PICK = "video-pick"
    QUIZ_GEN = "quiz-gen"
    HINT_GEN = "hint-gen"
    ESSAY_GRADE = "essay-grade"
    CHAT_TURN = "chat-turn"


REQUIRED_PARAMS = {
    Operation.OUTLINE: ("topic", "section_count"),
    Operation.SECTION_TEXT: ("section_title", "course_title"),
    Operation.VIDEO_PICK: ("section_title", "section_content"),
    Operation.QUIZ_GEN: ("section_title", "section_content"),
    Operation.HINT_GEN: ("question", "section_content"),
    Operation.ESSAY_GRADE: ("section_title", "section_content", "user_text"),
    Operation.CHAT_TURN: ("all_content", "question"),
}


@dataclass
class ChatReply:
    answer: str
    thread_id: str


def _check_required(operation: Operation, params: Dict[str, Any]) -> None:
    missing = [
        name for name in REQUIRED_PARAMS[operation]
        if params.get(name) is None or (isinstance(params.get(name), str) and not params[name].strip())
    ]
    if missing:
        raise ValidationError(
            f"{operation.value}: missing required parameter(s): {', '.join(missing)}"
        )


class GenerationAdapter:
    """Maps named generation operations onto LLM calls."""

    def __init__(
        self,
        client: OllamaClient,
        prompts: Optional[PromptManager] = None,
        video_search: Optional[YouTubeSearch] = None,
        max_threads: int = MAX_CHAT_THREADS,
    ):
        self.client = client
        self.prompts = prompts or PromptManager()
        self.video_search = video_search
        # thread_id -> chat messages, least recently used first
        self.threads: Dict[str, List[Dict[str, str]]] = OrderedDict()
        self.max_threads = max_threads

        self._handlers = {
            Operation.OUTLINE: self.generate_outline,
            Operation.SECTION_TEXT: self.generate_section_text,
            Operation.VIDEO_PICK: self.pick_video,
            Operation.QUIZ_GEN: self.generate_questions,
            Operation.HINT_GEN: self.generate_hint,
            Operation.ESSAY_GRADE: self.grade_essay,
            Operation.CHAT_TURN: self.chat_turn,
        }

    async def call(self, operation: Any, params: Dict[str, Any], attempt: int = 0) -> Any:
        """Run one operation; ``attempt`` selects the fallback model on repeats."""
        try:
            operation = Operation(operation)
        except ValueError:
            raise ValidationError(f"unknown operation: {operation}")
        _check_required(operation, params)
        model = self.client.model_for_attempt(attempt)
        return await self._handlers[operation](params, model=model)

    async def generate_outline(self, params: Dict[str, Any], model: Optional[str] = None) -> List[str]:
        """
        Chapter titles for a course.

        With partially filled ``custom_titles`` only the empty slots are
        generated and spliced back in place. Filled slots are kept verbatim.
        """
        section_count = int(params["section_count"])
        custom_titles = [str(t or "").strip() for t in params.get("custom_titles") or []]
        if custom_titles and len(custom_titles) != section_count:
            raise ValidationError(
                f"outline: {len(custom_titles)} custom titles given for {section_count} sections"
            )
        if not custom_titles:
            custom_titles = [""] * section_count

        slots = empty_slots(custom_titles)
        if not slots:
            return custom_titles

        known = [f"Chapter {i + 1}: {t}" for i, t in enumerate(custom_titles) if t]
        existing = "Existing chapters:\n" + "\n".join(known) + "\n" if known else ""
        prompt = self.prompts.render(
            "outline",
            topic=params["topic"],
            audience=describe_audience(params.get("audience_tags")),
            count=len(slots),
            existing_titles=existing,
        )
        response = await self.client.generate(prompt, model=model)
        generated = parse_outline(response, len(slots))
        return merge_titles(custom_titles, generated)

    async def generate_section_text(self, params: Dict[str, Any], model: Optional[str] = None) -> str:
        prompt = self.prompts.render(
            "section_text",
            section_title=params["section_title"],
            course_title=params["course_title"],
            audience=describe_audience(params.get("audience_tags")),
            max_chars=SECTION_TEXT_MAX_CHARS,
        )
        response = await self.client.generate(prompt, model=model)
        return require_text(response, "section content")

    async def pick_video(self, params: Dict[str, Any], model: Optional[str] = None) -> str:
        audience = describe_audience(params.get("audience_tags"))

        if self.video_search:
            url = await self.video_search.find_video(params["section_title"], audience)
            if url:
                return url
            logger.info("No YouTube match for %r, asking the model", params["section_title"])

        prompt = self.prompts.render(
            "video_pick",
            section_title=params["section_title"],
            section_content=params["section_content"],
            audience=audience,
        )
        response = await self.client.generate(prompt, model=model)
        url = extract_url(response)
        if not url:
            raise FormatError("video recommendation contains no URL")
        return url

    async def generate_questions(self, params: Dict[str, Any], model: Optional[str] = None) -> List[Question]:
        num_questions = params.get("num_questions", 2)
        if not isinstance(num_questions, int) or not MIN_QUESTIONS <= num_questions <= MAX_QUESTIONS:
            raise ValidationError(
                f"quiz-gen: num_questions must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}"
            )

        types_param = params.get("question_types") or ""
        types = [t.strip() for t in str(types_param).split(",") if t.strip()]
        if not types:
            raise ValidationError("select at least one question type")
        try:
            types = [QuestionType(t) for t in types]
        except ValueError:
            raise ValidationError(f"quiz-gen: unknown question type in {types_param!r}")

        labels = {
            QuestionType.MULTIPLE_CHOICE: "multiple choice",
            QuestionType.TRUE_FALSE: "true/false",
        }
        prompt = self.prompts.render(
            "quiz_gen",
            section_title=params["section_title"],
            section_content=params["section_content"],
            audience=describe_audience(params.get("audience_tags")),
            question_types=", ".join(labels[t] for t in types),
            num_questions=num_questions,
        )
        response = await self.client.generate(prompt, model=model)
        return parse_questions(response, num_questions)

    async def generate_hint(self, params: Dict[str, Any], model: Optional[str] = None) -> str:
        prompt = self.prompts.render(
            "hint_gen",
            question=params["question"],
            section_content=params["section_content"],
            audience=describe_audience(params.get("audience_tags")),
        )
        response = await self.client.generate(prompt, model=model)
        return require_text(response, "hint")

    async def grade_essay(self, params: Dict[str, Any], model: Optional[str] = None) -> str:
        prompt = self.prompts.render(
            "essay_grade",
            section_title=params["section_title"],
            section_content=params["section_content"],
            user_text=params["user_text"],
        )
        response = await self.client.generate(prompt, model=model)
        return require_text(response, "feedback")

    async def chat_turn(self, params: Dict[str, Any], model: Optional[str] = None) -> ChatReply:
        """
        One tutor turn. Without ``thread_id`` a new conversation is started,
        seeded with the whole course content.
        """
        thread_id = params.get("thread_id")
        if thread_id:
            if thread_id not in self.threads:
                raise ValidationError(f"unknown chat thread: {thread_id}")
            history = list(self.threads[thread_id])
        else:
            system = self.prompts.render(
                "chat_system",
                all_content=params["all_content"],
                audience=describe_audience(params.get("audience_tags")),
            )
            history = [{"role": "system", "content": system}]

        user_message = {"role": "user", "content": params["question"]}
        answer = await self.client.chat(history + [user_message], model=model)
        answer = require_text(answer, "tutor answer")

        # Only a completed turn is kept, so a failed turn can be retried as is
        thread_id = thread_id or f"thread_{uuid.uuid4().hex[:12]}"
        self.threads[thread_id] = history + [user_message, {"role": "assistant", "content": answer}]
        self.threads.move_to_end(thread_id)
        while len(self.threads) > self.max_threads:
            dropped, _ = self.threads.popitem(last=False)
            logger.info("Dropped chat thread %s", dropped)
        return ChatReply(answer=answer, thread_id=thread_id)

    def drop_thread(self, thread_id: Optional[str]) -> None:
        """Forget a conversation; unknown ids are ignored."""
        if thread_id:
            self.threads.pop(thread_id, None)
