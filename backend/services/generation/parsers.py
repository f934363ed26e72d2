"""
Parsing helpers that turn raw LLM text into typed results.
"""
import json
import re
from typing import Any, List, Optional

from core.errors import FormatError
from models.course_models import Question

# Leading numbering such as "1.", "第1章：", "3、"
NUMBERING_PATTERN = re.compile(r"^\s*(?:[-*•]\s*)?(?:第?\s*\d+\s*[章節.、:：)\]]+\s*)?")
# Lines that are chatter around the list rather than titles
CHATTER_PATTERN = re.compile(r"^(sure|here|以下|希望|這些|章節標題|幫助|主題|標題)", re.IGNORECASE)
BRACKETS_ONLY_PATTERN = re.compile(r"^[\[\]{}\"'`,]+$")
FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
URL_PATTERN = re.compile(r"https?://[^\s\"'<>)\]]+")


def strip_code_fence(text: str) -> str:
    """Return the body of a ```json fenced block, or the text unchanged."""
    match = FENCE_PATTERN.search(text)
    return match.group(1).strip() if match else text.strip()


def clean_title(line: str) -> str:
    title = NUMBERING_PATTERN.sub("", line, count=1).strip()
    return title.strip("\"'`,").strip()


def parse_outline(text: str, count: int) -> List[str]:
    """
    Parse generated chapter titles.

    A JSON array is preferred; otherwise one title per line, with numbering
    and framing chatter dropped. Raises FormatError if fewer than ``count``
    titles can be recovered.
    """
    body = strip_code_fence(text)
    titles: List[str] = []

    array_match = re.search(r"\[.*\]", body, re.DOTALL)
    if array_match:
        try:
            parsed = json.loads(array_match.group(0))
            if isinstance(parsed, list):
                titles = [clean_title(str(t)) for t in parsed]
        except json.JSONDecodeError:
            titles = []

    if not titles:
        for line in body.splitlines():
            title = clean_title(line)
            if not title or CHATTER_PATTERN.match(title) or BRACKETS_ONLY_PATTERN.match(title):
                continue
            titles.append(title)

    titles = [t for t in titles if t]
    if len(titles) < count:
        raise FormatError(f"expected {count} chapter titles, got {len(titles)}")
    return titles[:count]


def merge_titles(custom_titles: List[str], generated: List[str]) -> List[str]:
    """Fill the empty slots of ``custom_titles`` with ``generated``, in order."""
    queue = iter(generated)
    return [title if title else next(queue) for title in custom_titles]


def empty_slots(custom_titles: List[str]) -> List[int]:
    return [i for i, title in enumerate(custom_titles) if not title]


def _question_from_dict(item: Any, position: int) -> Question:
    if not isinstance(item, dict):
        raise FormatError(f"question {position + 1} is not an object")

    text = str(item.get("question_text") or "").strip()
    options = item.get("options")
    if not text:
        raise FormatError(f"question {position + 1} has no question_text")
    if not isinstance(options, list) or len(options) < 2:
        raise FormatError(f"question {position + 1} needs at least two options")

    hint = item.get("hint")
    question = Question(
        question_text=text,
        options=[str(option).strip() for option in options],
        answer=str(item.get("answer") or "").strip(),
        hint=str(hint).strip() if hint else None,
    )
    if not question.is_answerable:
        raise FormatError(
            f"question {position + 1} answer {question.answer!r} matches none of its options"
        )
    return question


def parse_questions(text: str, num_questions: int) -> List[Question]:
    """Parse a JSON array of questions; anything else is a FormatError."""
    body = strip_code_fence(text)
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        array_match = re.search(r"\[.*\]", body, re.DOTALL)
        if not array_match:
            raise FormatError("quiz response is not valid JSON")
        try:
            parsed = json.loads(array_match.group(0))
        except json.JSONDecodeError:
            raise FormatError("quiz response is not valid JSON")

    if not isinstance(parsed, list):
        raise FormatError("quiz response is not a JSON array")

    questions = [_question_from_dict(item, i) for i, item in enumerate(parsed)]
    if len(questions) < num_questions:
        raise FormatError(f"expected {num_questions} questions, got {len(questions)}")
    return questions[:num_questions]


def extract_url(text: str) -> Optional[str]:
    match = URL_PATTERN.search(text)
    return match.group(0).rstrip(".,;") if match else None


def require_text(text: str, what: str) -> str:
    text = (text or "").strip()
    if not text:
        raise FormatError(f"empty {what} returned")
    return text
