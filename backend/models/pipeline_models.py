"""
Data models for a generation run, quiz history and exercise progress.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from core.config import (
    MAX_QUESTIONS,
    MAX_SECTIONS,
    MIN_QUESTIONS,
    MIN_SECTIONS,
)
from models.course_models import QuestionType, Section, Stage


class PipelineStatus(str, Enum):
    IDLE = "idle"
    RUNNING_OUTLINE = "running_outline"
    RUNNING_STAGE = "running_stage"
    DONE = "done"
    FAILED = "failed"


RUNNING_STATUSES = (PipelineStatus.RUNNING_OUTLINE, PipelineStatus.RUNNING_STAGE)


def clamp_int(value: Any, low: int, high: int) -> int:
    """
    Clamp to [low, high].

    Non-numeric input and NaN fall back to ``low``; it never becomes zero.
    Infinite input goes to the bound on its side.
    """
    if isinstance(value, int):
        return max(low, min(high, value))
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return low
    if math.isnan(number):
        return low
    if math.isinf(number):
        return high if number > 0 else low
    return max(low, min(high, int(number)))


@dataclass
class PipelineConfig:
    """User choices for one run."""
    topic: str
    section_count: int = MIN_SECTIONS
    audience_tags: List[str] = field(default_factory=list)
    stage_order: List[Stage] = field(default_factory=lambda: [Stage.LECTURE, Stage.VIDEO, Stage.QUIZ])
    question_types: List[QuestionType] = field(default_factory=lambda: [QuestionType.MULTIPLE_CHOICE])
    questions_per_section: int = 2
    custom_titles: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.section_count = clamp_int(self.section_count, MIN_SECTIONS, MAX_SECTIONS)
        self.questions_per_section = clamp_int(self.questions_per_section, MIN_QUESTIONS, MAX_QUESTIONS)
        self.stage_order = [Stage(stage) for stage in self.stage_order]
        # Keep insertion order while dropping duplicate tags/types
        self.audience_tags = list(dict.fromkeys(str(tag) for tag in self.audience_tags))
        self.question_types = list(dict.fromkeys(QuestionType(t) for t in self.question_types))
        titles = [str(t or "").strip() for t in self.custom_titles][: self.section_count]
        self.custom_titles = titles + [""] * (self.section_count - len(titles)) if titles else []

    def validation_error(self) -> Optional[str]:
        """Corrective message for the first invalid choice, or None."""
        if not self.topic or not self.topic.strip():
            return "enter a course topic"
        if not self.stage_order:
            return "select at least one content type"
        if len(set(self.stage_order)) != len(self.stage_order):
            return "each content type can only appear once"
        if Stage.QUIZ in self.stage_order and not self.question_types:
            return "select at least one question type"
        return None

    @property
    def question_types_param(self) -> str:
        return ",".join(t.value for t in self.question_types)


@dataclass
class PipelineRun:
    """Orchestration state of one generation run"""
    config: Optional[PipelineConfig] = None
    sections: List[Section] = field(default_factory=list)
    completed_steps: int = 0
    total_steps: int = 0  # sections x stages, outline excluded
    current_stage: Optional[str] = None  # "outline", a Stage value, or None when idle
    current_section: Optional[int] = None
    status: PipelineStatus = PipelineStatus.IDLE
    error: Optional[str] = None  # run-level failure (validation or outline)
    attempted: Set[Tuple[int, Stage]] = field(default_factory=set)

    @property
    def progress(self) -> float:
        if not self.total_steps:
            return 0.0
        return self.completed_steps / self.total_steps

    def was_attempted(self, index: int, stage: Stage) -> bool:
        return (index, Stage(stage)) in self.attempted


@dataclass
class AnswerRecord:
    user_answer: str
    correct: bool
    timestamp: datetime


@dataclass
class QuizHistoryEntry:
    """All attempts at one question, keyed by its text"""
    question: str
    answers: List[AnswerRecord] = field(default_factory=list)


class QuizHistory:
    """Append-only answer log for a whole run."""

    def __init__(self, entries: Optional[List[QuizHistoryEntry]] = None):
        self.entries: Dict[str, QuizHistoryEntry] = {}
        for entry in entries or []:
            self.entries[entry.question] = entry

    def record(self, question: str, user_answer: str, correct: bool,
               timestamp: Optional[datetime] = None) -> QuizHistoryEntry:
        entry = self.entries.setdefault(question, QuizHistoryEntry(question=question))
        entry.answers.append(AnswerRecord(
            user_answer=user_answer,
            correct=correct,
            timestamp=timestamp or datetime.now(),
        ))
        return entry

    def get(self, question: str) -> Optional[QuizHistoryEntry]:
        return self.entries.get(question)

    def to_list(self) -> List[QuizHistoryEntry]:
        return list(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ExerciseState:
    """Answer progress for one section's questions (not persisted)"""
    current_question_index: int = 0
    selected_option: Optional[str] = None
    # None: not submitted, True: submitted and correct, str: the wrong answer submitted
    submitted_answer: Any = None
    hint_visible: bool = False
    hint_text: Optional[str] = None
