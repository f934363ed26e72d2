"""
Data models for course sections and quiz questions.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Stage(str, Enum):
    """Per-section content generation step."""
    LECTURE = "lecture"
    VIDEO = "video"
    QUIZ = "quiz"
    DISCUSSION = "discussion"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"


# Stages whose input is the section's lecture text
CONTENT_DEPENDENT_STAGES = (Stage.VIDEO, Stage.QUIZ)

# Stages that can carry a section error record
ERROR_STAGES = (Stage.LECTURE, Stage.VIDEO, Stage.QUIZ)

TRUE_SYNONYMS = {"是", "true", "對"}
FALSE_SYNONYMS = {"否", "false", "錯"}


def normalize_true_false(value: str) -> Optional[bool]:
    """Map a true/false synonym to a bool, or None if it is not one."""
    key = str(value).strip().lower()
    if key in TRUE_SYNONYMS:
        return True
    if key in FALSE_SYNONYMS:
        return False
    return None


@dataclass
class Question:
    """Single quiz question"""
    question_text: str
    options: List[str] = field(default_factory=list)
    answer: str = ""
    hint: Optional[str] = None

    @property
    def is_true_false(self) -> bool:
        """Options are exactly one true synonym and one false synonym."""
        if len(self.options) != 2:
            return False
        values = {normalize_true_false(option) for option in self.options}
        return values == {True, False}

    def resolve_answer(self) -> Optional[str]:
        """Return the option that matches ``answer``, or None if none does."""
        if self.is_true_false:
            expected = normalize_true_false(self.answer)
            if expected is None:
                return None
            for option in self.options:
                if normalize_true_false(option) is expected:
                    return option
            return None
        return self.answer if self.answer in self.options else None

    @property
    def is_answerable(self) -> bool:
        return self.resolve_answer() is not None

    def is_correct(self, selected: str) -> bool:
        """Evaluate a chosen option against the answer."""
        if self.is_true_false:
            expected = normalize_true_false(self.answer)
            return expected is not None and normalize_true_false(selected) is expected
        return selected == self.answer


@dataclass
class SectionError:
    """Most recent failed attempt at one stage of a section"""
    stage: Stage
    message: str
    retrying: bool = False


@dataclass
class Section:
    """Course section, filled in stage by stage"""
    title: str
    content: str = ""  # Markdown formatted
    video_url: str = ""
    questions: List[Question] = field(default_factory=list)
    error: Optional[SectionError] = None
