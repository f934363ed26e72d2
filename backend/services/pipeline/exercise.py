"""
Per-section quiz practice.

Tracks the current question, the chosen option, the outcome of the last
submission and hint visibility. Questions are only read, never modified.
"""
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from core.errors import ValidationError
from core.retry import RetryPolicy
from models.course_models import Question
from models.pipeline_models import ExerciseState, QuizHistory
from services.generation.adapter import Operation

logger = logging.getLogger(__name__)


class SubmitOutcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNANSWERABLE = "unanswerable"


class ExerciseStateMachine:
    """Answer flow for one section: select, submit, hint, advance."""

    def __init__(
        self,
        questions: List[Question],
        history: QuizHistory,
        retry: Optional[RetryPolicy] = None,
        section_content: str = "",
        audience_tags: Optional[List[str]] = None,
        content_source: Optional[Callable[[], str]] = None,
    ):
        self.questions = questions
        self.history = history
        self.retry = retry
        self.section_content = section_content
        self.audience_tags = audience_tags or []
        # Returns the section's current lecture text
        self.content_source = content_source
        self.state = ExerciseState()
        # (question index, lecture text) -> fetched hint
        self.hint_cache: Dict[Tuple[int, str], str] = {}

    @property
    def current_content(self) -> str:
        if self.content_source is not None:
            return self.content_source()
        return self.section_content

    @property
    def current_question(self) -> Optional[Question]:
        if self.is_complete:
            return None
        return self.questions[self.state.current_question_index]

    @property
    def is_complete(self) -> bool:
        return self.state.current_question_index >= len(self.questions)

    def _require_question(self) -> Question:
        question = self.current_question
        if question is None:
            raise ValidationError("all questions in this section are finished")
        return question

    def is_option_disabled(self, option: str) -> bool:
        """Locked after a correct answer; the last wrong pick stays locked too."""
        submitted = self.state.submitted_answer
        if submitted is True:
            return True
        return isinstance(submitted, str) and option == submitted

    @property
    def can_advance(self) -> bool:
        question = self.current_question
        if question is None:
            return False
        return self.state.submitted_answer is True or not question.is_answerable

    def select(self, option: str) -> ExerciseState:
        question = self._require_question()
        if option not in question.options:
            raise ValidationError(f"{option!r} is not an option of this question")
        if self.is_option_disabled(option):
            raise ValidationError(f"{option!r} cannot be selected now")
        self.state.selected_option = option
        return self.state

    def submit(self) -> SubmitOutcome:
        """Evaluate the selected option and append it to the quiz history."""
        question = self._require_question()
        selected = self.state.selected_option
        if selected is None:
            raise ValidationError("select an option first")
        if self.state.submitted_answer is True:
            raise ValidationError("this question is already answered correctly")
        if selected == self.state.submitted_answer:
            raise ValidationError("pick a different option before submitting again")

        if not question.is_answerable:
            logger.warning(
                "Unanswerable question %r: answer %r not in options %r",
                question.question_text,
                question.answer,
                question.options,
            )
            return SubmitOutcome.UNANSWERABLE

        correct = question.is_correct(selected)
        self.history.record(question.question_text, selected, correct)
        if correct:
            self.state.submitted_answer = True
            return SubmitOutcome.CORRECT

        # The wrong choice stays selected so it can be shown as wrong
        self.state.submitted_answer = selected
        return SubmitOutcome.INCORRECT

    async def request_hint(self) -> str:
        """
        Show the hint for the current question.

        Uses the question's own hint when it has one, otherwise fetches one
        per lecture text and reuses it for later requests.
        """
        question = self._require_question()
        index = self.state.current_question_index

        if self.state.hint_visible and self.state.hint_text:
            return self.state.hint_text

        content = self.current_content
        hint = question.hint or self.hint_cache.get((index, content))
        if not hint:
            if self.retry is None:
                raise ValidationError("no hint available for this question")
            hint = await self.retry.run(Operation.HINT_GEN, {
                "question": question.question_text,
                "section_content": content,
                "audience_tags": self.audience_tags,
            })
            self.hint_cache[(index, content)] = hint

        self.state.hint_visible = True
        self.state.hint_text = hint
        return hint

    def advance(self) -> ExerciseState:
        if not self.can_advance:
            raise ValidationError("answer the current question correctly first")
        self.state = ExerciseState(current_question_index=self.state.current_question_index + 1)
        return self.state
