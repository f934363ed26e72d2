"""
A course session: one generation pipeline plus everything the learner does
with its result (quiz practice, discussion answers, tutor chat).
"""
import logging
import uuid
from typing import Dict, List, Optional

from core.errors import PrerequisiteMissing, ValidationError
from core.retry import RetryPolicy
from models.course_models import Section, Stage
from models.pipeline_models import PipelineRun, QuizHistory, QuizHistoryEntry
from services.generation.adapter import ChatReply, Operation
from services.pipeline.exercise import ExerciseStateMachine
from services.pipeline.generation_pipeline import GenerationPipeline

logger = logging.getLogger(__name__)


class CourseSession:
    """State of one course being generated and studied."""

    def __init__(
        self,
        retry: RetryPolicy,
        session_id: Optional[str] = None,
        run: Optional[PipelineRun] = None,
        quiz_history: Optional[List[QuizHistoryEntry]] = None,
        discussion_answers: Optional[Dict[int, str]] = None,
        discussion_feedback: Optional[Dict[int, str]] = None,
    ):
        self.session_id = session_id or f"run_{uuid.uuid4().hex[:12]}"
        self.retry = retry
        self.pipeline = GenerationPipeline(retry, run)
        self.quiz_history = QuizHistory(quiz_history)
        self.discussion_answers: Dict[int, str] = dict(discussion_answers or {})
        self.discussion_feedback: Dict[int, str] = dict(discussion_feedback or {})
        self.chat_thread_id: Optional[str] = None
        self._exercises: Dict[int, ExerciseStateMachine] = {}

    @property
    def run(self) -> PipelineRun:
        return self.pipeline.run

    def _section(self, index: int) -> Section:
        if not 0 <= index < len(self.run.sections):
            raise ValidationError(f"section {index} does not exist")
        return self.run.sections[index]

    def exercise(self, index: int) -> ExerciseStateMachine:
        """Exercise state for a section, rebuilt when its questions change."""
        section = self._section(index)
        if not section.questions:
            raise ValidationError(f"section {index} has no questions yet")

        machine = self._exercises.get(index)
        if machine is None or machine.questions != section.questions:
            machine = ExerciseStateMachine(
                questions=section.questions,
                history=self.quiz_history,
                retry=self.retry,
                section_content=section.content,
                audience_tags=self.run.config.audience_tags if self.run.config else [],
                content_source=lambda: self._section(index).content,
            )
            self._exercises[index] = machine
        return machine

    async def grade_discussion(self, index: int, user_text: str) -> str:
        """Store the learner's discussion answer and return graded feedback."""
        section = self._section(index)
        if self.run.config is None or Stage.DISCUSSION not in self.run.config.stage_order:
            raise ValidationError("this course has no discussion")
        if not user_text or not user_text.strip():
            raise ValidationError("write an answer before submitting")
        if not section.content.strip():
            raise PrerequisiteMissing(f"section {index} has no lecture content to discuss")

        self.discussion_answers[index] = user_text
        feedback = await self.retry.run(Operation.ESSAY_GRADE, {
            "section_title": section.title,
            "section_content": section.content,
            "user_text": user_text,
        })
        self.discussion_feedback[index] = feedback
        return feedback

    def all_content(self) -> str:
        return "\n\n".join(
            f"## {section.title}\n{section.content}"
            for section in self.run.sections
            if section.content.strip()
        )

    async def ask_tutor(self, question: str) -> ChatReply:
        """One chat turn about the whole course; the thread continues across calls."""
        content = self.all_content()
        if not content:
            raise PrerequisiteMissing("the course has no content to ask about yet")

        reply = await self.retry.run(Operation.CHAT_TURN, {
            "all_content": content,
            "question": question,
            "thread_id": self.chat_thread_id,
            "audience_tags": self.run.config.audience_tags if self.run.config else [],
        })
        self.chat_thread_id = reply.thread_id
        return reply
