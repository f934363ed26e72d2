"""
Generation pipeline: outline first, then every configured stage of every
section, section by section.

Stage failures stay on the section that produced them and never stop the
run; only an outline failure does. Calls run one at a time.
"""
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from core.errors import GenerationError, PipelineBusy, PrerequisiteMissing, ValidationError
from core.retry import RetryPolicy
from models.course_models import CONTENT_DEPENDENT_STAGES, Stage
from models.pipeline_models import PipelineConfig, PipelineRun, PipelineStatus, RUNNING_STATUSES
from services.generation.adapter import Operation
from services.pipeline.reducer import (
    PREREQUISITE_MESSAGE,
    OutlineCompleted,
    OutlineFailed,
    RetryStarted,
    RunFinished,
    RunRejected,
    RunResumed,
    RunStarted,
    StageFailed,
    StageStarted,
    StageSucceeded,
    apply,
)

logger = logging.getLogger(__name__)

STAGE_OPERATIONS = {
    Stage.LECTURE: Operation.SECTION_TEXT,
    Stage.VIDEO: Operation.VIDEO_PICK,
    Stage.QUIZ: Operation.QUIZ_GEN,
}

Listener = Callable[[PipelineRun], Union[None, Awaitable[None]]]


class GenerationPipeline:
    """Drives one PipelineRun through its fixed stage sequence."""

    def __init__(self, retry: RetryPolicy, run: Optional[PipelineRun] = None):
        self.retry = retry
        self.run = run or PipelineRun()
        self.is_generating = False
        self._listeners: List[Listener] = []
        self._section_locks: Dict[int, asyncio.Lock] = {}

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener(run)`` after every state change."""
        self._listeners.append(listener)

    async def _dispatch(self, event: Any) -> None:
        self.run = apply(event, self.run)
        for listener in self._listeners:
            result = listener(self.run)
            if inspect.isawaitable(result):
                await result

    def _lock_for(self, index: int) -> asyncio.Lock:
        if index not in self._section_locks:
            self._section_locks[index] = asyncio.Lock()
        return self._section_locks[index]

    def restore(self, run: PipelineRun) -> None:
        """Replace the current state, e.g. after an import."""
        if self.is_generating:
            raise PipelineBusy("a course is already being generated")
        self.run = run
        self._section_locks = {}

    async def start(self, config: PipelineConfig) -> PipelineRun:
        """Run a complete generation for ``config`` and return the final state."""
        if self.is_generating:
            raise PipelineBusy("a course is already being generated")

        self.is_generating = True
        try:
            message = config.validation_error()
            if message:
                await self._dispatch(RunRejected(config, message))
                return self.run

            await self._dispatch(RunStarted(config))
            self._section_locks = {}

            try:
                titles = await self.retry.run(Operation.OUTLINE, {
                    "topic": config.topic,
                    "section_count": config.section_count,
                    "audience_tags": config.audience_tags,
                    "custom_titles": config.custom_titles,
                })
            except GenerationError as e:
                logger.error("Outline generation failed for %r: %s", config.topic, e)
                await self._dispatch(OutlineFailed(e.message))
                return self.run

            await self._dispatch(OutlineCompleted(list(titles)))
            await self._run_pending()
            await self._dispatch(RunFinished())
            return self.run
        finally:
            self.is_generating = False

    async def resume(self) -> PipelineRun:
        """Continue the steps an imported run never attempted."""
        if self.is_generating:
            raise PipelineBusy("a course is already being generated")
        if not self.run.sections or self.run.config is None:
            raise ValidationError("there is no outline to resume from")

        self.is_generating = True
        try:
            await self._dispatch(RunResumed())
            await self._run_pending()
            await self._dispatch(RunFinished())
            return self.run
        finally:
            self.is_generating = False

    def pending_steps(self) -> List[Tuple[int, Stage]]:
        """Unattempted (section, stage) pairs in section-major order."""
        if self.run.config is None:
            return []
        return [
            (index, stage)
            for index in range(len(self.run.sections))
            for stage in self.run.config.stage_order
            if not self.run.was_attempted(index, stage)
        ]

    async def _run_pending(self) -> None:
        for index, stage in self.pending_steps():
            async with self._lock_for(index):
                await self._run_step(index, stage)

    def _stage_params(self, index: int, stage: Stage) -> Dict[str, Any]:
        config = self.run.config
        section = self.run.sections[index]
        params = {
            "section_title": section.title,
            "audience_tags": config.audience_tags,
        }
        if stage == Stage.LECTURE:
            params["course_title"] = config.topic
        else:
            params["section_content"] = section.content
        if stage == Stage.QUIZ:
            params["question_types"] = config.question_types_param
            params["num_questions"] = config.questions_per_section
        return params

    def _missing_prerequisite(self, index: int, stage: Stage) -> bool:
        return stage in CONTENT_DEPENDENT_STAGES and not self.run.sections[index].content.strip()

    async def _run_step(self, index: int, stage: Stage) -> None:
        await self._dispatch(StageStarted(index, stage))

        if stage == Stage.DISCUSSION:
            await self._dispatch(StageSucceeded(index, stage))
            return

        if self._missing_prerequisite(index, stage):
            logger.warning("Section %d %s skipped: no lecture content", index, stage.value)
            await self._dispatch(StageFailed(index, stage, PREREQUISITE_MESSAGE))
            return

        try:
            result = await self.retry.run(STAGE_OPERATIONS[stage], self._stage_params(index, stage))
        except GenerationError as e:
            logger.warning("Section %d %s failed: %s", index, stage.value, e)
            await self._dispatch(StageFailed(index, stage, e.message))
        else:
            await self._dispatch(StageSucceeded(index, stage, result))

    async def retry_stage(self, index: int, stage: Any) -> PipelineRun:
        """
        Re-generate exactly one (section, stage), leaving everything else alone.

        Allowed once the run is done, or mid-run for a step that has already
        been attempted. The progress counter is not touched.
        """
        try:
            stage = Stage(stage)
        except ValueError:
            raise ValidationError(f"unknown stage: {stage}")
        if not 0 <= index < len(self.run.sections):
            raise ValidationError(f"section {index} does not exist")
        if stage not in STAGE_OPERATIONS:
            raise ValidationError(f"{stage.value} has nothing to regenerate")
        if stage not in self.run.config.stage_order:
            raise ValidationError(f"{stage.value} is not part of this course")
        if self.run.status != PipelineStatus.DONE and not self.run.was_attempted(index, stage):
            raise ValidationError(f"section {index} {stage.value} has not been attempted yet")
        if self._missing_prerequisite(index, stage):
            raise PrerequisiteMissing(
                f"section {index} has no lecture content; retry the lecture first"
            )

        lock = self._lock_for(index)
        if lock.locked():
            raise PipelineBusy(f"section {index} is already being generated")

        async with lock:
            await self._dispatch(RetryStarted(index, stage))
            try:
                result = await self.retry.run(STAGE_OPERATIONS[stage], self._stage_params(index, stage))
            except GenerationError as e:
                logger.warning("Retry of section %d %s failed: %s", index, stage.value, e)
                await self._dispatch(StageFailed(index, stage, e.message, counts_step=False))
            else:
                await self._dispatch(StageSucceeded(index, stage, result, counts_step=False))
        return self.run

    @property
    def is_running(self) -> bool:
        return self.run.status in RUNNING_STATUSES
