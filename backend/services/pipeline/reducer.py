"""
State transitions of a generation run.

Every change to a PipelineRun goes through ``apply(event, run)``, which
returns a new run and leaves the given one untouched.
"""
import copy
from dataclasses import dataclass
from typing import Any, List, Optional

from models.course_models import Section, SectionError, Stage
from models.pipeline_models import PipelineConfig, PipelineRun, PipelineStatus

PREREQUISITE_MESSAGE = "skipped: prerequisite stage content missing"


@dataclass
class RunStarted:
    config: PipelineConfig


@dataclass
class RunRejected:
    config: PipelineConfig
    message: str


@dataclass
class OutlineCompleted:
    titles: List[str]


@dataclass
class OutlineFailed:
    message: str


@dataclass
class StageStarted:
    index: int
    stage: Stage


@dataclass
class StageSucceeded:
    index: int
    stage: Stage
    result: Any = None
    counts_step: bool = True  # False for manual retries


@dataclass
class StageFailed:
    index: int
    stage: Stage
    message: str
    counts_step: bool = True


@dataclass
class RetryStarted:
    index: int
    stage: Stage


@dataclass
class RunResumed:
    pass


@dataclass
class RunFinished:
    pass


def _write_result(section: Section, stage: Stage, result: Any) -> None:
    if stage == Stage.LECTURE:
        section.content = result or ""
    elif stage == Stage.VIDEO:
        section.video_url = result or ""
    elif stage == Stage.QUIZ:
        section.questions = list(result or [])
    # discussion produces nothing at generation time


def _consume_step(run: PipelineRun, event: Any) -> None:
    run.attempted.add((event.index, event.stage))
    if event.counts_step:
        run.completed_steps = min(run.total_steps, run.completed_steps + 1)


def apply(event: Any, run: PipelineRun) -> PipelineRun:
    """Return the run that results from ``event``."""
    run = copy.deepcopy(run)

    if isinstance(event, RunStarted):
        return PipelineRun(
            config=event.config,
            status=PipelineStatus.RUNNING_OUTLINE,
            current_stage="outline",
        )

    if isinstance(event, RunRejected):
        return PipelineRun(
            config=event.config,
            status=PipelineStatus.FAILED,
            error=event.message,
        )

    if isinstance(event, OutlineCompleted):
        run.sections = [Section(title=title) for title in event.titles]
        run.total_steps = len(run.sections) * len(run.config.stage_order)
        run.completed_steps = 0
        run.status = PipelineStatus.RUNNING_STAGE
        run.current_stage = None
        return run

    if isinstance(event, OutlineFailed):
        run.sections = []
        run.status = PipelineStatus.FAILED
        run.error = event.message
        run.current_stage = None
        return run

    if isinstance(event, StageStarted):
        run.status = PipelineStatus.RUNNING_STAGE
        run.current_stage = event.stage.value
        run.current_section = event.index
        return run

    if isinstance(event, StageSucceeded):
        section = run.sections[event.index]
        _write_result(section, event.stage, event.result)
        if section.error and section.error.stage == event.stage:
            section.error = None
        elif section.error:
            section.error.retrying = False
        _consume_step(run, event)
        return run

    if isinstance(event, StageFailed):
        section = run.sections[event.index]
        section.error = SectionError(stage=event.stage, message=event.message, retrying=False)
        _consume_step(run, event)
        return run

    if isinstance(event, RetryStarted):
        # Sections hold one error record, possibly from another stage
        section = run.sections[event.index]
        if section.error:
            section.error.retrying = True
        return run

    if isinstance(event, RunResumed):
        run.status = PipelineStatus.RUNNING_STAGE
        run.error = None
        return run

    if isinstance(event, RunFinished):
        run.status = PipelineStatus.DONE
        run.current_stage = None
        run.current_section = None
        return run

    raise TypeError(f"unknown pipeline event: {event!r}")


def replay(events: List[Any], run: Optional[PipelineRun] = None) -> PipelineRun:
    """Fold a sequence of events over ``run`` (a fresh run by default)."""
    run = run or PipelineRun()
    for event in events:
        run = apply(event, run)
    return run
