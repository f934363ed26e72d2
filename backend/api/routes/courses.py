"""
Course-related API routes: generation runs, practice, saving and loading.
"""
import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from api.dependencies import AppServices, get_services
from api.models.requests import (
    DiscussionRequest,
    ImportRequest,
    RetryStageRequest,
    RunCreateRequest,
    SaveRequest,
    SelectOptionRequest,
    TutorRequest,
)
from api.models.responses import (
    ChatResponse,
    ExerciseStateResponse,
    FeedbackResponse,
    HintResponse,
    QuestionModel,
    QuestionView,
    RunStateResponse,
    SaveResponse,
    SavedCourse,
    SectionErrorModel,
    SectionModel,
    SnapshotResponse,
)
from core.errors import PipelineBusy
from models.pipeline_models import PipelineConfig
from services.pipeline.exercise import ExerciseStateMachine
from services.pipeline.session import CourseSession
from services.pipeline.snapshot import export_snapshot, import_snapshot, session_from_dict, session_to_dict

router = APIRouter()


def run_state(session: CourseSession) -> RunStateResponse:
    run = session.run
    return RunStateResponse(
        run_id=session.session_id,
        topic=run.config.topic if run.config else None,
        status=run.status.value,
        current_stage=run.current_stage,
        current_section=run.current_section,
        completed_steps=run.completed_steps,
        total_steps=run.total_steps,
        progress=run.progress,
        is_generating=session.pipeline.is_generating,
        error=run.error,
        stage_order=[stage.value for stage in run.config.stage_order] if run.config else [],
        sections=[
            SectionModel(
                index=i,
                title=section.title,
                content=section.content,
                video_url=section.video_url,
                questions=[
                    QuestionModel(
                        question_text=q.question_text,
                        options=q.options,
                        answer=q.answer,
                        hint=q.hint,
                    )
                    for q in section.questions
                ],
                error=SectionErrorModel(
                    stage=section.error.stage.value,
                    message=section.error.message,
                    retrying=section.error.retrying,
                ) if section.error else None,
            )
            for i, section in enumerate(run.sections)
        ],
        discussion_answers=session.discussion_answers,
        discussion_feedback=session.discussion_feedback,
    )


def exercise_state(index: int, machine: ExerciseStateMachine,
                   outcome: Optional[str] = None) -> ExerciseStateResponse:
    state = machine.state
    question = machine.current_question
    return ExerciseStateResponse(
        section_index=index,
        current_question_index=state.current_question_index,
        question_count=len(machine.questions),
        question=QuestionView(
            question_text=question.question_text,
            options=question.options,
        ) if question else None,
        selected_option=state.selected_option,
        submitted_answer=state.submitted_answer,
        hint_visible=state.hint_visible,
        hint_text=state.hint_text,
        disabled_options=[o for o in question.options if machine.is_option_disabled(o)] if question else [],
        can_advance=machine.can_advance,
        is_complete=machine.is_complete,
        outcome=outcome,
    )


@router.post("/runs", response_model=RunStateResponse, status_code=202)
async def create_run(
    request: RunCreateRequest,
    background_tasks: BackgroundTasks,
    services: AppServices = Depends(get_services),
):
    """
    Start generating a course. The run continues in the background;
    poll GET /runs/{run_id} for progress.
    """
    config = PipelineConfig(**request.model_dump())
    message = config.validation_error()
    if message:
        raise HTTPException(status_code=400, detail=message)

    session = services.add_session(CourseSession(services.retry))
    background_tasks.add_task(session.pipeline.start, config)
    return run_state(session)


@router.get("/runs/{run_id}", response_model=RunStateResponse)
async def get_run(run_id: str, services: AppServices = Depends(get_services)):
    return run_state(services.get_session(run_id))


@router.delete("/runs/{run_id}", status_code=204)
async def delete_run(run_id: str, services: AppServices = Depends(get_services)):
    """Close a run and forget its tutor conversation. Saved copies are kept."""
    services.remove_session(run_id)


@router.post("/runs/{run_id}/retry", response_model=RunStateResponse)
async def retry_stage(run_id: str, request: RetryStageRequest, services: AppServices = Depends(get_services)):
    """Regenerate one stage of one section."""
    session = services.get_session(run_id)
    await session.pipeline.retry_stage(request.section_index, request.stage)
    return run_state(session)


@router.post("/runs/{run_id}/resume", response_model=RunStateResponse, status_code=202)
async def resume_run(
    run_id: str,
    background_tasks: BackgroundTasks,
    services: AppServices = Depends(get_services),
):
    """Continue an imported run from its first unattempted step."""
    session = services.get_session(run_id)
    if session.pipeline.is_generating:
        raise PipelineBusy("a course is already being generated")
    if not session.run.sections:
        raise HTTPException(status_code=400, detail="there is no outline to resume from")
    background_tasks.add_task(session.pipeline.resume)
    return run_state(session)


@router.get("/runs/{run_id}/export", response_model=SnapshotResponse)
async def export_run(run_id: str, services: AppServices = Depends(get_services)):
    return SnapshotResponse(snapshot=session_to_dict(services.get_session(run_id)))


@router.post("/runs/import", response_model=RunStateResponse)
async def import_run(request: ImportRequest, services: AppServices = Depends(get_services)):
    """Rebuild a run from an exported snapshot without generating anything."""
    session = session_from_dict(
        request.snapshot,
        services.retry,
        session_id=f"run_{uuid.uuid4().hex[:12]}",
    )
    return run_state(services.add_session(session))


@router.post("/runs/{run_id}/save", response_model=SaveResponse)
async def save_run(run_id: str, request: Optional[SaveRequest] = None,
                   services: AppServices = Depends(get_services)):
    session = services.get_session(run_id)
    run = session.run
    if not run.sections:
        raise HTTPException(status_code=400, detail="there is no course to save yet")
    if session.pipeline.is_generating:
        raise PipelineBusy("wait until generation has finished before saving")

    course_id = services.store.save(
        topic=run.config.topic,
        snapshot=export_snapshot(session),
        section_count=len(run.sections),
        course_id=request.course_id if request else None,
    )
    return SaveResponse(course_id=course_id)


@router.get("/saved", response_model=List[SavedCourse])
async def list_saved(services: AppServices = Depends(get_services)):
    return [
        SavedCourse(
            course_id=row["course_id"],
            topic=row["topic"],
            title=row["title"],
            section_count=row["section_count"],
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
        )
        for row in services.store.list_courses()
    ]


@router.get("/saved/{course_id}", response_model=RunStateResponse)
async def load_saved(course_id: str, services: AppServices = Depends(get_services)):
    """Open a saved course as a new run."""
    snapshot = services.store.load(course_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Course not found")
    session = import_snapshot(snapshot, services.retry, session_id=f"run_{uuid.uuid4().hex[:12]}")
    return run_state(services.add_session(session))


@router.get("/runs/{run_id}/sections/{index}/exercise", response_model=ExerciseStateResponse)
async def get_exercise(run_id: str, index: int, services: AppServices = Depends(get_services)):
    machine = services.get_session(run_id).exercise(index)
    return exercise_state(index, machine)


@router.post("/runs/{run_id}/sections/{index}/select", response_model=ExerciseStateResponse)
async def select_option(run_id: str, index: int, request: SelectOptionRequest,
                        services: AppServices = Depends(get_services)):
    machine = services.get_session(run_id).exercise(index)
    machine.select(request.option)
    return exercise_state(index, machine)


@router.post("/runs/{run_id}/sections/{index}/submit", response_model=ExerciseStateResponse)
async def submit_answer(run_id: str, index: int, services: AppServices = Depends(get_services)):
    machine = services.get_session(run_id).exercise(index)
    outcome = machine.submit()
    return exercise_state(index, machine, outcome=outcome.value)


@router.post("/runs/{run_id}/sections/{index}/hint", response_model=HintResponse)
async def request_hint(run_id: str, index: int, services: AppServices = Depends(get_services)):
    machine = services.get_session(run_id).exercise(index)
    hint = await machine.request_hint()
    return HintResponse(hint=hint)


@router.post("/runs/{run_id}/sections/{index}/advance", response_model=ExerciseStateResponse)
async def advance_question(run_id: str, index: int, services: AppServices = Depends(get_services)):
    machine = services.get_session(run_id).exercise(index)
    machine.advance()
    return exercise_state(index, machine)


@router.post("/runs/{run_id}/sections/{index}/discussion", response_model=FeedbackResponse)
async def submit_discussion(run_id: str, index: int, request: DiscussionRequest,
                            services: AppServices = Depends(get_services)):
    session = services.get_session(run_id)
    feedback = await session.grade_discussion(index, request.user_text)
    return FeedbackResponse(feedback=feedback)


@router.post("/runs/{run_id}/chat", response_model=ChatResponse)
async def ask_tutor(run_id: str, request: TutorRequest, services: AppServices = Depends(get_services)):
    reply = await services.get_session(run_id).ask_tutor(request.question)
    return ChatResponse(answer=reply.answer, thread_id=reply.thread_id)
