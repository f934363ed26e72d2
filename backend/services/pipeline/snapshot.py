"""
Export/import of a whole course session as one JSON document.

Importing never calls the generation backend. A run that was exported while
still generating comes back idle, ready for ``GenerationPipeline.resume``.
"""
import json
from datetime import datetime
from typing import Any, Dict, Optional

from core.errors import ValidationError
from core.retry import RetryPolicy
from models.course_models import Question, Section, SectionError, Stage
from models.pipeline_models import (
    RUNNING_STATUSES,
    AnswerRecord,
    PipelineConfig,
    PipelineRun,
    PipelineStatus,
    QuizHistoryEntry,
)
from services.pipeline.session import CourseSession

SNAPSHOT_VERSION = 1


def _config_to_dict(config: PipelineConfig) -> Dict[str, Any]:
    return {
        "topic": config.topic,
        "section_count": config.section_count,
        "audience_tags": list(config.audience_tags),
        "stage_order": [stage.value for stage in config.stage_order],
        "question_types": [t.value for t in config.question_types],
        "questions_per_section": config.questions_per_section,
        "custom_titles": list(config.custom_titles),
    }


def _section_to_dict(section: Section) -> Dict[str, Any]:
    return {
        "title": section.title,
        "content": section.content,
        "video_url": section.video_url,
        "questions": [
            {
                "question_text": q.question_text,
                "options": list(q.options),
                "answer": q.answer,
                "hint": q.hint,
            }
            for q in section.questions
        ],
        "error": {
            "stage": section.error.stage.value,
            "message": section.error.message,
            "retrying": section.error.retrying,
        } if section.error else None,
    }


def run_to_dict(run: PipelineRun) -> Dict[str, Any]:
    attempted = sorted((index, stage.value) for index, stage in run.attempted)
    return {
        "config": _config_to_dict(run.config) if run.config else None,
        "sections": [_section_to_dict(s) for s in run.sections],
        "completed_steps": run.completed_steps,
        "total_steps": run.total_steps,
        "current_stage": run.current_stage,
        "current_section": run.current_section,
        "status": run.status.value,
        "error": run.error,
        "attempted": [[index, stage] for index, stage in attempted],
    }


def _section_from_dict(data: Dict[str, Any]) -> Section:
    error = data.get("error")
    return Section(
        title=data["title"],
        content=data.get("content", ""),
        video_url=data.get("video_url", ""),
        questions=[
            Question(
                question_text=q["question_text"],
                options=list(q["options"]),
                answer=q["answer"],
                hint=q.get("hint"),
            )
            for q in data.get("questions", [])
        ],
        error=SectionError(
            stage=Stage(error["stage"]),
            message=error["message"],
            retrying=error.get("retrying", False),
        ) if error else None,
    )


def run_from_dict(data: Dict[str, Any]) -> PipelineRun:
    config = data.get("config")
    run = PipelineRun(
        config=PipelineConfig(**config) if config else None,
        sections=[_section_from_dict(s) for s in data.get("sections", [])],
        completed_steps=data.get("completed_steps", 0),
        total_steps=data.get("total_steps", 0),
        current_stage=data.get("current_stage"),
        current_section=data.get("current_section"),
        status=PipelineStatus(data.get("status", PipelineStatus.IDLE.value)),
        error=data.get("error"),
        attempted={(index, Stage(stage)) for index, stage in data.get("attempted", [])},
    )
    if run.status in RUNNING_STATUSES:
        # Nothing is in flight after an import
        run.status = PipelineStatus.IDLE
        run.current_stage = None
        run.current_section = None
        for section in run.sections:
            if section.error:
                section.error.retrying = False
    return run


def session_to_dict(session: CourseSession) -> Dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "session_id": session.session_id,
        "exported_at": datetime.now().isoformat(),
        "run": run_to_dict(session.run),
        "quiz_history": [
            {
                "question": entry.question,
                "answers": [
                    {
                        "user_answer": answer.user_answer,
                        "correct": answer.correct,
                        "timestamp": answer.timestamp.isoformat(),
                    }
                    for answer in entry.answers
                ],
            }
            for entry in session.quiz_history.to_list()
        ],
        "discussion_answers": {str(k): v for k, v in session.discussion_answers.items()},
        "discussion_feedback": {str(k): v for k, v in session.discussion_feedback.items()},
    }


def session_from_dict(
    data: Dict[str, Any],
    retry: RetryPolicy,
    session_id: Optional[str] = None,
) -> CourseSession:
    if not isinstance(data, dict):
        raise ValidationError("snapshot must be a JSON object")
    if data.get("version") != SNAPSHOT_VERSION:
        raise ValidationError(f"unsupported snapshot version: {data.get('version')!r}")

    try:
        run = run_from_dict(data["run"])
        history = [
            QuizHistoryEntry(
                question=entry["question"],
                answers=[
                    AnswerRecord(
                        user_answer=answer["user_answer"],
                        correct=bool(answer["correct"]),
                        timestamp=datetime.fromisoformat(answer["timestamp"]),
                    )
                    for answer in entry.get("answers", [])
                ],
            )
            for entry in data.get("quiz_history", [])
        ]
        answers = {int(k): v for k, v in data.get("discussion_answers", {}).items()}
        feedback = {int(k): v for k, v in data.get("discussion_feedback", {}).items()}
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"malformed snapshot: {e}")

    return CourseSession(
        retry,
        session_id=session_id or data.get("session_id"),
        run=run,
        quiz_history=history,
        discussion_answers=answers,
        discussion_feedback=feedback,
    )


def export_snapshot(session: CourseSession) -> str:
    return json.dumps(session_to_dict(session), ensure_ascii=False, indent=2)


def import_snapshot(text: str, retry: RetryPolicy, session_id: Optional[str] = None) -> CourseSession:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"snapshot is not valid JSON: {e}")
    return session_from_dict(data, retry, session_id=session_id)
