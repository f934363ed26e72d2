"""
Tests for exporting and importing course sessions.
"""
import json

import pytest
import pytest_asyncio

from core.errors import FormatError, ValidationError
from models.course_models import Stage
from models.pipeline_models import PipelineConfig, PipelineStatus
from services.generation.adapter import Operation
from services.pipeline.session import CourseSession
from services.pipeline.snapshot import (
    SNAPSHOT_VERSION,
    export_snapshot,
    import_snapshot,
    session_from_dict,
    session_to_dict,
)


@pytest_asyncio.fixture
async def studied_session(retry_policy, fake_adapter):
    fake_adapter.fail(Operation.QUIZ_GEN, FormatError("quiz response is not a JSON array"), title="Chapter 3")
    session = CourseSession(retry_policy)
    await session.pipeline.start(PipelineConfig(
        topic="Python 入門",
        section_count=3,
        audience_tags=["5", "other"],
        stage_order=["lecture", "video", "quiz", "discussion"],
    ))
    fake_adapter.failures.clear()

    machine = session.exercise(0)
    machine.select("B")
    machine.submit()
    machine.select("A")
    machine.submit()
    await session.grade_discussion(1, "變數用來存放資料")
    return session


class TestSnapshotRoundTrip:
    """Test that a session survives export and import"""

    @pytest.mark.asyncio
    async def test_round_trip_preserves_session(self, studied_session, retry_policy, fake_adapter):
        calls_before = len(fake_adapter.calls)

        restored = import_snapshot(export_snapshot(studied_session), retry_policy)

        assert len(fake_adapter.calls) == calls_before
        assert restored.session_id == studied_session.session_id
        assert restored.run.sections == studied_session.run.sections
        assert restored.run.config == studied_session.run.config
        assert restored.run.attempted == studied_session.run.attempted
        assert restored.run.completed_steps == restored.run.total_steps == 12
        assert restored.run.status == PipelineStatus.DONE

        error = restored.run.sections[2].error
        assert error.stage == Stage.QUIZ
        assert error.message == "quiz response is not a JSON array"

        entry = restored.quiz_history.get("Chapter 1 Q1")
        assert [(a.user_answer, a.correct) for a in entry.answers] == [("B", False), ("A", True)]
        assert entry.answers[0].timestamp == studied_session.quiz_history.get("Chapter 1 Q1").answers[0].timestamp

        assert restored.discussion_answers == {1: "變數用來存放資料"}
        assert restored.discussion_feedback == studied_session.discussion_feedback

    @pytest.mark.asyncio
    async def test_restored_failed_stage_can_be_retried(self, studied_session, retry_policy):
        restored = import_snapshot(export_snapshot(studied_session), retry_policy)

        run = await restored.pipeline.retry_stage(2, "quiz")

        assert run.sections[2].error is None
        assert len(run.sections[2].questions) == 2

    @pytest.mark.asyncio
    async def test_export_is_plain_json(self, studied_session):
        data = json.loads(export_snapshot(studied_session))

        assert data["version"] == SNAPSHOT_VERSION
        assert data["run"]["config"]["stage_order"] == ["lecture", "video", "quiz", "discussion"]
        assert data["discussion_answers"] == {"1": "變數用來存放資料"}
        assert [0, "lecture"] in data["run"]["attempted"]


class TestInterruptedImport:
    """Test importing a run exported mid-generation"""

    @pytest.mark.asyncio
    async def test_running_run_comes_back_idle_and_resumes(self, studied_session, retry_policy, fake_adapter):
        data = session_to_dict(studied_session)
        data["run"]["status"] = "running_stage"
        data["run"]["current_stage"] = "quiz"
        data["run"]["current_section"] = 2
        data["run"]["attempted"] = [pair for pair in data["run"]["attempted"] if pair[0] < 2]
        data["run"]["completed_steps"] = 8

        restored = session_from_dict(data, retry_policy)

        assert restored.run.status == PipelineStatus.IDLE
        assert restored.run.current_stage is None
        assert restored.pipeline.pending_steps()[0] == (2, Stage.LECTURE)

        fake_adapter.calls.clear()
        run = await restored.pipeline.resume()

        assert run.status == PipelineStatus.DONE
        assert run.completed_steps == 12
        assert [op for op, _ in fake_adapter.calls] == [
            Operation.SECTION_TEXT,
            Operation.VIDEO_PICK,
            Operation.QUIZ_GEN,
        ]


class TestInvalidSnapshots:
    """Test rejected imports"""

    def test_not_json(self, retry_policy):
        with pytest.raises(ValidationError):
            import_snapshot("{not json", retry_policy)

    def test_wrong_version(self, retry_policy):
        with pytest.raises(ValidationError):
            session_from_dict({"version": 99, "run": {}}, retry_policy)

    def test_missing_run(self, retry_policy):
        with pytest.raises(ValidationError):
            session_from_dict({"version": SNAPSHOT_VERSION}, retry_policy)

    def test_not_an_object(self, retry_policy):
        with pytest.raises(ValidationError):
            import_snapshot("[1, 2]", retry_policy)

    def test_new_session_id_on_request(self, retry_policy):
        data = {"version": SNAPSHOT_VERSION, "session_id": "run_old", "run": {}}

        assert session_from_dict(data, retry_policy, session_id="run_new").session_id == "run_new"
