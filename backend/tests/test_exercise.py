"""
Tests for quiz practice and the course session.
"""
import pytest

from core.errors import PrerequisiteMissing, ValidationError
from models.course_models import Question
from models.pipeline_models import PipelineConfig, QuizHistory
from services.generation.adapter import Operation
from services.pipeline.exercise import ExerciseStateMachine, SubmitOutcome
from services.pipeline.session import CourseSession


def questions():
    return [
        Question(question_text="2+2?", options=["3", "4", "5"], answer="4"),
        Question(question_text="Python is a language?", options=["是", "否"], answer="True"),
    ]


@pytest.fixture
def machine(retry_policy):
    return ExerciseStateMachine(questions(), QuizHistory(), retry=retry_policy, section_content="math")


class TestExerciseFlow:
    """Test select / submit / advance"""

    def test_correct_answers_progress_to_completion(self, machine):
        machine.select("4")
        assert machine.submit() == SubmitOutcome.CORRECT
        assert machine.can_advance
        machine.advance()

        machine.select("是")
        assert machine.submit() == SubmitOutcome.CORRECT
        machine.advance()

        assert machine.is_complete
        assert machine.current_question is None
        assert not machine.can_advance

    def test_incorrect_answer_never_enables_advance(self, machine):
        machine.select("3")
        assert machine.submit() == SubmitOutcome.INCORRECT

        assert not machine.can_advance
        assert machine.state.selected_option == "3"
        assert machine.state.submitted_answer == "3"
        with pytest.raises(ValidationError):
            machine.advance()

    def test_wrong_option_is_locked_until_another_is_tried(self, machine):
        machine.select("3")
        machine.submit()

        assert machine.is_option_disabled("3")
        assert not machine.is_option_disabled("5")
        with pytest.raises(ValidationError):
            machine.select("3")
        with pytest.raises(ValidationError):
            machine.submit()

        machine.select("5")
        assert machine.submit() == SubmitOutcome.INCORRECT
        assert not machine.is_option_disabled("3")

    def test_all_options_locked_after_correct(self, machine):
        machine.select("4")
        machine.submit()

        assert all(machine.is_option_disabled(o) for o in ["3", "4", "5"])
        with pytest.raises(ValidationError):
            machine.submit()

    def test_submit_requires_selection(self, machine):
        with pytest.raises(ValidationError):
            machine.submit()

    def test_unknown_option(self, machine):
        with pytest.raises(ValidationError):
            machine.select("42")

    def test_true_false_synonyms(self, machine):
        machine.select("4")
        machine.submit()
        machine.advance()

        machine.select("否")
        assert machine.submit() == SubmitOutcome.INCORRECT
        machine.select("是")
        assert machine.submit() == SubmitOutcome.CORRECT

    def test_history_records_every_submission(self, machine):
        machine.select("3")
        machine.submit()
        machine.select("4")
        machine.submit()

        entry = machine.history.get("2+2?")
        assert [(a.user_answer, a.correct) for a in entry.answers] == [("3", False), ("4", True)]

    def test_advance_resets_state(self, machine):
        machine.select("4")
        machine.submit()

        state = machine.advance()

        assert state.current_question_index == 1
        assert state.selected_option is None
        assert state.submitted_answer is None
        assert state.hint_visible is False

    def test_unanswerable_question_can_be_skipped(self, retry_policy):
        broken = Question(question_text="Pick one", options=["a", "b"], answer="c")
        machine = ExerciseStateMachine([broken], QuizHistory(), retry=retry_policy)

        machine.select("a")
        assert machine.submit() == SubmitOutcome.UNANSWERABLE
        assert machine.can_advance
        assert len(machine.history) == 0


class TestHints:
    """Test hint requests"""

    @pytest.mark.asyncio
    async def test_hint_is_fetched_once(self, machine, fake_adapter):
        first = await machine.request_hint()
        machine.state.hint_visible = False
        second = await machine.request_hint()

        assert first == second == "Hint for 2+2?"
        assert len(fake_adapter.calls_for(Operation.HINT_GEN)) == 1
        assert machine.state.hint_visible

    @pytest.mark.asyncio
    async def test_embedded_hint_needs_no_call(self, fake_adapter):
        question = Question(question_text="q", options=["a", "b"], answer="a", hint="think of a")
        machine = ExerciseStateMachine([question], QuizHistory())

        assert await machine.request_hint() == "think of a"
        assert fake_adapter.calls == []

    @pytest.mark.asyncio
    async def test_no_hint_source(self):
        question = Question(question_text="q", options=["a", "b"], answer="a")
        machine = ExerciseStateMachine([question], QuizHistory())

        with pytest.raises(ValidationError):
            await machine.request_hint()


class TestQuestionModel:
    """Test answer normalization"""

    def test_true_false_answer_resolves_to_option(self):
        question = Question(question_text="q", options=["是", "否"], answer="True")

        assert question.is_true_false
        assert question.resolve_answer() == "是"
        assert question.is_correct("是")
        assert not question.is_correct("否")

    def test_false_synonym(self):
        question = Question(question_text="q", options=["對", "錯"], answer="FALSE")

        assert question.resolve_answer() == "錯"

    def test_multiple_choice_exact_match(self):
        question = Question(question_text="q", options=["A", "B"], answer="b")

        assert not question.is_answerable


async def generated_session(retry_policy, **config):
    session = CourseSession(retry_policy)
    await session.pipeline.start(PipelineConfig(topic="Python 入門", section_count=3, **config))
    return session


class TestCourseSession:
    """Test learner actions on a generated course"""

    @pytest.mark.asyncio
    async def test_exercise_is_reused_per_section(self, retry_policy):
        session = await generated_session(retry_policy)

        machine = session.exercise(0)
        machine.select("A")

        assert session.exercise(0) is machine
        assert session.exercise(1) is not machine

    @pytest.mark.asyncio
    async def test_exercise_rebuilt_after_quiz_retry(self, retry_policy):
        session = await generated_session(retry_policy)
        machine = session.exercise(0)
        machine.select("A")
        session.run.sections[0].questions = [Question(question_text="new", options=["x", "y"], answer="x")]

        assert session.exercise(0) is not machine
        assert session.exercise(0).state.selected_option is None

    @pytest.mark.asyncio
    async def test_history_is_shared_across_sections(self, retry_policy):
        session = await generated_session(retry_policy)

        for index in (0, 1):
            machine = session.exercise(index)
            machine.select("A")
            machine.submit()

        assert len(session.quiz_history) == 2

    @pytest.mark.asyncio
    async def test_exercise_without_questions(self, retry_policy):
        session = await generated_session(retry_policy, stage_order=["lecture"])

        with pytest.raises(ValidationError):
            session.exercise(0)

    @pytest.mark.asyncio
    async def test_grade_discussion(self, retry_policy, fake_adapter):
        session = await generated_session(retry_policy, stage_order=["lecture", "discussion"])

        feedback = await session.grade_discussion(1, "Loops repeat work.")

        assert feedback == "Clear answer; add an example."
        assert session.discussion_answers == {1: "Loops repeat work."}
        assert session.discussion_feedback == {1: feedback}
        assert fake_adapter.calls_for(Operation.ESSAY_GRADE)[0]["section_title"] == "Chapter 2"

    @pytest.mark.asyncio
    async def test_discussion_requires_stage_and_text(self, retry_policy):
        session = await generated_session(retry_policy, stage_order=["lecture"])
        with pytest.raises(ValidationError):
            await session.grade_discussion(0, "answer")

        session = await generated_session(retry_policy, stage_order=["lecture", "discussion"])
        with pytest.raises(ValidationError):
            await session.grade_discussion(0, "   ")

    @pytest.mark.asyncio
    async def test_discussion_without_content(self, retry_policy):
        session = await generated_session(retry_policy, stage_order=["lecture", "discussion"])
        session.run.sections[0].content = ""

        with pytest.raises(PrerequisiteMissing):
            await session.grade_discussion(0, "answer")

    @pytest.mark.asyncio
    async def test_tutor_thread_continues(self, retry_policy, fake_adapter):
        session = await generated_session(retry_policy)

        first = await session.ask_tutor("What is a loop?")
        await session.ask_tutor("And a list?")

        turns = fake_adapter.calls_for(Operation.CHAT_TURN)
        assert turns[0]["thread_id"] is None
        assert turns[1]["thread_id"] == first.thread_id
        assert "## Chapter 1" in turns[0]["all_content"]

    @pytest.mark.asyncio
    async def test_hint_uses_lecture_text_after_lecture_retry(self, retry_policy, fake_adapter):
        session = await generated_session(retry_policy)
        machine = session.exercise(0)
        machine.select("B")
        fake_adapter.section_texts["Chapter 1"] = "NEW LECTURE TEXT"

        await session.pipeline.retry_stage(0, "lecture")
        hint = await session.exercise(0).request_hint()

        assert session.exercise(0) is machine
        assert machine.state.selected_option == "B"
        assert hint == "Hint for Chapter 1 Q1"
        assert fake_adapter.calls_for(Operation.HINT_GEN)[-1]["section_content"] == "NEW LECTURE TEXT"

    @pytest.mark.asyncio
    async def test_cached_hint_refetched_for_new_lecture_text(self, retry_policy, fake_adapter):
        session = await generated_session(retry_policy)
        machine = session.exercise(0)
        await machine.request_hint()
        machine.state.hint_visible = False
        fake_adapter.section_texts["Chapter 1"] = "NEW LECTURE TEXT"

        await session.pipeline.retry_stage(0, "lecture")
        await machine.request_hint()

        contents = [params["section_content"] for params in fake_adapter.calls_for(Operation.HINT_GEN)]
        assert contents == ["# Chapter 1\n\nNotes about Chapter 1.", "NEW LECTURE TEXT"]
