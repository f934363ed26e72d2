"""
Pydantic response models for API endpoints.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Union


class QuestionModel(BaseModel):
    question_text: str
    options: List[str]
    answer: str
    hint: Optional[str] = None


class QuestionView(BaseModel):
    """Question as shown while practising (no answer)."""
    question_text: str
    options: List[str]


class SectionErrorModel(BaseModel):
    stage: str
    message: str
    retrying: bool = False


class SectionModel(BaseModel):
    """Course section."""
    index: int
    title: str
    content: str = ""
    video_url: str = ""
    questions: List[QuestionModel] = []
    error: Optional[SectionErrorModel] = None


class RunStateResponse(BaseModel):
    """Generation run state, polled by the client after every change."""
    run_id: str
    topic: Optional[str] = None
    status: str
    current_stage: Optional[str] = None
    current_section: Optional[int] = None
    completed_steps: int = 0
    total_steps: int = 0
    progress: float = Field(ge=0.0, le=1.0, description="completed_steps / total_steps")
    is_generating: bool = False
    error: Optional[str] = None
    stage_order: List[str] = []
    sections: List[SectionModel] = []
    discussion_answers: Dict[int, str] = {}
    discussion_feedback: Dict[int, str] = {}


class ExerciseStateResponse(BaseModel):
    section_index: int
    current_question_index: int
    question_count: int
    question: Optional[QuestionView] = None
    selected_option: Optional[str] = None
    submitted_answer: Union[bool, str, None] = None
    hint_visible: bool = False
    hint_text: Optional[str] = None
    disabled_options: List[str] = []
    can_advance: bool = False
    is_complete: bool = False
    outcome: Optional[str] = None


class OutlineResponse(BaseModel):
    outline: List[str]


class SectionTextResponse(BaseModel):
    content: str


class VideoResponse(BaseModel):
    video_url: str


class QuestionsResponse(BaseModel):
    questions: List[QuestionModel]


class HintResponse(BaseModel):
    hint: str


class FeedbackResponse(BaseModel):
    feedback: str


class ChatResponse(BaseModel):
    """Response model for chatbot."""
    answer: str
    thread_id: str


class SaveResponse(BaseModel):
    course_id: str


class SavedCourse(BaseModel):
    course_id: str
    topic: str
    title: Optional[str] = None
    section_count: int = 0
    created_at: str
    updated_at: str


class SnapshotResponse(BaseModel):
    snapshot: Dict[str, Any]
