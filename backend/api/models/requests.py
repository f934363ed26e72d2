"""
Pydantic request models for API endpoints.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Union

from core.config import DEFAULT_NUM_SECTIONS, DEFAULT_QUESTIONS_PER_SECTION
from models.course_models import QuestionType, Stage


class OutlineRequest(BaseModel):
    """Request model for chapter title generation."""
    topic: str = Field(..., description="Course topic")
    section_count: int = Field(default=DEFAULT_NUM_SECTIONS, description="Number of chapters")
    audience_tags: List[str] = Field(default_factory=list, description="Target audience tags")
    custom_titles: Optional[List[str]] = Field(default=None, description="User titles; empty slots are generated")


class SectionTextRequest(BaseModel):
    """Request model for lecture text generation."""
    section_title: str = Field(..., description="Chapter title")
    course_title: str = Field(..., description="Course title")
    audience_tags: List[str] = Field(default_factory=list)


class VideoRequest(BaseModel):
    """Request model for video recommendation."""
    section_title: str = Field(..., description="Chapter title")
    section_content: str = Field(..., description="Chapter lecture text")
    audience_tags: List[str] = Field(default_factory=list)


class QuestionsRequest(BaseModel):
    """Request model for quiz generation."""
    section_title: str = Field(..., description="Chapter title")
    section_content: str = Field(..., description="Chapter lecture text")
    audience_tags: List[str] = Field(default_factory=list)
    question_types: str = Field(default=QuestionType.MULTIPLE_CHOICE.value, description="Comma-joined question types")
    num_questions: int = Field(default=DEFAULT_QUESTIONS_PER_SECTION, description="Questions to generate (1-5)")


class HintRequest(BaseModel):
    """Request model for a question hint."""
    question: str = Field(..., description="Question text")
    section_content: str = Field(..., description="Chapter lecture text")
    audience_tags: List[str] = Field(default_factory=list)


class EssayGradeRequest(BaseModel):
    """Request model for discussion answer feedback."""
    section_title: str = Field(..., description="Chapter title")
    section_content: str = Field(..., description="Chapter lecture text")
    user_text: str = Field(..., description="Learner's answer")


class ChatRequest(BaseModel):
    """Request model for a tutor chat turn."""
    all_content: str = Field(..., description="Whole course content")
    question: str = Field(..., description="User message")
    thread_id: Optional[str] = Field(default=None, description="Conversation handle; omit to start a new one")
    audience_tags: List[str] = Field(default_factory=list)


class RunCreateRequest(BaseModel):
    """Request model for starting a course generation run."""
    topic: str = Field(..., description="Course topic")
    section_count: Union[int, str, None] = Field(default=DEFAULT_NUM_SECTIONS, description="Chapters, clamped to 3-10")
    audience_tags: List[str] = Field(default_factory=list)
    stage_order: List[Stage] = Field(
        default_factory=lambda: [Stage.LECTURE, Stage.VIDEO, Stage.QUIZ],
        description="Content types in generation order",
    )
    question_types: List[QuestionType] = Field(default_factory=lambda: [QuestionType.MULTIPLE_CHOICE])
    questions_per_section: Union[int, str, None] = Field(default=DEFAULT_QUESTIONS_PER_SECTION, description="Clamped to 1-5")
    custom_titles: List[str] = Field(default_factory=list)


class RetryStageRequest(BaseModel):
    """Request model for retrying one stage of one section."""
    section_index: int = Field(..., ge=0)
    stage: Stage


class SelectOptionRequest(BaseModel):
    option: str = Field(..., description="Chosen option text")


class DiscussionRequest(BaseModel):
    user_text: str = Field(..., description="Learner's discussion answer")


class TutorRequest(BaseModel):
    question: str = Field(..., description="Question for the course tutor")


class ImportRequest(BaseModel):
    snapshot: Dict[str, Any] = Field(..., description="Document produced by the export endpoint")


class SaveRequest(BaseModel):
    course_id: Optional[str] = Field(default=None, description="Overwrite this saved course")
