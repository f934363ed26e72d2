"""
Thin generation endpoints: one adapter call each, no state.
"""
from fastapi import APIRouter, Depends

from api.dependencies import AppServices, get_services
from api.models.requests import (
    EssayGradeRequest,
    HintRequest,
    OutlineRequest,
    QuestionsRequest,
    SectionTextRequest,
    VideoRequest,
)
from api.models.responses import (
    FeedbackResponse,
    HintResponse,
    OutlineResponse,
    QuestionModel,
    QuestionsResponse,
    SectionTextResponse,
    VideoResponse,
)
from services.generation.adapter import Operation

router = APIRouter()


@router.post("/outline", response_model=OutlineResponse)
async def generate_outline(request: OutlineRequest, services: AppServices = Depends(get_services)):
    """Chapter titles; only empty custom title slots are generated."""
    outline = await services.adapter.call(Operation.OUTLINE, request.model_dump())
    return OutlineResponse(outline=outline)


@router.post("/section", response_model=SectionTextResponse)
async def generate_section(request: SectionTextRequest, services: AppServices = Depends(get_services)):
    content = await services.adapter.call(Operation.SECTION_TEXT, request.model_dump())
    return SectionTextResponse(content=content)


@router.post("/video", response_model=VideoResponse)
async def generate_video(request: VideoRequest, services: AppServices = Depends(get_services)):
    video_url = await services.adapter.call(Operation.VIDEO_PICK, request.model_dump())
    return VideoResponse(video_url=video_url)


@router.post("/questions", response_model=QuestionsResponse)
async def generate_questions(request: QuestionsRequest, services: AppServices = Depends(get_services)):
    questions = await services.adapter.call(Operation.QUIZ_GEN, request.model_dump())
    return QuestionsResponse(questions=[
        QuestionModel(
            question_text=q.question_text,
            options=q.options,
            answer=q.answer,
            hint=q.hint,
        )
        for q in questions
    ])


@router.post("/hint", response_model=HintResponse)
async def generate_hint(request: HintRequest, services: AppServices = Depends(get_services)):
    hint = await services.adapter.call(Operation.HINT_GEN, request.model_dump())
    return HintResponse(hint=hint)


@router.post("/grade-essay", response_model=FeedbackResponse)
async def grade_essay(request: EssayGradeRequest, services: AppServices = Depends(get_services)):
    feedback = await services.adapter.call(Operation.ESSAY_GRADE, request.model_dump())
    return FeedbackResponse(feedback=feedback)
