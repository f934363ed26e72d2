"""
Chatbot API routes.
"""
from fastapi import APIRouter, Depends

from api.dependencies import AppServices, get_services
from api.models.requests import ChatRequest
from api.models.responses import ChatResponse
from services.generation.adapter import Operation

router = APIRouter()


@router.post("", response_model=ChatResponse)
async def chat(request: ChatRequest, services: AppServices = Depends(get_services)):
    """
    Course tutor turn. Omitting ``thread_id`` starts a new conversation;
    the returned ``thread_id`` continues it.
    """
    reply = await services.adapter.call(Operation.CHAT_TURN, request.model_dump())
    return ChatResponse(answer=reply.answer, thread_id=reply.thread_id)
