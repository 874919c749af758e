"""
/api/conversations endpoints (REST fallback for the voice socket)
"""
from fastapi import APIRouter, Depends

from kisanvaani.di import get_conversation_service, get_current_user
from kisanvaani.schemas import (
    ConversationListResponse, ConversationResponse, ConversationStartResponse,
    ConversationSummary, MessageResponse, SendMessageRequest,
)
from kisanvaani.core.models.io import UserProfile
from kisanvaani.core.services.conversation import ConversationService

router = APIRouter(prefix="/api/conversations", tags=["conversations"])

@router.post("", response_model=ConversationStartResponse, status_code=201)
async def create_conversation(user: UserProfile = Depends(get_current_user),
                              service: ConversationService = Depends(get_conversation_service)):
    conv, welcome = await service.start_conversation(user)
    return ConversationStartResponse(conversation=conv, welcome_message=welcome)

@router.get("", response_model=ConversationListResponse)
async def list_conversations(user: UserProfile = Depends(get_current_user),
                             service: ConversationService = Depends(get_conversation_service)):
    convs = await service.list_conversations(user)
    return ConversationListResponse(conversations=[ConversationSummary.of(c) for c in convs])

@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(conversation_id: str,
                           user: UserProfile = Depends(get_current_user),
                           service: ConversationService = Depends(get_conversation_service)):
    return ConversationResponse(conversation=await service.get_conversation(user, conversation_id))

@router.post("/{conversation_id}/message", response_model=MessageResponse)
async def send_message(conversation_id: str, req: SendMessageRequest,
                       user: UserProfile = Depends(get_current_user),
                       service: ConversationService = Depends(get_conversation_service)):
    user_msg, ai_msg = await service.send(user, conversation_id, req.message, req.location)
    return MessageResponse(user_message=user_msg, ai_message=ai_msg)

@router.put("/{conversation_id}/end", response_model=ConversationResponse)
async def end_conversation(conversation_id: str,
                           user: UserProfile = Depends(get_current_user),
                           service: ConversationService = Depends(get_conversation_service)):
    return ConversationResponse(conversation=await service.end_conversation(user, conversation_id))

@router.delete("/{conversation_id}")
async def delete_conversation(conversation_id: str,
                              user: UserProfile = Depends(get_current_user),
                              service: ConversationService = Depends(get_conversation_service)):
    await service.delete_conversation(user, conversation_id)
    return {"success": True, "message": "Conversation deleted"}
