from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_db, require_company_user
from app.config import settings
from app.schemas.conversation import (
    ConversationCreate,
    ConversationDetail,
    ConversationListItem,
    ConversationRead,
    ConversationUpdate,
    MessageRead,
)
from app.services.conversations import conversations as conversations_service
from app.services.conversations import messages as messages_service
from app.services.query_cache import conversation_list_key, get_query_cache, invalidate_company
from app.websocket.broadcaster import notify_conversation_update

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.post("", response_model=ConversationRead, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreate,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    conversation = await run_in_threadpool(
        conversations_service.create, db, auth.company_id, auth.user_id, payload
    )
    result = ConversationRead.model_validate(conversation)
    invalidate_company(get_query_cache(), auth.company_id)
    await notify_conversation_update(auth.company_id, result.id, result.status.value)
    return result


@router.get("", response_model=list[ConversationListItem])
async def list_conversations(auth=Depends(require_company_user), db: Session = Depends(get_db)):
    company_id = auth.company_id
    return await get_query_cache().get(
        conversation_list_key(company_id),
        lambda: run_in_threadpool(conversations_service.list_for_company, db, company_id),
        settings.conversation_list_ttl_seconds,
    )


@router.get("/{conversation_id}", response_model=ConversationDetail)
def get_conversation(conversation_id: int, auth=Depends(require_company_user), db: Session = Depends(get_db)):
    return conversations_service.get(db, auth.company_id, conversation_id)


@router.put("/{conversation_id}", response_model=ConversationRead)
async def update_conversation(
    conversation_id: int,
    payload: ConversationUpdate,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    conversation = await run_in_threadpool(
        conversations_service.update, db, auth.company_id, conversation_id, payload
    )
    result = ConversationRead.model_validate(conversation)
    invalidate_company(get_query_cache(), auth.company_id)
    await notify_conversation_update(auth.company_id, result.id, result.status.value)
    return result


@router.get("/{conversation_id}/messages", response_model=list[MessageRead])
def list_conversation_messages(
    conversation_id: int,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    return messages_service.list_for_conversation(db, auth.company_id, conversation_id)


@router.put("/{conversation_id}/mark-read")
async def mark_conversation_read(
    conversation_id: int,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    updated = await run_in_threadpool(conversations_service.mark_read, db, auth.company_id, conversation_id)
    invalidate_company(get_query_cache(), auth.company_id)
    return {"updated": updated}
