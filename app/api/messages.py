from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_db, require_company_user
from app.schemas.conversation import MessageCreate, MessageRead
from app.services.conversations import messages as messages_service
from app.services.query_cache import get_query_cache, invalidate_company
from app.websocket.broadcaster import notify_new_message

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def create_message(
    payload: MessageCreate,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    message = await run_in_threadpool(messages_service.create, db, auth.company_id, auth.user_id, payload)
    result = MessageRead.model_validate(message)
    invalidate_company(get_query_cache(), auth.company_id)
    await notify_new_message(auth.company_id, result.conversation_id, result.model_dump(mode="json"))
    return result
