from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_company_user
from app.schemas.customer import InternalNoteCreate, InternalNoteRead
from app.services.notes import internal_notes as notes_service

router = APIRouter(prefix="/internal-notes", tags=["internal-notes"])


@router.post("", response_model=InternalNoteRead, status_code=status.HTTP_201_CREATED)
def create_internal_note(
    payload: InternalNoteCreate,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    return notes_service.create(db, auth.company_id, auth.user_id, payload)
