from sqlalchemy.orm import Session, selectinload

from app.models.company import User
from app.models.customer import InternalNote
from app.schemas.customer import InternalNoteCreate
from app.services.common import get_company_customer


def author_short_name(user: User | None) -> str | None:
    """``Jane D.`` style label shown next to a note."""
    if user is None:
        return None
    if user.first_name and user.last_name:
        return f"{user.first_name} {user.last_name[0]}."
    return user.first_name or user.last_name or user.email


def _note_row(note: InternalNote) -> dict:
    return {
        "id": note.id,
        "customer_id": note.customer_id,
        "content": note.content,
        "created_by": note.created_by,
        "created_by_name": author_short_name(note.author),
        "created_at": note.created_at,
    }


class InternalNotes:
    @staticmethod
    def create(db: Session, company_id: int, author_id: str, payload: InternalNoteCreate) -> dict:
        get_company_customer(db, company_id, payload.customer_id)
        note = InternalNote(
            customer_id=payload.customer_id,
            content=payload.content,
            created_by=author_id,
        )
        db.add(note)
        db.commit()
        db.refresh(note)
        return _note_row(note)

    @staticmethod
    def list_for_customer(db: Session, company_id: int, customer_id: int) -> list[dict]:
        get_company_customer(db, company_id, customer_id)
        notes = (
            db.query(InternalNote)
            .options(selectinload(InternalNote.author))
            .filter(InternalNote.customer_id == customer_id)
            .order_by(InternalNote.created_at.desc(), InternalNote.id.desc())
            .all()
        )
        return [_note_row(note) for note in notes]


internal_notes = InternalNotes()
