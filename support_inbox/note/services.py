# support_inbox/note/services.py
import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from support_inbox.core.database import utcnow
from support_inbox.core.errors import NotFoundError, ValidationError
from support_inbox.note.models import Note
from support_inbox.note.schemas import NoteAuthor, NoteOut
from support_inbox.ticket.query import get_live_ticket
from support_inbox.user.models import User

logger = structlog.get_logger(__name__)


def _note_out(note: Note, author: User | None) -> NoteOut:
    return NoteOut(
        id=note.id,
        ticket_id=note.ticket_id,
        text=note.text,
        created_at=note.created_at,
        user=NoteAuthor.model_validate(author) if author is not None else None,
    )


def _ensure_live_ticket(db: Session, ticket_id: int) -> None:
    if get_live_ticket(db, ticket_id) is None:
        raise NotFoundError("Ticket", ticket_id)


def append_note(db: Session, ticket_id: int, author_id: int | None, text: str | None) -> NoteOut:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Note text is required")

    _ensure_live_ticket(db, ticket_id)

    author = db.get(User, author_id) if author_id is not None else None
    if author_id is not None and author is None:
        logger.warning("note_author_unknown", ticket_id=ticket_id, user_id=author_id)

    note = Note(
        ticket_id=ticket_id,
        user_id=author.id if author is not None else None,
        text=text,
        created_at=utcnow(),
    )
    db.add(note)
    db.commit()
    db.refresh(note)

    logger.info("note_appended", ticket_id=ticket_id, note_id=note.id)
    return _note_out(note, author)


def list_notes(db: Session, ticket_id: int) -> list[NoteOut]:
    _ensure_live_ticket(db, ticket_id)

    rows = db.execute(
        select(Note, User)
        .outerjoin(User, User.id == Note.user_id)
        .where(Note.ticket_id == ticket_id)
        .order_by(Note.created_at.desc(), Note.id.desc())
    ).all()
    return [_note_out(note, author) for note, author in rows]
