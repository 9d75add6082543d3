# support_inbox/note/routes.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from support_inbox.core.database import get_db
from support_inbox.core.security import CurrentUser, get_current_user
from support_inbox.note import services as note_service
from support_inbox.note.schemas import NoteCreate, NoteOut

router = APIRouter(prefix="/tickets", tags=["Notes"], dependencies=[Depends(get_current_user)])


@router.get("/{ticket_id}/notes", response_model=list[NoteOut])
def list_all(ticket_id: int, db: Session = Depends(get_db)):
    return note_service.list_notes(db, ticket_id)


@router.post("/{ticket_id}/notes", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
def create(
    ticket_id: int,
    note: NoteCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return note_service.append_note(db, ticket_id, user.id, note.text)
