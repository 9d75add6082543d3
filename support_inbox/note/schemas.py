# support_inbox/note/schemas.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NoteCreate(BaseModel):
    # emptiness is checked after trimming, by the ledger
    text: str | None = None


class NoteAuthor(BaseModel):
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class NoteOut(BaseModel):
    id: int
    ticket_id: int
    text: str
    created_at: datetime
    user: NoteAuthor | None = None
