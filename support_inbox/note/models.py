# support_inbox/note/models.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text

from support_inbox.core.database import Base, utcnow


class Note(Base):
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # authors may be removed later, their notes stay
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
