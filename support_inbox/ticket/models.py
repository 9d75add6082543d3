# support_inbox/ticket/models.py
import enum

from sqlalchemy import Column, DateTime, Integer, String, Text

from support_inbox.core.database import Base, utcnow


class TicketStatus(str, enum.Enum):
    OPEN = "open"
    PENDING = "pending"
    RESOLVED = "resolved"


class TicketPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


VALID_STATUSES = frozenset(s.value for s in TicketStatus)
VALID_PRIORITIES = frozenset(p.value for p in TicketPriority)


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=True)
    customer_email = Column(String, index=True, nullable=False)
    status = Column(String, default=TicketStatus.OPEN.value, nullable=False, index=True)
    priority = Column(String, default=TicketPriority.MEDIUM.value, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)