# support_inbox/ticket/services.py
from typing import Any

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from support_inbox.core.database import utcnow
from support_inbox.core.errors import NotFoundError, ValidationError
from support_inbox.ticket.models import VALID_PRIORITIES, VALID_STATUSES, Ticket
from support_inbox.ticket.query import get_ticket
from support_inbox.ticket.schemas import TicketCreate

logger = structlog.get_logger(__name__)


def create_ticket(db: Session, payload: TicketCreate) -> Ticket:
    now = utcnow()
    db_ticket = Ticket(
        title=payload.title,
        description=payload.description,
        customer_email=payload.customer_email,
        status=payload.status.value,
        priority=payload.priority.value,
        created_at=now,
        updated_at=now,
    )
    db.add(db_ticket)
    db.commit()
    db.refresh(db_ticket)
    logger.info("ticket_created", ticket_id=db_ticket.id)
    return db_ticket


def validate_changes(changes: dict[str, Any]) -> dict[str, str]:
    """Keep only status/priority, rejecting out-of-enum values and empty updates."""
    values: dict[str, str] = {}

    if "status" in changes:
        if changes["status"] not in VALID_STATUSES:
            raise ValidationError("Invalid status")
        values["status"] = changes["status"]

    if "priority" in changes:
        if changes["priority"] not in VALID_PRIORITIES:
            raise ValidationError("Invalid priority")
        values["priority"] = changes["priority"]

    if not values:
        raise ValidationError("Nothing to update")
    return values


def update_ticket(db: Session, ticket_id: int, changes: dict[str, Any]) -> Ticket:
    values = validate_changes(changes)
    values["updated_at"] = utcnow()

    # the live check and the write are one statement, a concurrent delete wins
    result = db.execute(
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.deleted_at.is_(None))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError("Ticket", ticket_id)
    db.commit()

    logger.info("ticket_updated", ticket_id=ticket_id, fields=sorted(values))
    return get_ticket(db, ticket_id)


def soft_delete_ticket(db: Session, ticket_id: int) -> None:
    result = db.execute(
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.deleted_at.is_(None))
        .values(deleted_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError("Ticket", ticket_id)
    db.commit()
    logger.info("ticket_deleted", ticket_id=ticket_id)
