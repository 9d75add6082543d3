# support_inbox/ticket/query.py
"""
Filtered, paginated ticket queries.

A `TicketFilter` is built from loosely typed request input and turned into a
pair of SQLAlchemy statements (total count + one page of rows). Every user
supplied value reaches the database as a bound parameter.
"""

import math
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from support_inbox.core.config import Settings, get_settings
from support_inbox.core.errors import NotFoundError
from support_inbox.ticket.models import VALID_PRIORITIES, VALID_STATUSES, Ticket
from support_inbox.ticket.schemas import Pagination, TicketOut, TicketPage


def _page_size_bounds(context: dict | None) -> tuple[int, int]:
    settings = (context or {}).get("settings") or get_settings()
    return settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE


class TicketFilter(BaseModel):
    """Normalised list filters.

    Page is clamped to >= 1. A missing, unparsable or non-positive page size
    falls back to the configured default, anything above the cap is clamped to
    it. Status and priority outside their enums are dropped, not rejected.
    The rules hold however the filter is built.
    """

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, validate_default=True)
    page_size: int | None = Field(default=None, validate_default=True)
    status: str | None = None
    priority: str | None = None
    search: str | None = None

    @field_validator("page", mode="wrap")
    @classmethod
    def _page_at_least_one(cls, value, handler):
        try:
            page = handler(value)
        except ValidationError:
            return 1
        return max(page, 1)

    @field_validator("page_size", mode="wrap")
    @classmethod
    def _clamp_page_size(cls, value, handler, info: ValidationInfo):
        default_size, max_size = _page_size_bounds(info.context)
        try:
            size = handler(value)
        except ValidationError:
            size = None
        if size is None or size < 1:
            size = default_size
        return min(size, max_size)

    @field_validator("status", mode="before")
    @classmethod
    def _known_status(cls, value):
        return value if value in VALID_STATUSES else None

    @field_validator("priority", mode="before")
    @classmethod
    def _known_priority(cls, value):
        return value if value in VALID_PRIORITIES else None

    @field_validator("search", mode="before")
    @classmethod
    def _non_empty_search(cls, value):
        # the term is matched as typed, only an empty one means "no search"
        return value if isinstance(value, str) and value else None

    @classmethod
    def from_query(cls, settings: Settings | None = None, **values) -> "TicketFilter":
        """Build a filter from raw request values, bounded by `settings`."""
        return cls.model_validate(values, context={"settings": settings})

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class TicketQueries:
    count: Select
    page: Select


def live_tickets() -> Select:
    return select(Ticket).where(Ticket.deleted_at.is_(None))


def build_ticket_queries(filters: TicketFilter) -> TicketQueries:
    conditions = [Ticket.deleted_at.is_(None)]

    if filters.status in VALID_STATUSES:
        conditions.append(Ticket.status == filters.status)

    if filters.priority in VALID_PRIORITIES:
        conditions.append(Ticket.priority == filters.priority)

    if filters.search:
        term = f"%{filters.search}%"
        conditions.append(or_(Ticket.title.ilike(term), Ticket.customer_email.ilike(term)))

    count_query = select(func.count(Ticket.id)).where(*conditions)
    page_query = (
        select(Ticket)
        .where(*conditions)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .limit(filters.page_size)
        .offset(filters.offset)
        .execution_options(populate_existing=True)
    )
    return TicketQueries(count=count_query, page=page_query)


def list_tickets(db: Session, filters: TicketFilter) -> TicketPage:
    queries = build_ticket_queries(filters)

    total = db.execute(queries.count).scalar_one()
    # pages past the end are empty without asking the store, whatever the offset
    rows = db.execute(queries.page).scalars().all() if filters.offset < total else []

    return TicketPage(
        data=[TicketOut.model_validate(row) for row in rows],
        pagination=Pagination(
            page=filters.page,
            limit=filters.page_size,
            page_size=filters.page_size,
            total=total,
            total_pages=math.ceil(total / filters.page_size),
        ),
    )


def get_live_ticket(db: Session, ticket_id: int) -> Ticket | None:
    query = live_tickets().where(Ticket.id == ticket_id).execution_options(populate_existing=True)
    return db.execute(query).scalar_one_or_none()


def get_ticket(db: Session, ticket_id: int) -> Ticket:
    ticket = get_live_ticket(db, ticket_id)
    if ticket is None:
        raise NotFoundError("Ticket", ticket_id)
    return ticket
