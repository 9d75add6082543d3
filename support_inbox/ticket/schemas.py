# support_inbox/ticket/schemas.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from support_inbox.ticket.models import TicketPriority, TicketStatus


class TicketBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: str | None = None
    customer_email: str = Field(..., min_length=1)


class TicketCreate(TicketBase):
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM


class TicketUpdate(BaseModel):
    # plain strings: membership is checked by the lifecycle service so that
    # out-of-range values come back as a validation error with details
    status: str | None = None
    priority: str | None = None

    model_config = ConfigDict(extra="ignore")


class TicketOut(TicketBase):
    id: int
    status: str
    priority: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    page_size: int = Field(alias="pageSize")
    total: int
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class TicketPage(BaseModel):
    data: list[TicketOut]
    pagination: Pagination
