# support_inbox/ticket/routes.py
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from support_inbox.core.config import Settings, get_settings
from support_inbox.core.database import get_db
from support_inbox.core.security import get_current_user
from support_inbox.ticket import services as ticket_service
from support_inbox.ticket.query import TicketFilter, get_ticket, list_tickets
from support_inbox.ticket.schemas import TicketOut, TicketPage, TicketUpdate

router = APIRouter(prefix="/tickets", tags=["Tickets"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=TicketPage)
def list_all(
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None, description="Page size, capped at 100"),
    page_size: str | None = Query(default=None, alias="pageSize"),
    status: str | None = Query(default=None, description="open, pending or resolved"),
    priority: str | None = Query(default=None, description="low, medium or high"),
    search: str | None = Query(default=None, description="Matches title or customer email"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    filters = TicketFilter.from_query(
        page=page,
        page_size=limit if limit is not None else page_size,
        status=status,
        priority=priority,
        search=search,
        settings=settings,
    )
    return list_tickets(db, filters)


@router.get("/{ticket_id}", response_model=TicketOut)
def get(ticket_id: int, db: Session = Depends(get_db)):
    return get_ticket(db, ticket_id)


@router.patch("/{ticket_id}", response_model=TicketOut)
def update(
    ticket_id: int,
    ticket: TicketUpdate,
    db: Session = Depends(get_db),
):
    return ticket_service.update_ticket(db, ticket_id, ticket.model_dump(exclude_unset=True))


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(ticket_id: int, db: Session = Depends(get_db)):
    ticket_service.soft_delete_ticket(db, ticket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
