# support_inbox/stats/services.py
from datetime import date, datetime, timedelta

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from support_inbox.core.database import utcnow
from support_inbox.stats.schemas import DailyCount, StatsOut, StatsSummary
from support_inbox.ticket.models import Ticket, TicketPriority, TicketStatus

ACTIVITY_DAYS = 7


def _count_where(condition):
    return func.count(case((condition, 1)))


def summary(db: Session) -> StatsSummary:
    row = db.execute(
        select(
            func.count(Ticket.id).label("total"),
            _count_where(Ticket.status == TicketStatus.OPEN.value).label("open"),
            _count_where(Ticket.status == TicketStatus.PENDING.value).label("pending"),
            _count_where(Ticket.status == TicketStatus.RESOLVED.value).label("resolved"),
            _count_where(Ticket.priority == TicketPriority.HIGH.value).label("high_priority"),
        ).where(Ticket.deleted_at.is_(None))
    ).one()

    return StatsSummary(
        total=row.total,
        open=row.open,
        pending=row.pending,
        resolved=row.resolved,
        high_priority=row.high_priority,
    )


def _as_date(value) -> date:
    # sqlite hands back "YYYY-MM-DD", postgres a date
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def recent_activity(db: Session, today: date | None = None) -> list[DailyCount]:
    """Tickets created per UTC day, today and the six days before, oldest first.

    The calendar is built here and merged with the grouped counts, so days
    without tickets show up with a zero.
    """
    today = today or utcnow().date()
    days = [today - timedelta(days=offset) for offset in range(ACTIVITY_DAYS - 1, -1, -1)]
    window_start = datetime.combine(days[0], datetime.min.time())
    window_end = datetime.combine(today + timedelta(days=1), datetime.min.time())

    day = func.date(Ticket.created_at)
    rows = db.execute(
        select(day.label("day"), func.count(Ticket.id).label("count"))
        .where(
            Ticket.deleted_at.is_(None),
            Ticket.created_at >= window_start,
            Ticket.created_at < window_end,
        )
        .group_by(day)
    ).all()

    counts = {_as_date(row.day): row.count for row in rows}
    return [DailyCount(date=d, count=counts.get(d, 0)) for d in days]


def get_stats(db: Session, today: date | None = None) -> StatsOut:
    totals = summary(db)
    return StatsOut(
        **totals.model_dump(),
        last_7_days=recent_activity(db, today=today),
    )
