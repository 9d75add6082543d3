# tests/test_query.py
import math

import pytest

from support_inbox.core.config import Settings
from support_inbox.core.database import utcnow
from support_inbox.core.errors import NotFoundError
from support_inbox.ticket.query import (
    TicketFilter,
    build_ticket_queries,
    get_ticket,
    list_tickets,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, 20),
        ("", 20),
        ("0", 20),
        (-3, 20),
        ("abc", 20),
        (1, 1),
        ("50", 50),
        (100, 100),
        (101, 100),
        ("5000", 100),
    ],
)
def test_page_size_normalisation(raw, expected):
    assert TicketFilter.from_query(page_size=raw).page_size == expected


@pytest.mark.parametrize("raw, expected", [(None, 1), ("0", 1), (-1, 1), ("x", 1), ("3", 3)])
def test_page_normalisation(raw, expected):
    assert TicketFilter.from_query(page=raw).page == expected


def test_filter_built_directly_is_clamped():
    assert TicketFilter(page_size=500).page_size == 100
    assert TicketFilter(page_size=0).page_size == 20
    assert TicketFilter(page=-2).page == 1
    assert TicketFilter().page_size == 20


def test_page_size_bounds_come_from_settings():
    settings = Settings(DEFAULT_PAGE_SIZE=5, MAX_PAGE_SIZE=10)
    assert TicketFilter.from_query(settings=settings).page_size == 5
    assert TicketFilter.from_query(settings=settings, page_size="50").page_size == 10


def test_search_term_is_kept_as_typed():
    assert TicketFilter(search=" foo ").search == " foo "
    assert TicketFilter(search="").search is None


def test_unknown_enum_values_are_dropped():
    filters = TicketFilter.from_query(status="archived", priority="urgent")
    assert filters.status is None
    assert filters.priority is None
    assert build_ticket_queries(filters).count.compile().params == build_ticket_queries(
        TicketFilter()
    ).count.compile().params


def test_offset():
    assert TicketFilter.from_query(page=3, page_size=10).offset == 20


def test_queries_bind_every_user_value():
    filters = TicketFilter.from_query(status="open", priority="high", search="x'; DROP TABLE tickets; --")
    queries = build_ticket_queries(filters)

    for statement in (queries.count, queries.page):
        compiled = statement.compile()
        sql = str(compiled)
        assert "DROP TABLE" not in sql
        assert "tickets.deleted_at IS NULL" in sql
        params = compiled.params
        assert "open" in params.values()
        assert "high" in params.values()
        assert "%x'; DROP TABLE tickets; --%" in params.values()


def test_page_query_is_ordered_newest_first():
    sql = str(build_ticket_queries(TicketFilter()).page.compile())
    assert "ORDER BY tickets.created_at DESC, tickets.id DESC" in sql


@pytest.mark.parametrize("page_size", [1, 3, 4, 7, 25])
def test_pagination_envelope(db_session, make_ticket, page_size):
    for i in range(7):
        make_ticket(title=f"t{i}")

    for page in range(1, 4):
        result = list_tickets(db_session, TicketFilter.from_query(page=page, page_size=page_size))
        assert result.pagination.total == 7
        assert result.pagination.total_pages == math.ceil(7 / page_size)
        assert len(result.data) <= page_size


def test_empty_result_has_zero_pages(db_session):
    result = list_tickets(db_session, TicketFilter())
    assert result.data == []
    assert result.pagination.total == 0
    assert result.pagination.total_pages == 0


def test_deleted_tickets_are_not_listed_or_fetched(db_session, make_ticket):
    live = make_ticket(title="live")
    gone = make_ticket(title="gone", deleted_at=utcnow())

    result = list_tickets(db_session, TicketFilter())
    assert [t.id for t in result.data] == [live]
    assert get_ticket(db_session, live).title == "live"
    with pytest.raises(NotFoundError):
        get_ticket(db_session, gone)


def test_directly_built_filters_list_safely(db_session, make_ticket):
    for i in range(3):
        make_ticket(title=f"t{i}")

    result = list_tickets(db_session, TicketFilter(page_size=0))
    assert len(result.data) == 3
    assert result.pagination.page_size == 20

    result = list_tickets(db_session, TicketFilter(page_size=500))
    assert result.pagination.limit == 100


def test_page_far_past_the_end_is_empty(db_session, make_ticket):
    make_ticket(title="only")

    result = list_tickets(db_session, TicketFilter(page=10**20))
    assert result.data == []
    assert result.pagination.total == 1
    assert result.pagination.total_pages == 1


def test_search_with_leading_space_does_not_match_inside_words(db_session, make_ticket):
    inside = make_ticket(title="xfoo broken")
    spaced = make_ticket(title="printer foo broken")

    result = list_tickets(db_session, TicketFilter(search=" foo"))
    assert [t.id for t in result.data] == [spaced]
    assert inside not in [t.id for t in result.data]
