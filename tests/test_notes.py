# tests/test_notes.py
from datetime import timedelta

import pytest
from sqlalchemy import delete, func, select

from support_inbox.core.database import utcnow
from support_inbox.core.errors import NotFoundError, ValidationError
from support_inbox.note.models import Note
from support_inbox.note.services import append_note, list_notes
from support_inbox.user.models import User


def count_notes(database) -> int:
    with database.session() as session:
        return session.execute(select(func.count(Note.id))).scalar_one()


def test_add_note_and_list(client, make_ticket, agent):
    tid = make_ticket()

    r = client.post(f"/tickets/{tid}/notes", json={"text": "  Called the customer  "})
    assert r.status_code == 201
    note = r.json()
    assert note["text"] == "Called the customer"
    assert note["ticket_id"] == tid
    assert note["user"] == {"id": agent.id, "name": agent.name, "email": agent.email}

    r2 = client.get(f"/tickets/{tid}/notes")
    assert r2.status_code == 200
    notes = r2.json()
    assert [n["id"] for n in notes] == [note["id"]]
    assert notes[0]["user"]["name"] == "Riya from Support"


def test_notes_most_recent_first(client, make_ticket):
    tid = make_ticket()
    ids = [
        client.post(f"/tickets/{tid}/notes", json={"text": f"note {i}"}).json()["id"]
        for i in range(3)
    ]

    listed = [n["id"] for n in client.get(f"/tickets/{tid}/notes").json()]
    assert listed == list(reversed(ids))


@pytest.mark.parametrize("body", [{"text": ""}, {"text": "   \n\t "}, {}])
def test_blank_note_is_rejected_and_nothing_written(client, make_ticket, database, body):
    tid = make_ticket()

    r = client.post(f"/tickets/{tid}/notes", json=body)
    assert r.status_code == 400
    assert r.json() == {"error": "Validation error", "details": ["Note text is required"]}
    assert count_notes(database) == 0


def test_note_on_deleted_ticket_is_404(client, make_ticket, database):
    tid = make_ticket(deleted_at=utcnow())

    r = client.post(f"/tickets/{tid}/notes", json={"text": "hello"})
    assert r.status_code == 404
    assert client.get(f"/tickets/{tid}/notes").status_code == 404
    assert count_notes(database) == 0


def test_note_on_missing_ticket_is_404(client):
    assert client.post("/tickets/999/notes", json={"text": "hello"}).status_code == 404


def test_notes_survive_author_removal(db_session, database, make_ticket, agent):
    tid = make_ticket()
    append_note(db_session, tid, agent.id, "first")

    with database.session() as session:
        session.execute(delete(User).where(User.id == agent.id))
        session.commit()

    notes = list_notes(db_session, tid)
    assert len(notes) == 1
    assert notes[0].text == "first"
    assert notes[0].user is None


def test_unknown_author_is_stored_as_null(db_session, make_ticket):
    tid = make_ticket()
    note = append_note(db_session, tid, 98765, "from a removed account")
    assert note.user is None


def test_ledger_checks_text_before_ticket(db_session):
    with pytest.raises(ValidationError):
        append_note(db_session, 1, None, " ")
    with pytest.raises(NotFoundError):
        append_note(db_session, 1, None, "text")


def test_list_orders_by_created_at(db_session, make_ticket):
    tid = make_ticket()
    now = utcnow()
    with db_session.begin():
        db_session.add_all(
            [
                Note(ticket_id=tid, text="older", created_at=now - timedelta(hours=2)),
                Note(ticket_id=tid, text="newest", created_at=now),
                Note(ticket_id=tid, text="middle", created_at=now - timedelta(hours=1)),
            ]
        )
    assert [n.text for n in list_notes(db_session, tid)] == ["newest", "middle", "older"]
