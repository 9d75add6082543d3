# tests/conftest.py
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from support_inbox.core.config import Settings
from support_inbox.core.database import Database, utcnow
from support_inbox.core.security import create_access_token
from support_inbox.main import create_app
from support_inbox.ticket.models import Ticket
from support_inbox.user.models import User


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'tickets.db'}",
        JWT_SECRET="test-secret",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def database(settings):
    db = Database(settings.DATABASE_URL)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    with database.session() as session:
        yield session


@pytest.fixture
def app(settings, database):
    return create_app(settings=settings, database=database)


@pytest.fixture
def agent(database) -> User:
    with database.session() as session:
        user = User(name="Riya from Support", email="riya.support@helpdesk.in", password_hash="x")
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


@pytest.fixture
def token(agent, settings) -> str:
    return create_access_token(agent.id, agent.email, settings=settings)


@pytest.fixture
def auth_headers(token) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(app, auth_headers):
    with TestClient(app) as c:
        c.headers.update(auth_headers)
        yield c


@pytest.fixture
def make_ticket(database):
    """Insert a ticket directly, the way the intake process would."""

    def _make(
        title: str = "Unable to login into my account",
        customer_email: str = "amit.sharma@gmail.com",
        status: str = "open",
        priority: str = "medium",
        description: str | None = "It keeps showing invalid credentials.",
        created_at: datetime | None = None,
        deleted_at: datetime | None = None,
    ) -> int:
        created_at = created_at or utcnow()
        with database.session() as session:
            ticket = Ticket(
                title=title,
                customer_email=customer_email,
                description=description,
                status=status,
                priority=priority,
                created_at=created_at,
                updated_at=created_at,
                deleted_at=deleted_at,
            )
            session.add(ticket)
            session.commit()
            return ticket.id

    return _make


@pytest.fixture
def load_ticket(database):
    """Read a ticket row straight from the store, deleted or not."""

    def _load(ticket_id: int) -> Ticket | None:
        with database.session() as session:
            return session.get(Ticket, ticket_id)

    return _load
