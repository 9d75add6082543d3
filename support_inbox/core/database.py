# support_inbox/core/database.py
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

import structlog
from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from support_inbox.core.errors import InternalFailure

logger = structlog.get_logger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every column in the store uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Store-access handle: one engine (connection pool) and its session factory.

    Built once at process start, handed to the app, sessions acquired per
    operation through `session()`, and released with `dispose()` on shutdown.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        engine_kwargs: dict = {"echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
                # a single shared connection, otherwise every checkout sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_engine(url, **engine_kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def create_all(self) -> None:
        # make sure every model is registered on Base.metadata
        from support_inbox.note import models as _note_models  # noqa: F401
        from support_inbox.ticket import models as _ticket_models  # noqa: F401
        from support_inbox.user import models as _user_models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise InternalFailure("database unavailable") from exc

    def dispose(self) -> None:
        logger.info("database_disposed", url=self.engine.url.render_as_string(hide_password=True))
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.db


# Common DB dependency
def get_db(request: Request) -> Iterator[Session]:
    with get_database(request).session() as db:
        yield db
