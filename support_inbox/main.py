# support_inbox/main.py
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from support_inbox.core.config import Settings, get_settings
from support_inbox.core.database import Database, get_database
from support_inbox.core.errors import register_exception_handlers
from support_inbox.core.logging import setup_logging
from support_inbox.note.routes import router as note_router
from support_inbox.stats.routes import router as stats_router
from support_inbox.ticket.routes import router as ticket_router

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "db", None) is None:
            app.state.db = Database(settings.DATABASE_URL)
        app.state.db.create_all()
        logger.info("app_started", app=settings.APP_NAME, version=settings.APP_VERSION)
        try:
            yield
        finally:
            app.state.db.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESC,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.db = database
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers
    app.include_router(ticket_router)
    app.include_router(note_router)
    app.include_router(stats_router)

    @app.get("/health", tags=["Health"])
    def health(db: Database = Depends(get_database)):
        db.ping()
        return {"status": "ok"}

    return app


app = create_app()
