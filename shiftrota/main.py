import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shiftrota.core.config import settings
from shiftrota.core.database import Database
from shiftrota.core.errors import register_error_handlers
from shiftrota.api.v1.rotation_patterns import router as rotation_patterns_router, assignments_router
from shiftrota.api.v1.rotation_history import router as rotation_history_router

API_PREFIX = "/api/v1"


def create_app(database: Database | None = None) -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if database is None:
        database = Database(settings.DATABASE_URL, echo=settings.DEBUG)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables on startup (SQLite / local development)
        await database.create_tables()
        yield
        await database.dispose()

    app = FastAPI(
        title="ShiftRota API",
        description="Shift rotation patterns, assignments and generated rotation history",
        version="1.0.0",
        lifespan=lifespan,
        # Swagger UI only when DEBUG is set
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(rotation_patterns_router, prefix=API_PREFIX)
    app.include_router(assignments_router, prefix=API_PREFIX)
    app.include_router(rotation_history_router, prefix=API_PREFIX)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "ShiftRota API", "version": "1.0.0"}

    return app


app = create_app()
