"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and engine services, registers routers, and runs
startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from lodging.controllers.assignment_controller import router as assignment_router
from lodging.controllers.reporting_controller import router as reporting_router
from lodging.repository.data_repository import DataRepository
from lodging.services.assignment_service import RoomAssignmentService
from lodging.services.auth_service import AuthService
from lodging.services.planner_service import AutoAssignmentService
from lodging.services.statistics_service import AssignmentStatisticsService
from lodging.services.validation_service import AssignmentValidationService
from lodging.utils.config import Settings, get_settings
from lodging.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service receives the same repository instance; nothing below this
    function creates its own store handle.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # --- Repository (SQLite connection factory, one connection per unit of work) ---
    repository = DataRepository(settings)

    # --- Services (business logic, no direct DB access) ---
    validation_service = AssignmentValidationService(repository=repository, settings=settings)
    assignment_service = RoomAssignmentService(repository=repository, settings=settings)
    planner_service = AutoAssignmentService(repository=repository, settings=settings)
    statistics_service = AssignmentStatisticsService(repository=repository, settings=settings)
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(reporting_router)
    app.include_router(assignment_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.validation_service = validation_service
    app.state.assignment_service = assignment_service
    app.state.planner_service = planner_service
    app.state.statistics_service = statistics_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before seeding; seeding is skipped once any event exists.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_synthetic_data:
        logger.info("Startup: seeding demo event (skipped if events exist)")
        repository.seed_synthetic_data()

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
