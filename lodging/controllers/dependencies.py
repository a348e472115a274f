"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lodging.services.assignment_service import RoomAssignmentService
from lodging.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from lodging.services.planner_service import AutoAssignmentService
from lodging.services.statistics_service import AssignmentStatisticsService
from lodging.services.validation_service import AssignmentValidationService
from lodging.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)


def _service_from_state(request: Request, attribute: str, label: str):
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


def get_validation_service(request: Request) -> AssignmentValidationService:
    return _service_from_state(request, "validation_service", "Validation service")


def get_assignment_service(request: Request) -> RoomAssignmentService:
    return _service_from_state(request, "assignment_service", "Assignment service")


def get_planner_service(request: Request) -> AutoAssignmentService:
    return _service_from_state(request, "planner_service", "Auto-assignment service")


def get_statistics_service(request: Request) -> AssignmentStatisticsService:
    return _service_from_state(request, "statistics_service", "Statistics service")


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if not auth_service.auth_enabled:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
