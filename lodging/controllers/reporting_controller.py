"""Controller layer for login, health, and read-only assignment reporting."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from lodging.controllers.dependencies import (
    get_auth_service,
    get_statistics_service,
    require_admin,
)
from lodging.domain.errors import EventNotFoundError
from lodging.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from lodging.services.statistics_service import AssignmentStatisticsService
from lodging.utils.config import get_settings
from lodging.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(tags=["reporting"])


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class HealthResponse(BaseModel):
    status: str
    app_name: str
    app_version: str


class AttendeeCounts(BaseModel):
    total: int = Field(ge=0)
    assigned: int = Field(ge=0)
    unassigned: int = Field(ge=0)
    assignment_rate: float = Field(ge=0.0, le=100.0)


class RoomCounts(BaseModel):
    total: int = Field(ge=0)
    occupied: int = Field(ge=0)
    available: int = Field(ge=0)
    total_capacity: int = Field(ge=0)
    current_occupancy: int = Field(ge=0)
    occupancy_rate: float = Field(ge=0.0, le=100.0)


class GroupCounts(BaseModel):
    total: int = Field(ge=0)
    assigned: int = Field(ge=0)


class SpecialRequirementCounts(BaseModel):
    vip: GroupCounts
    elderly: GroupCounts


class StatisticsResponse(BaseModel):
    attendees: AttendeeCounts
    rooms: RoomCounts
    by_sex: dict[str, GroupCounts]
    special_requirements: SpecialRequirementCounts


class RosterRow(BaseModel):
    attendee_id: int
    attendee_name: str
    email: Optional[str] = None
    sex: str
    is_vip: bool
    is_elderly: bool
    is_leader: bool
    room_id: Optional[int] = None
    room_number: Optional[str] = None
    room_capacity: Optional[int] = None
    building_name: Optional[str] = None
    accommodation_name: Optional[str] = None
    is_assigned: bool


class RosterSummary(BaseModel):
    total_attendees: int = Field(ge=0)
    assigned_attendees: int = Field(ge=0)
    unassigned_attendees: int = Field(ge=0)
    assignment_rate: float = Field(ge=0.0, le=100.0)


class RosterResponse(BaseModel):
    assignments: list[RosterRow]
    statistics: RosterSummary


class RoomOccupancyRow(BaseModel):
    room_id: int
    room_number: str
    building_name: str
    accommodation_name: str
    capacity: int = Field(ge=1)
    sex_type: str
    floor: int
    is_available: bool
    is_ground_floor_suitable: bool
    is_vip: bool
    current_occupants: int = Field(ge=0)
    available_capacity: int
    occupancy_rate: float = Field(ge=0.0)


class HistoryRow(BaseModel):
    log_id: int
    attendee_id: int
    event_id: int
    previous_room_id: Optional[int] = None
    new_room_id: Optional[int] = None
    operation: str
    created_at: str


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        app_name=settings.app_name,
        app_version=settings.app_version,
    )


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        bearer = auth_service.login(payload.admin_token)
        return LoginResponse(access_token=bearer)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


@router.get(
    "/assignments/event/{event_id}",
    response_model=RosterResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def get_assignments(
    event_id: int,
    service: AssignmentStatisticsService = Depends(get_statistics_service),
) -> RosterResponse:
    try:
        return RosterResponse(**service.list_assignments(event_id=event_id))
    except EventNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.get(
    "/assignments/event/{event_id}/statistics",
    response_model=StatisticsResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def get_assignment_statistics(
    event_id: int,
    service: AssignmentStatisticsService = Depends(get_statistics_service),
) -> StatisticsResponse:
    try:
        return StatisticsResponse(**service.get_statistics(event_id=event_id))
    except EventNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.get(
    "/assignments/event/{event_id}/history",
    response_model=list[HistoryRow],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def get_assignment_history(
    event_id: int,
    attendee_id: Optional[int] = Query(default=None, gt=0),
    service: AssignmentStatisticsService = Depends(get_statistics_service),
) -> list[HistoryRow]:
    try:
        entries = service.list_assignment_history(
            event_id=event_id,
            attendee_id=attendee_id,
        )
        return [HistoryRow(**vars(entry)) for entry in entries]
    except EventNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.get(
    "/rooms/event/{event_id}",
    response_model=list[RoomOccupancyRow],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def get_rooms_by_event(
    event_id: int,
    service: AssignmentStatisticsService = Depends(get_statistics_service),
) -> list[RoomOccupancyRow]:
    try:
        return [
            RoomOccupancyRow(**row)
            for row in service.list_room_occupancy(event_id=event_id)
        ]
    except EventNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
