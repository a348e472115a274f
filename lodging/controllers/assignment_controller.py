"""HTTP controller layer for the room assignment engine operations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from lodging.controllers.dependencies import (
    get_assignment_service,
    get_planner_service,
    get_validation_service,
    require_admin,
)
from lodging.domain.errors import (
    AssignmentConflictError,
    AssignmentValidationError,
    NotFoundError,
)
from lodging.domain.models import PreferenceWeights, RoomSexType, Sex
from lodging.repository.data_repository import RepositoryError
from lodging.services.assignment_service import RoomAssignmentService
from lodging.services.planner_service import AutoAssignmentService
from lodging.services.validation_service import AssignmentValidationService
from lodging.utils.config import get_settings
from lodging.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(
    prefix="/assignments",
    tags=["assignments"],
    dependencies=[Depends(require_admin)],
)


class ValidateAssignmentRequest(BaseModel):
    attendee_id: int = Field(gt=0)
    room_id: int = Field(gt=0)


class RoomDetailsResponse(BaseModel):
    room_number: str
    capacity: int = Field(ge=1)
    current_occupancy: int = Field(ge=0)
    available_spaces: int
    building_name: str
    accommodation_name: str
    sex_type: RoomSexType
    floor: int
    is_accessible: bool


class AttendeeDetailsResponse(BaseModel):
    name: str
    sex: Sex
    is_vip: bool
    is_elderly: bool
    currently_assigned: bool
    current_room: Optional[str] = None


class ValidationResultResponse(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    room_details: RoomDetailsResponse
    attendee_details: AttendeeDetailsResponse


class ValidateAssignmentResponse(BaseModel):
    validation: ValidationResultResponse
    recommended_action: str
    timestamp: datetime


class AssignRoomRequest(BaseModel):
    """A null room_id clears the attendee's current room."""

    room_id: Optional[int] = Field(default=None, gt=0)


class SingleAssignmentResponse(BaseModel):
    attendee_id: int
    previous_room_id: Optional[int] = None
    room_id: Optional[int] = None
    room_number: Optional[str] = None
    building_name: Optional[str] = None
    message: str


class BulkAssignRequest(BaseModel):
    attendee_ids: list[int] = Field(min_length=1)
    room_id: int = Field(gt=0)

    @field_validator("attendee_ids")
    @classmethod
    def validate_attendee_ids(cls, value: list[int]) -> list[int]:
        for attendee_id in value:
            if attendee_id <= 0:
                raise ValueError("attendee_ids values must be positive integers")
        return value


class BulkAssignResponse(BaseModel):
    assigned_count: int = Field(ge=0)
    room_id: int
    room_number: str
    building_name: str


class PreferenceWeightsRequest(BaseModel):
    sex: float = Field(default=settings.planner_sex_weight, ge=0.0, le=1.0)
    room_type: float = Field(default=settings.planner_room_type_weight, ge=0.0, le=1.0)
    floor: float = Field(default=settings.planner_floor_weight, ge=0.0, le=1.0)
    accessibility: float = Field(
        default=settings.planner_accessibility_weight,
        ge=0.0,
        le=1.0,
    )


class AutoAssignRequest(BaseModel):
    preference_weights: Optional[PreferenceWeightsRequest] = None
    dry_run: bool = False


class AssignmentDetailResponse(BaseModel):
    attendee_id: int
    attendee_name: str
    room_id: Optional[int] = None
    room_number: Optional[str] = None
    building_name: Optional[str] = None
    score: Optional[float] = None
    reason: Optional[str] = None


class AutoAssignResponse(BaseModel):
    total_assigned: int = Field(ge=0)
    total_unassigned: int = Field(ge=0)
    assignment_details: list[AssignmentDetailResponse]
    dry_run: bool


@router.post(
    "/validate",
    response_model=ValidateAssignmentResponse,
    status_code=status.HTTP_200_OK,
)
def validate_assignment(
    payload: ValidateAssignmentRequest,
    service: AssignmentValidationService = Depends(get_validation_service),
) -> ValidateAssignmentResponse:
    """Report whether an assignment would succeed, without performing it."""
    try:
        report = service.validate_assignment(
            attendee_id=payload.attendee_id,
            room_id=payload.room_id,
        )
        return ValidateAssignmentResponse(
            validation=ValidationResultResponse(
                is_valid=report.is_valid,
                errors=report.errors,
                warnings=report.warnings,
                room_details=RoomDetailsResponse(**vars(report.room_details)),
                attendee_details=AttendeeDetailsResponse(**vars(report.attendee_details)),
            ),
            recommended_action=report.recommended_action,
            timestamp=datetime.now(timezone.utc),
        )
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except RepositoryError as exc:
        logger.exception("Storage failure during assignment validation")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to validate assignment",
        ) from exc


@router.put(
    "/attendee/{attendee_id}/room",
    response_model=SingleAssignmentResponse,
    status_code=status.HTTP_200_OK,
)
def assign_attendee_to_room(
    attendee_id: int,
    payload: AssignRoomRequest,
    service: RoomAssignmentService = Depends(get_assignment_service),
) -> SingleAssignmentResponse:
    try:
        result = service.assign_attendee(
            attendee_id=attendee_id,
            room_id=payload.room_id,
        )
        return SingleAssignmentResponse(
            attendee_id=result.attendee_id,
            previous_room_id=result.previous_room_id,
            room_id=result.room_id,
            room_number=result.room_number,
            building_name=result.building_name,
            message=(
                "Assignment updated successfully"
                if result.room_id is not None
                else "Attendee unassigned successfully"
            ),
        )
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except AssignmentValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except AssignmentConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except RepositoryError as exc:
        logger.exception("Storage failure during assignment")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update assignment",
        ) from exc


@router.post(
    "/bulk",
    response_model=BulkAssignResponse,
    status_code=status.HTTP_200_OK,
)
def bulk_assign_attendees(
    payload: BulkAssignRequest,
    service: RoomAssignmentService = Depends(get_assignment_service),
) -> BulkAssignResponse:
    try:
        result = service.bulk_assign(
            attendee_ids=payload.attendee_ids,
            room_id=payload.room_id,
        )
        return BulkAssignResponse(**vars(result))
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except AssignmentValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except AssignmentConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except RepositoryError as exc:
        logger.exception("Storage failure during bulk assignment")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to perform bulk assignment",
        ) from exc


@router.post(
    "/event/{event_id}/auto-assign",
    response_model=AutoAssignResponse,
    status_code=status.HTTP_200_OK,
)
def auto_assign_rooms(
    event_id: int,
    payload: AutoAssignRequest | None = None,
    service: AutoAssignmentService = Depends(get_planner_service),
) -> AutoAssignResponse:
    """Place every unassigned attendee of the event in one greedy pass."""
    request = payload or AutoAssignRequest()
    weights = (
        PreferenceWeights(**request.preference_weights.model_dump())
        if request.preference_weights is not None
        else None
    )
    try:
        result = service.auto_assign(
            event_id=event_id,
            weights=weights,
            dry_run=request.dry_run,
        )
        return AutoAssignResponse(
            total_assigned=result.total_assigned,
            total_unassigned=result.total_unassigned,
            assignment_details=[
                AssignmentDetailResponse(**vars(detail))
                for detail in result.assignment_details
            ],
            dry_run=result.dry_run,
        )
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except AssignmentValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except AssignmentConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except RepositoryError as exc:
        logger.exception("Storage failure during auto-assignment")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to perform auto-assignment",
        ) from exc
