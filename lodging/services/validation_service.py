"""Read-only compatibility report for a prospective room assignment."""

from __future__ import annotations

from typing import Optional

from lodging.domain.constraints import accessibility_ok, has_capacity, sex_compatible
from lodging.domain.errors import AttendeeNotFoundError, RoomNotFoundError
from lodging.domain.models import (
    Attendee,
    AttendeeDetails,
    RoomDetails,
    RoomSexType,
    RoomSnapshot,
    ValidationReport,
)
from lodging.repository.data_repository import DataRepository
from lodging.utils.config import Settings, get_settings
from lodging.utils.logger import get_logger


logger = get_logger(__name__)


def build_validation_report(
    attendee: Attendee,
    snapshot: RoomSnapshot,
    current_room_number: Optional[str] = None,
) -> ValidationReport:
    """Evaluate hard errors and soft warnings without touching the store."""
    room = snapshot.room
    errors: list[str] = []
    warnings: list[str] = []

    if not has_capacity(room, snapshot.occupants):
        errors.append("Room is at full capacity")

    if attendee.room_id == room.room_id:
        errors.append("Attendee is already assigned to this room")

    if not sex_compatible(attendee, room):
        errors.append(
            f"Room is designated for {room.sex_type.value} but attendee is {attendee.sex.value}"
        )

    if room.sex_type is RoomSexType.MIXED and snapshot.occupants:
        occupant_sexes = {occupant.sex for occupant in snapshot.occupants}
        if len(occupant_sexes) == 1:
            (present_sex,) = occupant_sexes
            if present_sex is not attendee.sex:
                warnings.append(
                    f"Room currently occupied by {present_sex.value} attendees. "
                    "Mixed sex assignment in MIXED room."
                )

    if attendee.is_vip and not room.is_vip:
        warnings.append("VIP attendee being assigned to non-VIP room")

    if not accessibility_ok(attendee, room):
        warnings.append("Elderly attendee being assigned to non-ground floor room")

    if attendee.room_id is not None and attendee.room_id != room.room_id:
        warnings.append(
            f"Attendee is currently assigned to room {current_room_number}. "
            "This assignment will replace the existing one."
        )

    return ValidationReport(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        room_details=RoomDetails(
            room_number=room.number,
            capacity=room.capacity,
            current_occupancy=snapshot.occupancy,
            available_spaces=snapshot.available_spaces,
            building_name=snapshot.building_name,
            accommodation_name=snapshot.accommodation_name,
            sex_type=room.sex_type,
            floor=room.floor,
            is_accessible=room.is_ground_floor_suitable,
        ),
        attendee_details=AttendeeDetails(
            name=attendee.display_name,
            sex=attendee.sex,
            is_vip=attendee.is_vip,
            is_elderly=attendee.is_elderly,
            currently_assigned=attendee.room_id is not None,
            current_room=current_room_number,
        ),
    )


class AssignmentValidationService:
    """Answers "could this attendee go into this room?" without side effects."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def validate_assignment(self, *, attendee_id: int, room_id: int) -> ValidationReport:
        with self._repository.read_session() as session:
            attendee = session.load_attendee(attendee_id)
            if attendee is None:
                raise AttendeeNotFoundError("Attendee not found")
            snapshot = session.load_room_with_occupants(room_id)
            if snapshot is None:
                raise RoomNotFoundError("Room not found")

            current_room_number: Optional[str] = None
            if attendee.room_id is not None:
                if attendee.room_id == snapshot.room_id:
                    current_room_number = snapshot.room.number
                else:
                    current_room = session.load_room_with_occupants(attendee.room_id)
                    if current_room is not None:
                        current_room_number = current_room.room.number

        report = build_validation_report(attendee, snapshot, current_room_number)
        logger.info(
            "Assignment validation completed | attendee_id=%s | room_id=%s | valid=%s | "
            "errors=%s | warnings=%s",
            attendee_id,
            room_id,
            report.is_valid,
            len(report.errors),
            len(report.warnings),
        )
        return report
