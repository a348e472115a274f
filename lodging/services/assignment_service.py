"""Manual room assignment: single attendee moves and all-or-nothing bulk moves.

Every operation validates and writes inside one write session. Validation
always completes before the first write, and any failure after that point rolls
the whole session back, so callers never observe a half-applied move.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence, TypeVar

from lodging.domain.constraints import has_capacity, same_event, sex_compatible
from lodging.domain.errors import (
    AssignmentConflictError,
    AssignmentValidationError,
    AttendeeNotFoundError,
    RoomNotFoundError,
)
from lodging.domain.models import BulkAssignmentResult, SingleAssignmentResult
from lodging.repository.data_repository import DataRepository, RepositorySession
from lodging.utils.config import Settings, get_settings
from lodging.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


def run_with_conflict_retry(
    operation: Callable[[], T],
    *,
    max_retries: int,
    description: str,
) -> T:
    """Re-run `operation` from scratch while it keeps losing write races."""
    attempt = 0
    while True:
        try:
            return operation()
        except AssignmentConflictError as exc:
            if attempt >= max_retries:
                logger.warning(
                    "Conflict retries exhausted | operation=%s | attempts=%s | detail=%s",
                    description,
                    attempt + 1,
                    exc,
                )
                raise
            attempt += 1
            logger.warning(
                "Write conflict, retrying | operation=%s | attempt=%s | detail=%s",
                description,
                attempt,
                exc,
            )


class RoomAssignmentService:
    """Single and bulk operators; manual placements skip soft preferences."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def assign_attendee(
        self,
        *,
        attendee_id: int,
        room_id: Optional[int],
    ) -> SingleAssignmentResult:
        """Move one attendee into `room_id`, or clear their room when None."""
        return run_with_conflict_retry(
            lambda: self._assign_once(attendee_id, room_id),
            max_retries=self._settings.assignment_max_retries,
            description=f"assign attendee {attendee_id}",
        )

    def bulk_assign(
        self,
        *,
        attendee_ids: Sequence[int],
        room_id: int,
    ) -> BulkAssignmentResult:
        ids = list(attendee_ids)
        if not ids:
            raise AssignmentValidationError("attendee_ids must contain at least one attendee")
        if len(set(ids)) != len(ids):
            raise AssignmentValidationError("attendee_ids must not contain duplicates")
        return run_with_conflict_retry(
            lambda: self._bulk_assign_once(ids, room_id),
            max_retries=self._settings.assignment_max_retries,
            description=f"bulk assign {len(ids)} attendees to room {room_id}",
        )

    def _assign_once(
        self,
        attendee_id: int,
        room_id: Optional[int],
    ) -> SingleAssignmentResult:
        with self._repository.write_session() as session:
            attendee = session.load_attendee(attendee_id)
            if attendee is None:
                raise AttendeeNotFoundError("Attendee not found")

            if room_id is None:
                return self._clear_room(session, attendee_id, attendee.event_id, attendee.room_id)

            snapshot = session.load_room_with_occupants(room_id)
            if snapshot is None:
                raise RoomNotFoundError("Room not found")
            room = snapshot.room

            if not same_event(attendee, snapshot.event_id):
                raise AssignmentValidationError("Room does not belong to the same event")
            if attendee.room_id == room.room_id:
                raise AssignmentValidationError("Attendee is already assigned to this room")
            if not has_capacity(room, snapshot.occupants):
                raise AssignmentValidationError("Room is at full capacity")
            if not sex_compatible(attendee, room):
                raise AssignmentValidationError(
                    f"Room is designated for {room.sex_type.value} attendees only"
                )

            session.set_attendee_room(
                attendee_id,
                room.room_id,
                expected_room_id=attendee.room_id,
            )
            session.append_assignment_log(
                [(attendee_id, attendee.event_id, attendee.room_id, room.room_id)],
                operation="ASSIGN",
            )

        logger.info(
            "Attendee assigned | attendee_id=%s | name=%s | previous_room_id=%s | "
            "room_id=%s | room_number=%s",
            attendee_id,
            attendee.display_name,
            attendee.room_id,
            room.room_id,
            room.number,
        )
        return SingleAssignmentResult(
            attendee_id=attendee_id,
            previous_room_id=attendee.room_id,
            room_id=room.room_id,
            room_number=room.number,
            building_name=snapshot.building_name,
        )

    @staticmethod
    def _clear_room(
        session: RepositorySession,
        attendee_id: int,
        event_id: int,
        previous_room_id: Optional[int],
    ) -> SingleAssignmentResult:
        if previous_room_id is not None:
            session.set_attendee_room(attendee_id, None, expected_room_id=previous_room_id)
            session.append_assignment_log(
                [(attendee_id, event_id, previous_room_id, None)],
                operation="CLEAR",
            )
            logger.info(
                "Attendee unassigned | attendee_id=%s | previous_room_id=%s",
                attendee_id,
                previous_room_id,
            )
        return SingleAssignmentResult(
            attendee_id=attendee_id,
            previous_room_id=previous_room_id,
            room_id=None,
        )

    def _bulk_assign_once(
        self,
        attendee_ids: list[int],
        room_id: int,
    ) -> BulkAssignmentResult:
        with self._repository.write_session() as session:
            snapshot = session.load_room_with_occupants(room_id)
            if snapshot is None:
                raise RoomNotFoundError("Room not found")
            room = snapshot.room

            attendees = session.load_attendees_by_event(
                snapshot.event_id,
                attendee_ids=attendee_ids,
            )
            if len(attendees) != len(attendee_ids):
                raise AssignmentValidationError(
                    "Some attendees not found or do not belong to this event"
                )

            available_capacity = snapshot.available_spaces
            if len(attendee_ids) > available_capacity:
                raise AssignmentValidationError(
                    f"Room only has {available_capacity} available spaces"
                )

            if any(not sex_compatible(attendee, room) for attendee in attendees):
                raise AssignmentValidationError(
                    f"Room is designated for {room.sex_type.value} attendees only"
                )

            session.set_many_attendee_rooms(attendee_ids, room.room_id)
            session.append_assignment_log(
                [
                    (attendee.attendee_id, attendee.event_id, attendee.room_id, room.room_id)
                    for attendee in attendees
                ],
                operation="BULK",
            )

        logger.info(
            "Bulk assignment completed | room_id=%s | room_number=%s | assigned=%s",
            room.room_id,
            room.number,
            len(attendees),
        )
        return BulkAssignmentResult(
            assigned_count=len(attendees),
            room_id=room.room_id,
            room_number=room.number,
            building_name=snapshot.building_name,
        )
