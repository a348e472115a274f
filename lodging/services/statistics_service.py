"""Read-only occupancy and assignment reporting for an event."""

from __future__ import annotations

from typing import Any, Optional, Sequence

import pandas as pd

from lodging.domain.errors import EventNotFoundError
from lodging.domain.models import AssignmentLogEntry, Attendee, RoomSnapshot, Sex
from lodging.repository.data_repository import DataRepository
from lodging.utils.config import Settings, get_settings
from lodging.utils.logger import get_logger


logger = get_logger(__name__)

_ATTENDEE_FRAME_COLUMNS = ["attendee_id", "sex", "is_vip", "is_elderly", "assigned"]
_ROOM_FRAME_COLUMNS = ["room_id", "capacity", "occupancy"]


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return float(part) / float(whole) * 100.0


def _attendee_frame(attendees: Sequence[Attendee]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [
            {
                "attendee_id": attendee.attendee_id,
                "sex": attendee.sex.value,
                "is_vip": attendee.is_vip,
                "is_elderly": attendee.is_elderly,
                "assigned": attendee.room_id is not None,
            }
            for attendee in attendees
        ],
        columns=_ATTENDEE_FRAME_COLUMNS,
    )
    return frame.astype({"is_vip": bool, "is_elderly": bool, "assigned": bool})


def _room_frame(rooms: Sequence[RoomSnapshot]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [
            {
                "room_id": snapshot.room_id,
                "capacity": snapshot.room.capacity,
                "occupancy": snapshot.occupancy,
            }
            for snapshot in rooms
        ],
        columns=_ROOM_FRAME_COLUMNS,
    )
    return frame.astype({"capacity": int, "occupancy": int})


def _total_and_assigned(frame: pd.DataFrame, mask: pd.Series) -> dict[str, int]:
    subset = frame[mask]
    return {
        "total": int(len(subset)),
        "assigned": int(subset["assigned"].sum()),
    }


def compute_assignment_statistics(
    attendees: Sequence[Attendee],
    rooms: Sequence[RoomSnapshot],
) -> dict[str, Any]:
    attendee_frame = _attendee_frame(attendees)
    room_frame = _room_frame(rooms)

    total_attendees = int(len(attendee_frame))
    assigned_attendees = int(attendee_frame["assigned"].sum())
    total_capacity = int(room_frame["capacity"].sum())
    current_occupancy = int(room_frame["occupancy"].sum())
    occupied_rooms = int((room_frame["occupancy"] > 0).sum())

    return {
        "attendees": {
            "total": total_attendees,
            "assigned": assigned_attendees,
            "unassigned": total_attendees - assigned_attendees,
            "assignment_rate": _percentage(assigned_attendees, total_attendees),
        },
        "rooms": {
            "total": int(len(room_frame)),
            "occupied": occupied_rooms,
            "available": int(len(room_frame)) - occupied_rooms,
            "total_capacity": total_capacity,
            "current_occupancy": current_occupancy,
            "occupancy_rate": _percentage(current_occupancy, total_capacity),
        },
        "by_sex": {
            sex.value: _total_and_assigned(attendee_frame, attendee_frame["sex"] == sex.value)
            for sex in Sex
        },
        "special_requirements": {
            "vip": _total_and_assigned(attendee_frame, attendee_frame["is_vip"]),
            "elderly": _total_and_assigned(attendee_frame, attendee_frame["is_elderly"]),
        },
    }


def build_room_occupancy_rows(rooms: Sequence[RoomSnapshot]) -> list[dict[str, Any]]:
    return [
        {
            "room_id": snapshot.room_id,
            "room_number": snapshot.room.number,
            "building_name": snapshot.building_name,
            "accommodation_name": snapshot.accommodation_name,
            "capacity": snapshot.room.capacity,
            "sex_type": snapshot.room.sex_type.value,
            "floor": snapshot.room.floor,
            "is_available": snapshot.room.is_available,
            "is_ground_floor_suitable": snapshot.room.is_ground_floor_suitable,
            "is_vip": snapshot.room.is_vip,
            "current_occupants": snapshot.occupancy,
            "available_capacity": snapshot.available_spaces,
            "occupancy_rate": _percentage(snapshot.occupancy, snapshot.room.capacity),
        }
        for snapshot in rooms
    ]


def build_assignment_roster(
    attendees: Sequence[Attendee],
    rooms: Sequence[RoomSnapshot],
) -> list[dict[str, Any]]:
    room_by_id = {snapshot.room_id: snapshot for snapshot in rooms}
    ordered = sorted(
        attendees,
        key=lambda attendee: (attendee.last_name, attendee.first_name, attendee.attendee_id),
    )
    rows: list[dict[str, Any]] = []
    for attendee in ordered:
        snapshot = room_by_id.get(attendee.room_id) if attendee.room_id is not None else None
        rows.append(
            {
                "attendee_id": attendee.attendee_id,
                "attendee_name": attendee.display_name,
                "email": attendee.email,
                "sex": attendee.sex.value,
                "is_vip": attendee.is_vip,
                "is_elderly": attendee.is_elderly,
                "is_leader": attendee.is_leader,
                "room_id": attendee.room_id,
                "room_number": snapshot.room.number if snapshot else None,
                "room_capacity": snapshot.room.capacity if snapshot else None,
                "building_name": snapshot.building_name if snapshot else None,
                "accommodation_name": snapshot.accommodation_name if snapshot else None,
                "is_assigned": attendee.room_id is not None,
            }
        )
    return rows


class AssignmentStatisticsService:
    """Derives reporting views from one snapshot-consistent read."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def _load_event_state(self, event_id: int) -> tuple[list[Attendee], list[RoomSnapshot]]:
        with self._repository.read_session() as session:
            if not session.event_exists(event_id):
                raise EventNotFoundError("Event not found")
            attendees = session.load_attendees_by_event(event_id)
            rooms = session.load_rooms_by_event(event_id)
        return attendees, rooms

    def get_statistics(self, *, event_id: int) -> dict[str, Any]:
        attendees, rooms = self._load_event_state(event_id)
        statistics = compute_assignment_statistics(attendees, rooms)
        logger.info(
            "Assignment statistics computed | event_id=%s | assigned=%s/%s",
            event_id,
            statistics["attendees"]["assigned"],
            statistics["attendees"]["total"],
        )
        return statistics

    def list_assignments(self, *, event_id: int) -> dict[str, Any]:
        attendees, rooms = self._load_event_state(event_id)
        roster = build_assignment_roster(attendees, rooms)
        assigned = sum(1 for row in roster if row["is_assigned"])
        return {
            "assignments": roster,
            "statistics": {
                "total_attendees": len(roster),
                "assigned_attendees": assigned,
                "unassigned_attendees": len(roster) - assigned,
                "assignment_rate": _percentage(assigned, len(roster)),
            },
        }

    def list_room_occupancy(self, *, event_id: int) -> list[dict[str, Any]]:
        _, rooms = self._load_event_state(event_id)
        return build_room_occupancy_rows(rooms)

    def list_assignment_history(
        self,
        *,
        event_id: int,
        attendee_id: Optional[int] = None,
    ) -> list[AssignmentLogEntry]:
        with self._repository.read_session() as session:
            if not session.event_exists(event_id):
                raise EventNotFoundError("Event not found")
            return session.list_assignment_logs(event_id, attendee_id=attendee_id)
