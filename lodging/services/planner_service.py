"""Greedy auto-assignment of every unplaced attendee of an event.

The planner walks attendees in priority order and commits each one to the
best-scoring compatible room. It never backtracks, so the outcome depends on
attendee order and room order; both are fixed here so that identical input
always yields identical output.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence

from lodging.domain.constraints import (
    accessibility_ok,
    has_capacity,
    sex_compatible,
    validate_preference_weights,
)
from lodging.domain.errors import AssignmentValidationError, EventNotFoundError
from lodging.domain.models import (
    AssignmentDetail,
    Attendee,
    AutoAssignmentResult,
    PreferenceWeights,
    RoomSnapshot,
)
from lodging.repository.data_repository import DataRepository
from lodging.services.assignment_service import run_with_conflict_retry
from lodging.utils.config import Settings, get_settings
from lodging.utils.logger import get_logger


logger = get_logger(__name__)

NO_SUITABLE_ROOM = "No suitable room found"
SCORE_SCALE = 10.0
UTILIZATION_BONUS_SCALE = 5.0


@dataclass
class _RoomState:
    """Planner-private working copy of a room; occupants grow as we place."""

    snapshot: RoomSnapshot
    occupants: list[Attendee]


def order_by_priority(attendees: Sequence[Attendee]) -> list[Attendee]:
    """VIPs first, then elderly, then sex ascending, then attendee id."""
    return sorted(
        attendees,
        key=lambda attendee: (
            not attendee.is_vip,
            not attendee.is_elderly,
            attendee.sex.value,
            attendee.attendee_id,
        ),
    )


def is_candidate(attendee: Attendee, room_state: _RoomState) -> bool:
    room = room_state.snapshot.room
    if not has_capacity(room, room_state.occupants):
        return False
    if not sex_compatible(attendee, room):
        return False
    return accessibility_ok(attendee, room)


def score_room(
    attendee: Attendee,
    room_state: _RoomState,
    weights: PreferenceWeights,
) -> float:
    room = room_state.snapshot.room
    score = 0.0
    if sex_compatible(attendee, room):
        score += weights.sex * SCORE_SCALE
    if attendee.is_vip and room.is_vip:
        score += weights.room_type * SCORE_SCALE
    if attendee.is_elderly and room.is_ground_floor_suitable:
        score += weights.accessibility * SCORE_SCALE
    # weights.floor has no scoring term.
    score += (len(room_state.occupants) / room.capacity) * UTILIZATION_BONUS_SCALE
    return score


def plan_assignments(
    attendees: Sequence[Attendee],
    rooms: Sequence[RoomSnapshot],
    weights: PreferenceWeights,
) -> list[AssignmentDetail]:
    """Place attendees greedily; pure with respect to its inputs."""
    room_states = [
        _RoomState(snapshot=snapshot, occupants=list(snapshot.occupants))
        for snapshot in rooms
    ]
    details: list[AssignmentDetail] = []

    for attendee in order_by_priority(attendees):
        best_state: Optional[_RoomState] = None
        best_score = -1.0
        for room_state in room_states:
            if not is_candidate(attendee, room_state):
                continue
            score = score_room(attendee, room_state, weights)
            if score > best_score:
                best_score = score
                best_state = room_state

        if best_state is None:
            details.append(
                AssignmentDetail(
                    attendee_id=attendee.attendee_id,
                    attendee_name=attendee.display_name,
                    room_id=None,
                    reason=NO_SUITABLE_ROOM,
                )
            )
            continue

        room = best_state.snapshot.room
        best_state.occupants.append(replace(attendee, room_id=room.room_id))
        details.append(
            AssignmentDetail(
                attendee_id=attendee.attendee_id,
                attendee_name=attendee.display_name,
                room_id=room.room_id,
                room_number=room.number,
                building_name=best_state.snapshot.building_name,
                score=round(best_score, 6),
            )
        )
    return details


def summarize(details: list[AssignmentDetail], dry_run: bool = False) -> AutoAssignmentResult:
    assigned = sum(1 for detail in details if detail.room_id is not None)
    return AutoAssignmentResult(
        total_assigned=assigned,
        total_unassigned=len(details) - assigned,
        assignment_details=details,
        dry_run=dry_run,
    )


class AutoAssignmentService:
    """Runs the planner for one event inside a single write transaction."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def default_weights(self) -> PreferenceWeights:
        return PreferenceWeights(
            sex=self._settings.planner_sex_weight,
            room_type=self._settings.planner_room_type_weight,
            floor=self._settings.planner_floor_weight,
            accessibility=self._settings.planner_accessibility_weight,
        )

    def auto_assign(
        self,
        *,
        event_id: int,
        weights: Optional[PreferenceWeights] = None,
        dry_run: bool = False,
    ) -> AutoAssignmentResult:
        resolved_weights = weights or self.default_weights()
        try:
            validate_preference_weights(resolved_weights)
        except ValueError as exc:
            raise AssignmentValidationError(str(exc)) from exc

        result = run_with_conflict_retry(
            lambda: self._run_once(event_id, resolved_weights, dry_run),
            max_retries=self._settings.assignment_max_retries,
            description=f"auto assign event {event_id}",
        )
        logger.info(
            "Auto-assignment completed | event_id=%s | assigned=%s | unassigned=%s | dry_run=%s",
            event_id,
            result.total_assigned,
            result.total_unassigned,
            dry_run,
        )
        return result

    def _run_once(
        self,
        event_id: int,
        weights: PreferenceWeights,
        dry_run: bool,
    ) -> AutoAssignmentResult:
        session_factory = self._repository.read_session if dry_run else self._repository.write_session
        with session_factory() as session:
            if not session.event_exists(event_id):
                raise EventNotFoundError("Event not found")
            attendees = session.load_attendees_by_event(event_id, unassigned_only=True)
            rooms = session.load_available_rooms_by_event(event_id)
            details = plan_assignments(attendees, rooms, weights)

            if dry_run:
                return summarize(details, dry_run=True)

            placed = [detail for detail in details if detail.room_id is not None]
            for detail in placed:
                session.set_attendee_room(
                    detail.attendee_id,
                    detail.room_id,
                    expected_room_id=None,
                )
            session.append_assignment_log(
                [(detail.attendee_id, event_id, None, detail.room_id) for detail in placed],
                operation="AUTO",
            )
        return summarize(details)
