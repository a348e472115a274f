"""Capacity and compatibility rules shared by every assignment operator.

These predicates are side-effect free. Each operator decides which of them are
hard failures and which only produce warnings.
"""

from __future__ import annotations

from typing import Sequence

from lodging.domain.models import Attendee, PreferenceWeights, Room, RoomSexType


def has_capacity(room: Room, occupants: Sequence[Attendee]) -> bool:
    return len(occupants) < room.capacity


def sex_compatible(attendee: Attendee, room: Room) -> bool:
    return room.sex_type is RoomSexType.MIXED or room.sex_type.value == attendee.sex.value


def accessibility_ok(attendee: Attendee, room: Room) -> bool:
    return not attendee.is_elderly or room.is_ground_floor_suitable


def same_event(attendee: Attendee, room_event_id: int) -> bool:
    return attendee.event_id == room_event_id


def validate_preference_weights(weights: PreferenceWeights) -> None:
    for name in ("sex", "room_type", "floor", "accessibility"):
        value = getattr(weights, name)
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"preference weight '{name}' must be between 0 and 1")
