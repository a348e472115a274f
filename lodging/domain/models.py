"""Domain models for attendee lodging and room assignment."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Sex(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class RoomSexType(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    MIXED = "MIXED"


@dataclass(frozen=True)
class Attendee:
    attendee_id: int
    event_id: int
    first_name: str
    last_name: str
    sex: Sex
    is_vip: bool = False
    is_elderly: bool = False
    is_leader: bool = False
    email: Optional[str] = None
    room_id: Optional[int] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Room:
    room_id: int
    building_id: int
    number: str
    capacity: int
    sex_type: RoomSexType
    floor: int = 0
    is_available: bool = True
    is_ground_floor_suitable: bool = False
    is_vip: bool = False


@dataclass(frozen=True)
class RoomSnapshot:
    """A room as seen at read time, with its containment and occupants."""

    room: Room
    event_id: int
    building_name: str
    accommodation_name: str
    occupants: tuple[Attendee, ...] = ()

    @property
    def room_id(self) -> int:
        return self.room.room_id

    @property
    def occupancy(self) -> int:
        return len(self.occupants)

    @property
    def available_spaces(self) -> int:
        return self.room.capacity - self.occupancy


@dataclass(frozen=True)
class PreferenceWeights:
    """Planner scoring multipliers; `floor` is accepted but not scored."""

    sex: float = 0.8
    room_type: float = 0.6
    floor: float = 0.4
    accessibility: float = 1.0


@dataclass(frozen=True)
class RoomDetails:
    room_number: str
    capacity: int
    current_occupancy: int
    available_spaces: int
    building_name: str
    accommodation_name: str
    sex_type: RoomSexType
    floor: int
    is_accessible: bool


@dataclass(frozen=True)
class AttendeeDetails:
    name: str
    sex: Sex
    is_vip: bool
    is_elderly: bool
    currently_assigned: bool
    current_room: Optional[str]


@dataclass(frozen=True)
class ValidationReport:
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    room_details: RoomDetails
    attendee_details: AttendeeDetails

    @property
    def recommended_action(self) -> str:
        if self.is_valid:
            return "Assignment can proceed"
        return "Assignment should not proceed due to errors"


@dataclass(frozen=True)
class SingleAssignmentResult:
    attendee_id: int
    previous_room_id: Optional[int]
    room_id: Optional[int]
    room_number: Optional[str] = None
    building_name: Optional[str] = None


@dataclass(frozen=True)
class BulkAssignmentResult:
    assigned_count: int
    room_id: int
    room_number: str
    building_name: str


@dataclass(frozen=True)
class AssignmentDetail:
    attendee_id: int
    attendee_name: str
    room_id: Optional[int]
    room_number: Optional[str] = None
    building_name: Optional[str] = None
    score: Optional[float] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class AutoAssignmentResult:
    total_assigned: int
    total_unassigned: int
    assignment_details: list[AssignmentDetail] = field(default_factory=list)
    dry_run: bool = False


@dataclass(frozen=True)
class AssignmentLogEntry:
    log_id: int
    attendee_id: int
    event_id: int
    previous_room_id: Optional[int]
    new_room_id: Optional[int]
    operation: str
    created_at: str
