from __future__ import annotations

from dataclasses import replace

import pytest

from lodging.domain.errors import (
    AssignmentConflictError,
    AssignmentValidationError,
    AttendeeNotFoundError,
    RoomNotFoundError,
)
from lodging.repository.data_repository import DataRepository
from lodging.services.assignment_service import RoomAssignmentService, run_with_conflict_retry
from lodging.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        admin_token=None,
        assignment_max_retries=2,
    )


def _build_service(tmp_path, filename: str) -> tuple[DataRepository, RoomAssignmentService]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    return repository, RoomAssignmentService(repository=repository, settings=settings)


def _create_building(repository: DataRepository, event_name: str = "Spring Conference") -> tuple[int, int]:
    event_id = repository.create_event(event_name)
    accommodation_id = repository.create_accommodation(event_id, "Harbor Hotel")
    building_id = repository.create_building(accommodation_id, "Tower A")
    return event_id, building_id


def _occupancy(repository: DataRepository, room_id: int) -> int:
    with repository.read_session() as session:
        return session.load_room_with_occupants(room_id).occupancy


def _room_of(repository: DataRepository, attendee_id: int):
    with repository.read_session() as session:
        return session.load_attendee(attendee_id).room_id


def test_room_fills_to_capacity_then_rejects(tmp_path):
    repository, service = _build_service(tmp_path, "capacity.db")
    event_id, building_id = _create_building(repository)
    room_id = repository.create_room(building_id, "101", 2, "FEMALE")
    x, y, z = (
        repository.create_attendee(event_id, name, "Smith", "FEMALE")
        for name in ("Xena", "Yara", "Zoe")
    )

    service.assign_attendee(attendee_id=x, room_id=room_id)
    assert _occupancy(repository, room_id) == 1
    service.assign_attendee(attendee_id=y, room_id=room_id)
    assert _occupancy(repository, room_id) == 2

    with pytest.raises(AssignmentValidationError, match="Room is at full capacity"):
        service.assign_attendee(attendee_id=z, room_id=room_id)
    assert _occupancy(repository, room_id) == 2
    assert _room_of(repository, z) is None


def test_sex_designated_room_rejects_other_sex_even_when_empty(tmp_path):
    repository, service = _build_service(tmp_path, "sex.db")
    event_id, building_id = _create_building(repository)
    room_id = repository.create_room(building_id, "102", 4, "MALE")
    attendee_id = repository.create_attendee(event_id, "Beth", "Jones", "FEMALE")

    with pytest.raises(AssignmentValidationError, match="Room is designated for MALE attendees only"):
        service.assign_attendee(attendee_id=attendee_id, room_id=room_id)
    assert _occupancy(repository, room_id) == 0
    assert _room_of(repository, attendee_id) is None


def test_room_from_other_event_is_rejected(tmp_path):
    repository, service = _build_service(tmp_path, "cross_event.db")
    event_id, _ = _create_building(repository, "Event One")
    _, other_building_id = _create_building(repository, "Event Two")
    room_id = repository.create_room(other_building_id, "900", 2, "MIXED")
    attendee_id = repository.create_attendee(event_id, "Sam", "Lee", "MALE")

    with pytest.raises(AssignmentValidationError, match="Room does not belong to the same event"):
        service.assign_attendee(attendee_id=attendee_id, room_id=room_id)


def test_assigning_to_current_room_is_rejected(tmp_path):
    repository, service = _build_service(tmp_path, "same_room.db")
    event_id, building_id = _create_building(repository)
    room_id = repository.create_room(building_id, "103", 2, "MIXED")
    attendee_id = repository.create_attendee(event_id, "Kim", "Park", "FEMALE")
    service.assign_attendee(attendee_id=attendee_id, room_id=room_id)

    with pytest.raises(AssignmentValidationError, match="already assigned to this room"):
        service.assign_attendee(attendee_id=attendee_id, room_id=room_id)
    assert _occupancy(repository, room_id) == 1


def test_reassignment_moves_attendee_and_logs_history(tmp_path):
    repository, service = _build_service(tmp_path, "reassign.db")
    event_id, building_id = _create_building(repository)
    first_room = repository.create_room(building_id, "201", 2, "MALE")
    second_room = repository.create_room(building_id, "202", 2, "MIXED")
    attendee_id = repository.create_attendee(event_id, "Tom", "Hardy", "MALE")

    service.assign_attendee(attendee_id=attendee_id, room_id=first_room)
    result = service.assign_attendee(attendee_id=attendee_id, room_id=second_room)

    assert result.previous_room_id == first_room
    assert result.room_id == second_room
    assert result.room_number == "202"
    assert result.building_name == "Tower A"
    assert _occupancy(repository, first_room) == 0
    assert _occupancy(repository, second_room) == 1
    with repository.read_session() as session:
        history = session.list_assignment_logs(event_id, attendee_id=attendee_id)
    assert [(entry.previous_room_id, entry.new_room_id, entry.operation) for entry in history] == [
        (None, first_room, "ASSIGN"),
        (first_room, second_room, "ASSIGN"),
    ]


def test_manual_assignment_allows_soft_preference_violations(tmp_path):
    repository, service = _build_service(tmp_path, "soft.db")
    event_id, building_id = _create_building(repository)
    room_id = repository.create_room(
        building_id, "301", 2, "FEMALE", floor=3, is_ground_floor_suitable=False, is_vip=False
    )
    attendee_id = repository.create_attendee(
        event_id, "Olga", "Petrova", "FEMALE", is_vip=True, is_elderly=True
    )

    result = service.assign_attendee(attendee_id=attendee_id, room_id=room_id)

    assert result.room_id == room_id
    assert _room_of(repository, attendee_id) == room_id


def test_clearing_room_unassigns_and_logs_once(tmp_path):
    repository, service = _build_service(tmp_path, "clear.db")
    event_id, building_id = _create_building(repository)
    room_id = repository.create_room(building_id, "104", 2, "MIXED")
    attendee_id = repository.create_attendee(event_id, "Ana", "Silva", "FEMALE")
    service.assign_attendee(attendee_id=attendee_id, room_id=room_id)

    result = service.assign_attendee(attendee_id=attendee_id, room_id=None)
    again = service.assign_attendee(attendee_id=attendee_id, room_id=None)

    assert result.previous_room_id == room_id
    assert result.room_id is None
    assert again.previous_room_id is None
    assert _occupancy(repository, room_id) == 0
    with repository.read_session() as session:
        operations = [entry.operation for entry in session.list_assignment_logs(event_id)]
    assert operations == ["ASSIGN", "CLEAR"]


def test_missing_entities_raise_not_found(tmp_path):
    repository, service = _build_service(tmp_path, "missing.db")
    event_id, building_id = _create_building(repository)
    room_id = repository.create_room(building_id, "105", 2, "MIXED")
    attendee_id = repository.create_attendee(event_id, "Ivan", "Ivanov", "MALE")

    with pytest.raises(AttendeeNotFoundError):
        service.assign_attendee(attendee_id=4242, room_id=room_id)
    with pytest.raises(AttendeeNotFoundError):
        service.assign_attendee(attendee_id=4242, room_id=None)
    with pytest.raises(RoomNotFoundError):
        service.assign_attendee(attendee_id=attendee_id, room_id=4242)


def test_deleting_attendee_vacates_room(tmp_path):
    repository, service = _build_service(tmp_path, "delete.db")
    event_id, building_id = _create_building(repository)
    room_id = repository.create_room(building_id, "106", 1, "MIXED")
    leaving = repository.create_attendee(event_id, "Leo", "Left", "MALE")
    arriving = repository.create_attendee(event_id, "Ari", "Arrived", "FEMALE")
    service.assign_attendee(attendee_id=leaving, room_id=room_id)

    assert repository.delete_attendee(leaving)
    service.assign_attendee(attendee_id=arriving, room_id=room_id)

    assert _occupancy(repository, room_id) == 1


def test_compare_and_swap_rejects_stale_expectation(tmp_path):
    repository, service = _build_service(tmp_path, "cas.db")
    event_id, building_id = _create_building(repository)
    first_room = repository.create_room(building_id, "107", 2, "MIXED")
    second_room = repository.create_room(building_id, "108", 2, "MIXED")
    attendee_id = repository.create_attendee(event_id, "Max", "Planck", "MALE")
    service.assign_attendee(attendee_id=attendee_id, room_id=first_room)

    with pytest.raises(AssignmentConflictError):
        with repository.write_session() as session:
            session.set_attendee_room(attendee_id, second_room, expected_room_id=None)

    assert _room_of(repository, attendee_id) == first_room


def test_commit_time_capacity_check_rolls_back_whole_session(tmp_path):
    repository, _ = _build_service(tmp_path, "overflow.db")
    event_id, building_id = _create_building(repository)
    room_id = repository.create_room(building_id, "109", 1, "MIXED")
    attendee_ids = [
        repository.create_attendee(event_id, f"Guest{index}", "Crowd", "MALE")
        for index in range(2)
    ]

    with pytest.raises(AssignmentConflictError):
        with repository.write_session() as session:
            session.set_many_attendee_rooms(attendee_ids, room_id)

    assert _occupancy(repository, room_id) == 0


def test_conflict_retry_reruns_until_success():
    calls = []

    def flaky() -> str:
        calls.append(1)
        if len(calls) < 3:
            raise AssignmentConflictError("lost race")
        return "done"

    assert run_with_conflict_retry(flaky, max_retries=2, description="flaky") == "done"
    assert len(calls) == 3


def test_conflict_retry_gives_up_after_limit():
    calls = []

    def always_conflicts() -> None:
        calls.append(1)
        raise AssignmentConflictError("lost race")

    with pytest.raises(AssignmentConflictError):
        run_with_conflict_retry(always_conflicts, max_retries=2, description="doomed")
    assert len(calls) == 3


def test_validation_errors_are_not_retried():
    calls = []

    def invalid() -> None:
        calls.append(1)
        raise AssignmentValidationError("Room is at full capacity")

    with pytest.raises(AssignmentValidationError):
        run_with_conflict_retry(invalid, max_retries=5, description="invalid")
    assert len(calls) == 1
