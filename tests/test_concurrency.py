from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from lodging.domain.errors import AssignmentError, AssignmentValidationError
from lodging.repository.data_repository import DataRepository
from lodging.services.assignment_service import RoomAssignmentService
from lodging.services.planner_service import AutoAssignmentService
from lodging.utils.config import get_settings


def _build_repository(tmp_path, filename: str):
    settings = replace(
        get_settings(),
        database_path=tmp_path / filename,
        admin_token=None,
        sqlite_busy_timeout_seconds=10.0,
    )
    repository = DataRepository(settings)
    repository.initialize_database()
    event_id = repository.create_event("Hackathon")
    accommodation_id = repository.create_accommodation(event_id, "City Hostel")
    building_id = repository.create_building(accommodation_id, "Main")
    return settings, repository, event_id, building_id


def _outcome(call):
    try:
        call()
        return "ok"
    except AssignmentError as exc:
        return exc


def _occupancy(repository: DataRepository, room_id: int) -> int:
    with repository.read_session() as session:
        return session.load_room_with_occupants(room_id).occupancy


def test_parallel_single_assignments_never_overfill_room(tmp_path):
    settings, repository, event_id, building_id = _build_repository(tmp_path, "parallel_single.db")
    room_id = repository.create_room(building_id, "301", 3, "MIXED")
    attendee_ids = [
        repository.create_attendee(event_id, f"Racer{index}", "Fast", "FEMALE")
        for index in range(8)
    ]
    service = RoomAssignmentService(repository=repository, settings=settings)

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(
            pool.map(
                lambda attendee_id: _outcome(
                    lambda: service.assign_attendee(attendee_id=attendee_id, room_id=room_id)
                ),
                attendee_ids,
            )
        )

    assert outcomes.count("ok") == 3
    failures = [outcome for outcome in outcomes if outcome != "ok"]
    assert all(isinstance(failure, AssignmentValidationError) for failure in failures)
    assert _occupancy(repository, room_id) == 3
    assert repository.count_assignment_logs() == 3


def test_parallel_bulk_assignments_are_all_or_nothing(tmp_path):
    settings, repository, event_id, building_id = _build_repository(tmp_path, "parallel_bulk.db")
    room_id = repository.create_room(building_id, "302", 3, "MALE")
    groups = [
        [repository.create_attendee(event_id, f"Team{team}", f"Member{slot}", "MALE") for slot in range(2)]
        for team in range(4)
    ]
    service = RoomAssignmentService(repository=repository, settings=settings)

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = list(
            pool.map(
                lambda group: _outcome(lambda: service.bulk_assign(attendee_ids=group, room_id=room_id)),
                groups,
            )
        )

    assert outcomes.count("ok") == 1
    assert _occupancy(repository, room_id) == 2
    with repository.read_session() as session:
        for group, outcome in zip(groups, outcomes):
            rooms = {session.load_attendee(attendee_id).room_id for attendee_id in group}
            assert rooms == ({room_id} if outcome == "ok" else {None})


def test_planner_and_manual_writers_share_capacity(tmp_path):
    settings, repository, event_id, building_id = _build_repository(tmp_path, "mixed_writers.db")
    room_ids = [repository.create_room(building_id, f"40{index}", 2, "MIXED") for index in range(3)]
    manual_ids = [
        repository.create_attendee(event_id, f"Manual{index}", "Walkin", "MALE") for index in range(4)
    ]
    for index in range(4):
        repository.create_attendee(event_id, f"Auto{index}", "Planned", "FEMALE")
    assignments = RoomAssignmentService(repository=repository, settings=settings)
    planner = AutoAssignmentService(repository=repository, settings=settings)

    calls = [lambda: planner.auto_assign(event_id=event_id)]
    calls.extend(
        (lambda attendee_id=attendee_id: assignments.assign_attendee(attendee_id=attendee_id, room_id=room_ids[0]))
        for attendee_id in manual_ids
    )
    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        list(pool.map(_outcome, calls))

    with repository.read_session() as session:
        rooms = session.load_rooms_by_event(event_id)
    assert all(snapshot.occupancy <= snapshot.room.capacity for snapshot in rooms)
    assert sum(snapshot.occupancy for snapshot in rooms) == 6
