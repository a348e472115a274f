from __future__ import annotations

from dataclasses import replace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from lodging.controllers.assignment_controller import router as assignment_router
from lodging.controllers.reporting_controller import router as reporting_router
from lodging.repository.data_repository import DataRepository
from lodging.services.assignment_service import RoomAssignmentService
from lodging.services.auth_service import AuthService
from lodging.services.planner_service import AutoAssignmentService
from lodging.services.statistics_service import AssignmentStatisticsService
from lodging.services.validation_service import AssignmentValidationService
from lodging.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str, admin_token: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        synthetic_attendee_count=20,
        admin_token=admin_token,
    )


def _build_test_app(tmp_path, admin_token: str) -> tuple[FastAPI, DataRepository]:
    settings = _build_test_settings(tmp_path, "api_flow.db", admin_token)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_synthetic_data()

    app = FastAPI()
    app.include_router(reporting_router)
    app.include_router(assignment_router)
    app.state.repository = repository
    app.state.validation_service = AssignmentValidationService(repository=repository, settings=settings)
    app.state.assignment_service = RoomAssignmentService(repository=repository, settings=settings)
    app.state.planner_service = AutoAssignmentService(repository=repository, settings=settings)
    app.state.statistics_service = AssignmentStatisticsService(repository=repository, settings=settings)
    app.state.auth_service = AuthService(settings=settings)
    return app, repository


def _login(client: TestClient, admin_token: str) -> dict[str, str]:
    response = client.post("/login", json={"admin_token": admin_token})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_manual_assignment_flow(tmp_path):
    admin_token = "secret-admin-token"
    app, repository = _build_test_app(tmp_path, admin_token)
    event_id = repository.create_event("Board Offsite")
    accommodation_id = repository.create_accommodation(event_id, "Manor House")
    building_id = repository.create_building(accommodation_id, "East")
    suite_id = repository.create_room(building_id, "E1", 2, "FEMALE", floor=1, is_vip=True)
    dorm_id = repository.create_room(building_id, "E2", 3, "MALE")
    alice = repository.create_attendee(event_id, "Alice", "Archer", "FEMALE", is_vip=True)
    bruno = repository.create_attendee(event_id, "Bruno", "Baker", "MALE")
    carl = repository.create_attendee(event_id, "Carl", "Cole", "MALE")
    client = TestClient(app)

    unauthorized = client.post("/assignments/validate", json={"attendee_id": alice, "room_id": suite_id})
    assert unauthorized.status_code == 401

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    headers = _login(client, admin_token)

    validate_response = client.post(
        "/assignments/validate",
        json={"attendee_id": bruno, "room_id": suite_id},
        headers=headers,
    )
    assert validate_response.status_code == 200
    validation_payload = validate_response.json()
    assert validation_payload["validation"]["is_valid"] is False
    assert validation_payload["validation"]["errors"] == [
        "Room is designated for FEMALE but attendee is MALE"
    ]
    assert validation_payload["recommended_action"] == "Assignment should not proceed due to errors"
    assert validation_payload["validation"]["room_details"]["room_number"] == "E1"

    assign_response = client.put(
        f"/assignments/attendee/{alice}/room",
        json={"room_id": suite_id},
        headers=headers,
    )
    assert assign_response.status_code == 200
    assert assign_response.json()["room_number"] == "E1"
    assert assign_response.json()["message"] == "Assignment updated successfully"

    mismatch_response = client.put(
        f"/assignments/attendee/{bruno}/room",
        json={"room_id": suite_id},
        headers=headers,
    )
    assert mismatch_response.status_code == 400
    assert mismatch_response.json()["detail"] == "Room is designated for FEMALE attendees only"

    missing_response = client.put(
        "/assignments/attendee/99999/room",
        json={"room_id": suite_id},
        headers=headers,
    )
    assert missing_response.status_code == 404

    bulk_response = client.post(
        "/assignments/bulk",
        json={"attendee_ids": [bruno, carl], "room_id": dorm_id},
        headers=headers,
    )
    assert bulk_response.status_code == 200
    assert bulk_response.json()["assigned_count"] == 2

    overflow_response = client.post(
        "/assignments/bulk",
        json={"attendee_ids": [bruno, carl], "room_id": dorm_id},
        headers=headers,
    )
    assert overflow_response.status_code == 400
    assert overflow_response.json()["detail"] == "Room only has 1 available spaces"

    empty_bulk = client.post(
        "/assignments/bulk",
        json={"attendee_ids": [], "room_id": dorm_id},
        headers=headers,
    )
    assert empty_bulk.status_code == 422

    clear_response = client.put(
        f"/assignments/attendee/{carl}/room",
        json={"room_id": None},
        headers=headers,
    )
    assert clear_response.status_code == 200
    assert clear_response.json()["message"] == "Attendee unassigned successfully"
    assert clear_response.json()["previous_room_id"] == dorm_id

    roster_response = client.get(f"/assignments/event/{event_id}", headers=headers)
    assert roster_response.status_code == 200
    roster_payload = roster_response.json()
    assert [row["attendee_name"] for row in roster_payload["assignments"]] == [
        "Alice Archer",
        "Bruno Baker",
        "Carl Cole",
    ]
    assert roster_payload["statistics"]["assigned_attendees"] == 2

    history_response = client.get(
        f"/assignments/event/{event_id}/history",
        params={"attendee_id": carl},
        headers=headers,
    )
    assert history_response.status_code == 200
    assert [entry["operation"] for entry in history_response.json()] == ["BULK", "CLEAR"]

    rooms_response = client.get(f"/rooms/event/{event_id}", headers=headers)
    assert rooms_response.status_code == 200
    assert [row["current_occupants"] for row in rooms_response.json()] == [1, 1]


def test_auto_assign_preview_then_apply(tmp_path):
    admin_token = "secret-admin-token"
    app, repository = _build_test_app(tmp_path, admin_token)
    client = TestClient(app)
    headers = _login(client, admin_token)
    event_id = 1

    preview_response = client.post(
        f"/assignments/event/{event_id}/auto-assign",
        json={"dry_run": True, "preference_weights": {"sex": 0.5, "accessibility": 0.9}},
        headers=headers,
    )
    assert preview_response.status_code == 200
    preview = preview_response.json()
    assert preview["dry_run"] is True
    assert preview["total_assigned"] + preview["total_unassigned"] == 20
    assert repository.count_assignment_logs() == 0

    apply_response = client.post(
        f"/assignments/event/{event_id}/auto-assign",
        headers=headers,
    )
    assert apply_response.status_code == 200
    applied = apply_response.json()
    assert applied["dry_run"] is False
    assert repository.count_assignment_logs() == applied["total_assigned"]

    statistics_response = client.get(f"/assignments/event/{event_id}/statistics", headers=headers)
    assert statistics_response.status_code == 200
    statistics = statistics_response.json()
    assert statistics["attendees"]["assigned"] == applied["total_assigned"]
    assert statistics["rooms"]["current_occupancy"] == applied["total_assigned"]

    bad_weights = client.post(
        f"/assignments/event/{event_id}/auto-assign",
        json={"preference_weights": {"sex": 2.0}},
        headers=headers,
    )
    assert bad_weights.status_code == 422

    unknown_event = client.post("/assignments/event/404/auto-assign", headers=headers)
    assert unknown_event.status_code == 404
    assert client.get("/assignments/event/404/statistics", headers=headers).status_code == 404


def test_login_rejects_invalid_admin_token(tmp_path):
    app, _ = _build_test_app(tmp_path, "real-admin-token")
    client = TestClient(app)
    response = client.post("/login", json={"admin_token": "wrong-token"})
    assert response.status_code == 401
