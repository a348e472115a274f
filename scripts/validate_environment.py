#!/usr/bin/env python3
"""Validate local room assignment engine environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from lodging.repository.data_repository import DataRepository
from lodging.services.planner_service import AutoAssignmentService
from lodging.services.statistics_service import AssignmentStatisticsService
from lodging.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="lodging-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_names = ["fastapi", "uvicorn", "pydantic", "pandas", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_names:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "lodging_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo event seeding
        event_id = None
        try:
            event_id = repository.seed_synthetic_data()
            if event_id is None:
                raise RuntimeError("seed was skipped on a fresh database")
            ok, line = _print_result(
                "Demo event seeding",
                True,
                f": {validation_settings.synthetic_attendee_count} attendees",
            )
        except Exception as exc:
            ok, line = _print_result("Demo event seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Auto-assignment respects capacity
        if event_id is not None:
            try:
                planner = AutoAssignmentService(repository=repository, settings=validation_settings)
                result = planner.auto_assign(event_id=event_id)
                with repository.read_session() as session:
                    rooms = session.load_rooms_by_event(event_id)
                overfull = [room.room.number for room in rooms if room.occupancy > room.room.capacity]
                if overfull:
                    raise RuntimeError(f"rooms over capacity: {overfull}")
                ok, line = _print_result(
                    "Auto-assignment",
                    True,
                    f": {result.total_assigned} assigned, {result.total_unassigned} unassigned",
                )
            except Exception as exc:
                ok, line = _print_result("Auto-assignment", False, str(exc))
            results.append(line)
            all_passed = all_passed and ok

            # CHECK 6: Statistics aggregation
            try:
                statistics = AssignmentStatisticsService(
                    repository=repository,
                    settings=validation_settings,
                ).get_statistics(event_id=event_id)
                ok, line = _print_result(
                    "Statistics",
                    True,
                    f": {statistics['attendees']['assignment_rate']:.1f}% assigned",
                )
            except Exception as exc:
                ok, line = _print_result("Statistics", False, str(exc))
            results.append(line)
            all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Room Assignment Engine Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
