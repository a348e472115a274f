"""Repository layer responsible for all database access."""

from __future__ import annotations

import random
import sqlite3
from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

from lodging.domain.errors import AssignmentConflictError
from lodging.domain.models import (
    AssignmentLogEntry,
    Attendee,
    Room,
    RoomSexType,
    RoomSnapshot,
    Sex,
)
from lodging.utils.config import Settings, get_settings
from lodging.utils.logger import get_logger


logger = get_logger(__name__)


class RepositoryError(RuntimeError):
    """Raised when the store fails for reasons unrelated to business rules."""


_ATTENDEE_COLUMNS = """
    a.id, a.event_id, a.first_name, a.last_name, a.email, a.sex,
    a.is_vip, a.is_elderly, a.is_leader, a.room_id
"""

_ROOM_COLUMNS = """
    r.id, r.building_id, r.number, r.capacity, r.sex_type, r.floor,
    r.is_available, r.is_ground_floor_suitable, r.is_vip,
    b.name AS building_name, acc.name AS accommodation_name, acc.event_id
"""

_ROOM_JOIN = """
    FROM Rooms AS r
    INNER JOIN Buildings AS b ON b.id = r.building_id
    INNER JOIN Accommodations AS acc ON acc.id = b.accommodation_id
"""


def _row_to_attendee(row: sqlite3.Row) -> Attendee:
    return Attendee(
        attendee_id=int(row["id"]),
        event_id=int(row["event_id"]),
        first_name=str(row["first_name"]),
        last_name=str(row["last_name"]),
        email=row["email"],
        sex=Sex(row["sex"]),
        is_vip=bool(row["is_vip"]),
        is_elderly=bool(row["is_elderly"]),
        is_leader=bool(row["is_leader"]),
        room_id=int(row["room_id"]) if row["room_id"] is not None else None,
    )


def _row_to_room(row: sqlite3.Row) -> Room:
    return Room(
        room_id=int(row["id"]),
        building_id=int(row["building_id"]),
        number=str(row["number"]),
        capacity=int(row["capacity"]),
        sex_type=RoomSexType(row["sex_type"]),
        floor=int(row["floor"]),
        is_available=bool(row["is_available"]),
        is_ground_floor_suitable=bool(row["is_ground_floor_suitable"]),
        is_vip=bool(row["is_vip"]),
    )


def _translate_sqlite_error(exc: sqlite3.Error) -> Exception:
    message = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError) and ("locked" in message or "busy" in message):
        return AssignmentConflictError(
            "Room store is busy with a concurrent assignment; retry the operation"
        )
    return RepositoryError(f"Database operation failed: {exc}")


class RepositorySession:
    """Reads and writes bound to one open transaction."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection

    def event_exists(self, event_id: int) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM Events WHERE id = ?;",
            (event_id,),
        ).fetchone()
        return row is not None

    def load_attendee(self, attendee_id: int) -> Optional[Attendee]:
        row = self._conn.execute(
            f"SELECT {_ATTENDEE_COLUMNS} FROM Attendees AS a WHERE a.id = ?;",
            (attendee_id,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_attendee(row)

    def load_room_with_occupants(self, room_id: int) -> Optional[RoomSnapshot]:
        row = self._conn.execute(
            f"SELECT {_ROOM_COLUMNS} {_ROOM_JOIN} WHERE r.id = ?;",
            (room_id,),
        ).fetchone()
        if row is None:
            return None
        occupants = [
            _row_to_attendee(occupant)
            for occupant in self._conn.execute(
                f"""
                SELECT {_ATTENDEE_COLUMNS}
                FROM Attendees AS a
                WHERE a.room_id = ?
                ORDER BY a.id ASC;
                """,
                (room_id,),
            ).fetchall()
        ]
        return self._build_snapshot(row, occupants)

    def load_attendees_by_event(
        self,
        event_id: int,
        attendee_ids: Optional[Sequence[int]] = None,
        unassigned_only: bool = False,
    ) -> list[Attendee]:
        """Return event attendees in id order, optionally narrowed."""
        clauses = ["a.event_id = ?"]
        params: list[object] = [event_id]
        if attendee_ids is not None:
            if not attendee_ids:
                return []
            placeholders = ",".join("?" for _ in attendee_ids)
            clauses.append(f"a.id IN ({placeholders})")
            params.extend(attendee_ids)
        if unassigned_only:
            clauses.append("a.room_id IS NULL")
        rows = self._conn.execute(
            f"""
            SELECT {_ATTENDEE_COLUMNS}
            FROM Attendees AS a
            WHERE {" AND ".join(clauses)}
            ORDER BY a.id ASC;
            """,
            tuple(params),
        ).fetchall()
        return [_row_to_attendee(row) for row in rows]

    def load_rooms_by_event(
        self,
        event_id: int,
        available_only: bool = False,
    ) -> list[RoomSnapshot]:
        """Return room snapshots for the event in room id order."""
        availability_clause = "AND r.is_available = 1" if available_only else ""
        room_rows = self._conn.execute(
            f"""
            SELECT {_ROOM_COLUMNS} {_ROOM_JOIN}
            WHERE acc.event_id = ? {availability_clause}
            ORDER BY r.id ASC;
            """,
            (event_id,),
        ).fetchall()
        if not room_rows:
            return []

        occupants_by_room: dict[int, list[Attendee]] = defaultdict(list)
        occupant_rows = self._conn.execute(
            f"""
            SELECT {_ATTENDEE_COLUMNS}
            FROM Attendees AS a
            INNER JOIN Rooms AS r ON r.id = a.room_id
            INNER JOIN Buildings AS b ON b.id = r.building_id
            INNER JOIN Accommodations AS acc ON acc.id = b.accommodation_id
            WHERE acc.event_id = ? {availability_clause}
            ORDER BY a.id ASC;
            """,
            (event_id,),
        ).fetchall()
        for row in occupant_rows:
            attendee = _row_to_attendee(row)
            occupants_by_room[int(row["room_id"])].append(attendee)

        return [
            self._build_snapshot(row, occupants_by_room.get(int(row["id"]), []))
            for row in room_rows
        ]

    def load_available_rooms_by_event(self, event_id: int) -> list[RoomSnapshot]:
        return self.load_rooms_by_event(event_id, available_only=True)

    def set_attendee_room(
        self,
        attendee_id: int,
        room_id: Optional[int],
        expected_room_id: Optional[int],
    ) -> None:
        """Compare-and-swap the attendee's room reference.

        The update only applies while the attendee still holds
        `expected_room_id`; otherwise another writer got there first.
        """
        cursor = self._conn.execute(
            """
            UPDATE Attendees
            SET room_id = ?
            WHERE id = ? AND room_id IS ?;
            """,
            (room_id, attendee_id, expected_room_id),
        )
        if cursor.rowcount != 1:
            raise AssignmentConflictError(
                f"Attendee {attendee_id} changed rooms during the operation"
            )
        if room_id is not None:
            self.ensure_room_invariants(room_id)

    def set_many_attendee_rooms(
        self,
        attendee_ids: Sequence[int],
        room_id: Optional[int],
    ) -> None:
        if not attendee_ids:
            return
        placeholders = ",".join("?" for _ in attendee_ids)
        cursor = self._conn.execute(
            f"""
            UPDATE Attendees
            SET room_id = ?
            WHERE id IN ({placeholders});
            """,
            (room_id, *attendee_ids),
        )
        if cursor.rowcount != len(attendee_ids):
            raise AssignmentConflictError(
                "Some attendees disappeared during the bulk assignment"
            )
        if room_id is not None:
            self.ensure_room_invariants(room_id)

    def ensure_room_invariants(self, room_id: int) -> None:
        """Commit-time check of capacity and sex segregation for one room."""
        row = self._conn.execute(
            """
            SELECT
                r.capacity,
                r.sex_type,
                COUNT(a.id) AS occupancy,
                SUM(CASE WHEN r.sex_type != 'MIXED' AND a.sex != r.sex_type THEN 1 ELSE 0 END)
                    AS mismatched
            FROM Rooms AS r
            LEFT JOIN Attendees AS a ON a.room_id = r.id
            WHERE r.id = ?
            GROUP BY r.id;
            """,
            (room_id,),
        ).fetchone()
        if row is None:
            raise AssignmentConflictError(f"Room {room_id} was removed during the operation")
        if int(row["occupancy"]) > int(row["capacity"]):
            raise AssignmentConflictError(
                f"Room {room_id} exceeded capacity due to a concurrent assignment"
            )
        if int(row["mismatched"] or 0) > 0:
            raise AssignmentConflictError(
                f"Room {room_id} sex designation was violated by a concurrent assignment"
            )

    def append_assignment_log(
        self,
        entries: Iterable[tuple[int, int, Optional[int], Optional[int]]],
        operation: str,
    ) -> None:
        """Append (attendee_id, event_id, previous_room_id, new_room_id) rows."""
        rows = [(*entry, operation) for entry in entries]
        if not rows:
            return
        self._conn.executemany(
            """
            INSERT INTO AssignmentLogs (
                attendee_id,
                event_id,
                previous_room_id,
                new_room_id,
                operation
            )
            VALUES (?, ?, ?, ?, ?);
            """,
            rows,
        )

    def list_assignment_logs(
        self,
        event_id: int,
        attendee_id: Optional[int] = None,
    ) -> list[AssignmentLogEntry]:
        params: tuple[object, ...] = (event_id,)
        attendee_clause = ""
        if attendee_id is not None:
            attendee_clause = "AND attendee_id = ?"
            params = (event_id, attendee_id)
        rows = self._conn.execute(
            f"""
            SELECT id, attendee_id, event_id, previous_room_id, new_room_id,
                   operation, created_at
            FROM AssignmentLogs
            WHERE event_id = ? {attendee_clause}
            ORDER BY id ASC;
            """,
            params,
        ).fetchall()
        return [
            AssignmentLogEntry(
                log_id=int(row["id"]),
                attendee_id=int(row["attendee_id"]),
                event_id=int(row["event_id"]),
                previous_room_id=row["previous_room_id"],
                new_room_id=row["new_room_id"],
                operation=str(row["operation"]),
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]

    @staticmethod
    def _build_snapshot(row: sqlite3.Row, occupants: Sequence[Attendee]) -> RoomSnapshot:
        return RoomSnapshot(
            room=_row_to_room(row),
            event_id=int(row["event_id"]),
            building_name=str(row["building_name"]),
            accommodation_name=str(row["accommodation_name"]),
            occupants=tuple(occupants),
        )


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.sqlite_busy_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _transaction(self, mode: str) -> Iterator[sqlite3.Connection]:
        try:
            connection = self._connect()
        except sqlite3.Error as exc:
            raise _translate_sqlite_error(exc) from exc
        try:
            try:
                connection.execute(f"BEGIN {mode};")
            except sqlite3.Error as exc:
                raise _translate_sqlite_error(exc) from exc
            try:
                yield connection
                connection.execute("COMMIT;")
            except sqlite3.Error as exc:
                self._rollback(connection)
                raise _translate_sqlite_error(exc) from exc
            except BaseException:
                self._rollback(connection)
                raise
        finally:
            connection.close()

    @staticmethod
    def _rollback(connection: sqlite3.Connection) -> None:
        if connection.in_transaction:
            connection.execute("ROLLBACK;")

    @contextmanager
    def read_session(self) -> Iterator[RepositorySession]:
        """Snapshot-consistent read transaction."""
        with self._transaction("DEFERRED") as connection:
            yield RepositorySession(connection)

    @contextmanager
    def write_session(self) -> Iterator[RepositorySession]:
        """Write transaction holding the store's write lock from the first read.

        Any exception inside the block rolls back every write made through the
        session.
        """
        with self._transaction("IMMEDIATE") as connection:
            yield RepositorySession(connection)

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            connection = self._connect()
            try:
                connection.execute("PRAGMA journal_mode = WAL;")
                connection.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS Events (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );

                    CREATE TABLE IF NOT EXISTS Accommodations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        event_id INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        FOREIGN KEY (event_id) REFERENCES Events(id) ON DELETE CASCADE
                    );

                    CREATE TABLE IF NOT EXISTS Buildings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        accommodation_id INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        FOREIGN KEY (accommodation_id) REFERENCES Accommodations(id)
                            ON DELETE CASCADE
                    );

                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        building_id INTEGER NOT NULL,
                        number TEXT NOT NULL,
                        capacity INTEGER NOT NULL CHECK (capacity >= 1),
                        sex_type TEXT NOT NULL CHECK (sex_type IN ('MALE', 'FEMALE', 'MIXED')),
                        floor INTEGER NOT NULL DEFAULT 0,
                        is_available INTEGER NOT NULL DEFAULT 1 CHECK (is_available IN (0,1)),
                        is_ground_floor_suitable INTEGER NOT NULL DEFAULT 0
                            CHECK (is_ground_floor_suitable IN (0,1)),
                        is_vip INTEGER NOT NULL DEFAULT 0 CHECK (is_vip IN (0,1)),
                        UNIQUE (building_id, number),
                        FOREIGN KEY (building_id) REFERENCES Buildings(id) ON DELETE CASCADE
                    );

                    CREATE TABLE IF NOT EXISTS Attendees (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        event_id INTEGER NOT NULL,
                        first_name TEXT NOT NULL,
                        last_name TEXT NOT NULL,
                        email TEXT,
                        sex TEXT NOT NULL CHECK (sex IN ('MALE', 'FEMALE')),
                        is_vip INTEGER NOT NULL DEFAULT 0 CHECK (is_vip IN (0,1)),
                        is_elderly INTEGER NOT NULL DEFAULT 0 CHECK (is_elderly IN (0,1)),
                        is_leader INTEGER NOT NULL DEFAULT 0 CHECK (is_leader IN (0,1)),
                        room_id INTEGER,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (event_id) REFERENCES Events(id) ON DELETE CASCADE,
                        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE RESTRICT
                    );

                    CREATE TABLE IF NOT EXISTS AssignmentLogs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        attendee_id INTEGER NOT NULL,
                        event_id INTEGER NOT NULL,
                        previous_room_id INTEGER,
                        new_room_id INTEGER,
                        operation TEXT NOT NULL
                            CHECK (operation IN ('ASSIGN', 'CLEAR', 'BULK', 'AUTO')),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );

                    CREATE INDEX IF NOT EXISTS idx_attendees_room
                    ON Attendees(room_id);

                    CREATE INDEX IF NOT EXISTS idx_attendees_event_room
                    ON Attendees(event_id, room_id);

                    CREATE INDEX IF NOT EXISTS idx_rooms_building
                    ON Rooms(building_id);

                    CREATE INDEX IF NOT EXISTS idx_assignment_logs_event
                    ON AssignmentLogs(event_id, attendee_id);
                    """
                )
            finally:
                connection.close()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Database initialization failed: {exc}") from exc

    def seed_synthetic_data(self) -> Optional[int]:
        """Seed a deterministic demo event only when no event exists yet."""
        rng = random.Random(self._settings.synthetic_random_seed)
        with self._transaction("IMMEDIATE") as conn:
            event_count = int(conn.execute("SELECT COUNT(*) AS count FROM Events;").fetchone()["count"])
            if event_count > 0:
                logger.info("Synthetic data already present; skipping seed")
                return None

            event_id = self._insert(conn, "INSERT INTO Events (name) VALUES (?);", ("Summer Retreat",))
            accommodation_id = self._insert(
                conn,
                "INSERT INTO Accommodations (event_id, name) VALUES (?, ?);",
                (event_id, "Lakeside Lodge"),
            )
            rooms_by_building = {
                "North Wing": [
                    ("N101", 2, "MALE", 1, 1, 0),
                    ("N102", 4, "MALE", 1, 1, 0),
                    ("N201", 3, "MALE", 2, 0, 1),
                    ("N202", 4, "MIXED", 2, 0, 0),
                ],
                "South Wing": [
                    ("S101", 2, "FEMALE", 1, 1, 1),
                    ("S102", 4, "FEMALE", 1, 1, 0),
                    ("S201", 3, "FEMALE", 2, 0, 0),
                    ("S202", 4, "MIXED", 2, 0, 0),
                ],
            }
            for building_name, rooms in rooms_by_building.items():
                building_id = self._insert(
                    conn,
                    "INSERT INTO Buildings (accommodation_id, name) VALUES (?, ?);",
                    (accommodation_id, building_name),
                )
                conn.executemany(
                    """
                    INSERT INTO Rooms (
                        building_id, number, capacity, sex_type, floor,
                        is_ground_floor_suitable, is_vip
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    [(building_id, *room) for room in rooms],
                )

            attendees = []
            for index in range(self._settings.synthetic_attendee_count):
                sex = Sex.MALE.value if rng.random() < 0.5 else Sex.FEMALE.value
                attendees.append(
                    (
                        event_id,
                        f"Guest{index + 1:03d}",
                        "Synthetic",
                        f"guest{index + 1:03d}@example.org",
                        sex,
                        int(rng.random() < 0.1),
                        int(rng.random() < 0.15),
                        int(rng.random() < 0.05),
                    )
                )
            conn.executemany(
                """
                INSERT INTO Attendees (
                    event_id, first_name, last_name, email, sex,
                    is_vip, is_elderly, is_leader
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                attendees,
            )
        logger.info(
            "Synthetic seed completed | event_id=%s | attendees=%s",
            event_id,
            len(attendees),
        )
        return event_id

    @staticmethod
    def _insert(conn: sqlite3.Connection, statement: str, params: tuple) -> int:
        cursor = conn.execute(statement, params)
        return int(cursor.lastrowid)

    def create_event(self, name: str) -> int:
        with self._transaction("IMMEDIATE") as conn:
            return self._insert(conn, "INSERT INTO Events (name) VALUES (?);", (name,))

    def create_accommodation(self, event_id: int, name: str) -> int:
        with self._transaction("IMMEDIATE") as conn:
            return self._insert(
                conn,
                "INSERT INTO Accommodations (event_id, name) VALUES (?, ?);",
                (event_id, name),
            )

    def create_building(self, accommodation_id: int, name: str) -> int:
        with self._transaction("IMMEDIATE") as conn:
            return self._insert(
                conn,
                "INSERT INTO Buildings (accommodation_id, name) VALUES (?, ?);",
                (accommodation_id, name),
            )

    def create_room(
        self,
        building_id: int,
        number: str,
        capacity: int,
        sex_type: RoomSexType | str,
        floor: int = 0,
        is_available: bool = True,
        is_ground_floor_suitable: bool = False,
        is_vip: bool = False,
    ) -> int:
        with self._transaction("IMMEDIATE") as conn:
            return self._insert(
                conn,
                """
                INSERT INTO Rooms (
                    building_id, number, capacity, sex_type, floor,
                    is_available, is_ground_floor_suitable, is_vip
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    building_id,
                    number,
                    capacity,
                    RoomSexType(sex_type).value,
                    floor,
                    int(is_available),
                    int(is_ground_floor_suitable),
                    int(is_vip),
                ),
            )

    def create_attendee(
        self,
        event_id: int,
        first_name: str,
        last_name: str,
        sex: Sex | str,
        is_vip: bool = False,
        is_elderly: bool = False,
        is_leader: bool = False,
        email: Optional[str] = None,
    ) -> int:
        with self._transaction("IMMEDIATE") as conn:
            return self._insert(
                conn,
                """
                INSERT INTO Attendees (
                    event_id, first_name, last_name, email, sex,
                    is_vip, is_elderly, is_leader
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    event_id,
                    first_name,
                    last_name,
                    email,
                    Sex(sex).value,
                    int(is_vip),
                    int(is_elderly),
                    int(is_leader),
                ),
            )

    def delete_attendee(self, attendee_id: int) -> bool:
        """Remove a registration; its room is vacated with it."""
        with self._transaction("IMMEDIATE") as conn:
            cursor = conn.execute("DELETE FROM Attendees WHERE id = ?;", (attendee_id,))
            return cursor.rowcount == 1

    def count_assignment_logs(self) -> int:
        with self._transaction("DEFERRED") as conn:
            cursor = conn.execute("SELECT COUNT(*) AS count FROM AssignmentLogs;")
            return int(cursor.fetchone()["count"])
