import sqlite3
import aiosqlite
import csv
import os
import json
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from config import YamlConfig
from settings_schema import validate_settings
from models import (
    BlockMission,
    CursorState,
    Exercise,
    LoggedExercise,
    MissionProgress,
    MissionTarget,
    OutboxEntry,
    PersonalRecord,
    WorkoutHistory,
    WorkoutSession,
)

DEFAULT_DB_PATH = os.environ.get("DB_PATH", "workout.db")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    user_id TEXT NOT NULL,
                    program_id TEXT NOT NULL,
                    training_day_index INTEGER NOT NULL DEFAULT 0,
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    duration_seconds INTEGER,
                    total_volume_kg REAL NOT NULL DEFAULT 0,
                    exercises TEXT NOT NULL,
                    notes TEXT
                );""",
            [
                "seq",
                "id",
                "user_id",
                "program_id",
                "training_day_index",
                "started_at",
                "completed_at",
                "duration_seconds",
                "total_volume_kg",
                "exercises",
                "notes",
            ],
        ),
        "personal_records": (
            """CREATE TABLE personal_records (
                    user_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    achieved_at TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    PRIMARY KEY (user_id, exercise_id)
                );""",
            ["user_id", "exercise_id", "weight", "reps", "achieved_at", "session_id"],
        ),
        "program_cursors": (
            """CREATE TABLE program_cursors (
                    user_id TEXT NOT NULL,
                    program_id TEXT NOT NULL,
                    day_index INTEGER NOT NULL DEFAULT 0,
                    week INTEGER NOT NULL DEFAULT 1,
                    PRIMARY KEY (user_id, program_id)
                );""",
            ["user_id", "program_id", "day_index", "week"],
        ),
        "active_sessions": (
            """CREATE TABLE active_sessions (
                    user_id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            ["user_id", "payload", "updated_at"],
        ),
        "block_missions": (
            """CREATE TABLE block_missions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    program_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    description TEXT,
                    target TEXT NOT NULL,
                    progress TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active'
                );""",
            [
                "id",
                "user_id",
                "program_id",
                "type",
                "description",
                "target",
                "progress",
                "status",
            ],
        ),
        "mission_applications": (
            """CREATE TABLE mission_applications (
                    mission_id TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    PRIMARY KEY (mission_id, session_id),
                    FOREIGN KEY(mission_id) REFERENCES block_missions(id) ON DELETE CASCADE
                );""",
            ["mission_id", "session_id"],
        ),
        "sync_outbox": (
            """CREATE TABLE sync_outbox (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    kind TEXT NOT NULL,
                    key TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    attempts INTEGER NOT NULL DEFAULT 0,
                    last_error TEXT,
                    created_at TEXT NOT NULL,
                    UNIQUE (kind, key)
                );""",
            ["id", "kind", "key", "payload", "attempts", "last_error", "created_at"],
        ),
        "exercise_catalog": (
            """CREATE TABLE exercise_catalog (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'strength',
                    primary_muscles TEXT NOT NULL,
                    secondary_muscles TEXT,
                    is_custom INTEGER NOT NULL DEFAULT 0
                );""",
            [
                "id",
                "name",
                "category",
                "primary_muscles",
                "secondary_muscles",
                "is_custom",
            ],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._import_exercise_catalog_data()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("attempts", "is_custom", "training_day_index", "total_volume_kg"):
                        return "0"
                    if col == "week":
                        return "1"
                    if col == "status":
                        return "'active'"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _import_exercise_catalog_data(self) -> None:
        csv_path = os.path.join(os.path.dirname(__file__), "exercise_catalog.csv")
        if not os.path.exists(csv_path):
            return
        with open(csv_path, newline="", encoding="utf-8") as csvfile:
            reader = csv.DictReader(csvfile)
            records = [
                (
                    row["id"],
                    row["name"],
                    row.get("category") or "strength",
                    row["primary_muscles"],
                    row.get("secondary_muscles", ""),
                )
                for row in reader
            ]
        with self._connection() as conn:
            for ex_id, name, category, primary, secondary in records:
                conn.execute(
                    "INSERT INTO exercise_catalog (id, name, category, primary_muscles, secondary_muscles, is_custom) "
                    "VALUES (?, ?, ?, ?, ?, 0) "
                    "ON CONFLICT(id) DO UPDATE SET name=excluded.name, category=excluded.category, "
                    "primary_muscles=excluded.primary_muscles, secondary_muscles=excluded.secondary_muscles "
                    "WHERE exercise_catalog.is_custom = 0;",
                    (ex_id, name, category, primary, secondary),
                )

    def _init_settings(self) -> None:
        defaults = {
            "user_id": "local",
            "remote_url": "",
            "sync_enabled": "1",
            "sync_background": "1",
            "outbox_limit": "500",
            "adhoc_default_sets": "3",
            "progression_points": "12",
            "volume_weeks": "4",
            "log_level": "INFO",
            "migrated_v1": "0",
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


_SESSION_COLUMNS = (
    "id, program_id, training_day_index, started_at, completed_at, "
    "duration_seconds, total_volume_kg, exercises, notes"
)


def _session_from_row(row: Tuple) -> WorkoutSession:
    (
        sid,
        program_id,
        day_index,
        started_at,
        completed_at,
        duration,
        volume,
        exercises,
        notes,
    ) = row
    return WorkoutSession(
        id=sid,
        program_id=program_id,
        training_day_index=int(day_index),
        started_at=started_at,
        completed_at=completed_at,
        duration_seconds=int(duration) if duration is not None else None,
        total_volume_kg=float(volume),
        exercises=[LoggedExercise.model_validate(e) for e in json.loads(exercises)],
        notes=notes,
    )


def _session_params(user_id: str, session: WorkoutSession) -> Tuple:
    return (
        session.id,
        user_id,
        session.program_id,
        session.training_day_index,
        session.started_at,
        session.completed_at,
        session.duration_seconds,
        session.total_volume_kg,
        json.dumps([e.model_dump() for e in session.exercises]),
        session.notes,
    )


def _record_from_row(row: Tuple) -> PersonalRecord:
    exercise_id, weight, reps, achieved_at, session_id = row
    return PersonalRecord(
        exercise_id=exercise_id,
        weight=float(weight),
        reps=int(reps),
        achieved_at=achieved_at,
        session_id=session_id,
    )


_INSERT_SESSION = (
    "INSERT INTO workout_sessions (id, user_id, program_id, training_day_index, started_at, "
    "completed_at, duration_seconds, total_volume_kg, exercises, notes) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) ON CONFLICT(id) DO NOTHING;"
)

_UPSERT_RECORD = (
    "INSERT INTO personal_records (user_id, exercise_id, weight, reps, achieved_at, session_id) "
    "VALUES (?, ?, ?, ?, ?, ?) "
    "ON CONFLICT(user_id, exercise_id) DO UPDATE SET weight=excluded.weight, reps=excluded.reps, "
    "achieved_at=excluded.achieved_at, session_id=excluded.session_id;"
)


class HistoryRepository(BaseRepository):
    """Local store of completed sessions and the personal record map.

    The engine is the only writer. Every mutation is a read-modify-write on
    the local file, so callers must not share one database between
    concurrent writers.
    """

    def read_user(self, user_id: str) -> WorkoutHistory:
        return WorkoutHistory(
            sessions=self.fetch_sessions(user_id),
            personal_records=self.fetch_personal_records(user_id),
        )

    def fetch_sessions(self, user_id: str) -> list[WorkoutSession]:
        rows = self.fetch_all(
            f"SELECT {_SESSION_COLUMNS} FROM workout_sessions WHERE user_id = ? ORDER BY seq;",
            (user_id,),
        )
        return [_session_from_row(r) for r in rows]

    def fetch_session(self, session_id: str) -> WorkoutSession | None:
        rows = self.fetch_all(
            f"SELECT {_SESSION_COLUMNS} FROM workout_sessions WHERE id = ?;",
            (session_id,),
        )
        return _session_from_row(rows[0]) if rows else None

    def append_session(self, user_id: str, session: WorkoutSession) -> None:
        self.execute(_INSERT_SESSION, _session_params(user_id, session))

    def fetch_personal_records(self, user_id: str) -> list[PersonalRecord]:
        rows = self.fetch_all(
            "SELECT exercise_id, weight, reps, achieved_at, session_id FROM personal_records "
            "WHERE user_id = ? ORDER BY exercise_id;",
            (user_id,),
        )
        return [_record_from_row(r) for r in rows]

    def upsert_personal_records(
        self, user_id: str, prs: Iterable[PersonalRecord]
    ) -> None:
        with self._connection() as conn:
            for pr in prs:
                conn.execute(
                    _UPSERT_RECORD,
                    (user_id, pr.exercise_id, pr.weight, pr.reps, pr.achieved_at, pr.session_id),
                )

    def record_completion(
        self, user_id: str, session: WorkoutSession, prs: Iterable[PersonalRecord]
    ) -> None:
        """Append ``session`` and upsert ``prs`` in a single transaction."""
        with self._connection() as conn:
            conn.execute(_INSERT_SESSION, _session_params(user_id, session))
            for pr in prs:
                conn.execute(
                    _UPSERT_RECORD,
                    (user_id, pr.exercise_id, pr.weight, pr.reps, pr.achieved_at, pr.session_id),
                )

    def session_dates(self, user_id: str) -> list[str]:
        rows = self.fetch_all(
            "SELECT started_at FROM workout_sessions WHERE user_id = ? ORDER BY seq;",
            (user_id,),
        )
        return [r[0] for r in rows]


class AsyncHistoryRepository(AsyncBaseRepository):
    """Async read access to the session history."""

    async def read_user(self, user_id: str) -> WorkoutHistory:
        rows = await self.fetch_all(
            f"SELECT {_SESSION_COLUMNS} FROM workout_sessions WHERE user_id = ? ORDER BY seq;",
            (user_id,),
        )
        records = await self.fetch_all(
            "SELECT exercise_id, weight, reps, achieved_at, session_id FROM personal_records "
            "WHERE user_id = ? ORDER BY exercise_id;",
            (user_id,),
        )
        return WorkoutHistory(
            sessions=[_session_from_row(r) for r in rows],
            personal_records=[_record_from_row(r) for r in records],
        )


class ActiveSessionRepository(BaseRepository):
    """Repository holding the draft of the session currently being logged."""

    def save(self, user_id: str, session: WorkoutSession) -> None:
        self.execute(
            "INSERT INTO active_sessions (user_id, payload, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at;",
            (
                user_id,
                session.model_dump_json(),
                datetime.datetime.now(datetime.timezone.utc).isoformat(),
            ),
        )

    def load(self, user_id: str) -> WorkoutSession | None:
        rows = self.fetch_all(
            "SELECT payload FROM active_sessions WHERE user_id = ?;", (user_id,)
        )
        if not rows:
            return None
        return WorkoutSession.model_validate_json(rows[0][0])

    def clear(self, user_id: str) -> None:
        self.execute("DELETE FROM active_sessions WHERE user_id = ?;", (user_id,))


class ProgramCursorRepository(BaseRepository):
    """Repository for per-program day and week cursors."""

    def read(self, user_id: str, program_id: str) -> CursorState:
        rows = self.fetch_all(
            "SELECT day_index, week FROM program_cursors WHERE user_id = ? AND program_id = ?;",
            (user_id, program_id),
        )
        if not rows:
            return CursorState()
        return CursorState(day_index=int(rows[0][0]), week=int(rows[0][1]))

    def write(self, user_id: str, program_id: str, state: CursorState) -> None:
        self.execute(
            "INSERT INTO program_cursors (user_id, program_id, day_index, week) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(user_id, program_id) DO UPDATE SET day_index=excluded.day_index, week=excluded.week;",
            (user_id, program_id, state.day_index, state.week),
        )


class MissionRepository(BaseRepository):
    """Repository for block missions and their progress."""

    _COLUMNS = "id, user_id, program_id, type, description, target, progress, status"

    @staticmethod
    def _from_row(row: Tuple) -> BlockMission:
        mid, user_id, program_id, mtype, description, target, progress, status = row
        return BlockMission(
            id=mid,
            user_id=user_id,
            program_id=program_id,
            type=mtype,
            description=description or "",
            target=MissionTarget.model_validate_json(target),
            progress=MissionProgress.model_validate_json(progress),
            status=status,
        )

    def add(self, mission: BlockMission) -> str:
        self.execute(
            f"INSERT INTO block_missions ({self._COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                mission.id,
                mission.user_id,
                mission.program_id,
                mission.type,
                mission.description,
                mission.target.model_dump_json(),
                mission.progress.model_dump_json(),
                mission.status,
            ),
        )
        return mission.id

    def fetch(self, mission_id: str) -> BlockMission | None:
        rows = super().fetch_all(
            f"SELECT {self._COLUMNS} FROM block_missions WHERE id = ?;", (mission_id,)
        )
        return self._from_row(rows[0]) if rows else None

    def list_active_missions(self, user_id: str, program_id: str) -> list[BlockMission]:
        rows = super().fetch_all(
            f"SELECT {self._COLUMNS} FROM block_missions "
            "WHERE user_id = ? AND program_id = ? AND status = 'active' ORDER BY rowid;",
            (user_id, program_id),
        )
        return [self._from_row(r) for r in rows]

    def fetch_for_user(self, user_id: str) -> list[BlockMission]:
        rows = super().fetch_all(
            f"SELECT {self._COLUMNS} FROM block_missions WHERE user_id = ? ORDER BY rowid;",
            (user_id,),
        )
        return [self._from_row(r) for r in rows]

    def update_mission_progress(
        self, mission_id: str, progress: MissionProgress, status: str
    ) -> None:
        rows = super().fetch_all(
            "SELECT id FROM block_missions WHERE id = ?;", (mission_id,)
        )
        if not rows:
            raise ValueError("mission not found")
        self.execute(
            "UPDATE block_missions SET progress = ?, status = ? WHERE id = ?;",
            (progress.model_dump_json(), status, mission_id),
        )

    def apply_once(
        self,
        mission_id: str,
        session_id: str,
        progress: MissionProgress,
        status: str,
    ) -> bool:
        """Store progress unless ``session_id`` was already applied to the mission."""
        with self._connection() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO mission_applications (mission_id, session_id) VALUES (?, ?);",
                (mission_id, session_id),
            )
            if cur.rowcount == 0:
                return False
            conn.execute(
                "UPDATE block_missions SET progress = ?, status = ? WHERE id = ?;",
                (progress.model_dump_json(), status, mission_id),
            )
            return True

    def was_applied(self, mission_id: str, session_id: str) -> bool:
        rows = super().fetch_all(
            "SELECT 1 FROM mission_applications WHERE mission_id = ? AND session_id = ?;",
            (mission_id, session_id),
        )
        return bool(rows)


class SyncOutboxRepository(BaseRepository):
    """Repository for pending remote operations."""

    def enqueue(self, kind: str, key: str, payload: dict) -> int:
        now = datetime.datetime.now(datetime.timezone.utc).isoformat()
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO sync_outbox (kind, key, payload, attempts, created_at) VALUES (?, ?, ?, 0, ?) "
                "ON CONFLICT(kind, key) DO UPDATE SET payload=excluded.payload;",
                (kind, key, json.dumps(payload), now),
            )
            row = conn.execute(
                "SELECT id FROM sync_outbox WHERE kind = ? AND key = ?;", (kind, key)
            ).fetchone()
            return int(row[0])

    def fetch_pending(self, limit: int | None = None) -> list[OutboxEntry]:
        query = (
            "SELECT id, kind, key, payload, attempts, last_error, created_at "
            "FROM sync_outbox ORDER BY id"
        )
        params: Tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        rows = self.fetch_all(query + ";", params)
        return [
            OutboxEntry(
                id=int(r[0]),
                kind=r[1],
                key=r[2],
                payload=json.loads(r[3]),
                attempts=int(r[4]),
                last_error=r[5],
                created_at=r[6],
            )
            for r in rows
        ]

    def count(self) -> int:
        rows = self.fetch_all("SELECT COUNT(*) FROM sync_outbox;")
        return int(rows[0][0])

    def delete(self, entry_id: int) -> None:
        self.execute("DELETE FROM sync_outbox WHERE id = ?;", (entry_id,))

    def record_failure(self, entry_id: int, error: str) -> None:
        self.execute(
            "UPDATE sync_outbox SET attempts = attempts + 1, last_error = ? WHERE id = ?;",
            (error, entry_id),
        )

    def evict_oldest(self, count: int) -> list[OutboxEntry]:
        if count <= 0:
            return []
        evicted = self.fetch_pending(limit=count)
        with self._connection() as conn:
            for entry in evicted:
                conn.execute("DELETE FROM sync_outbox WHERE id = ?;", (entry.id,))
        return evicted


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    BOOL_KEYS = {"sync_enabled", "sync_background", "migrated_v1"}

    def __init__(
        self, db_path: str = DEFAULT_DB_PATH, yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, bool | float | str] = {}
        for k, v in rows:
            if k in self.BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            if k in {"user_id", "remote_url", "remote_api_key", "log_level"}:
                result[k] = v
                continue
            try:
                result[k] = int(v)
            except ValueError:
                try:
                    result[k] = float(v)
                except ValueError:
                    result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self.BOOL_KEYS:
                    val = "1" if val in {"1", "1.0", "true", "True"} else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(self.get_text(key, str(default)))
        except ValueError:
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()


class ExerciseCatalogRepository(BaseRepository):
    """Read access to exercise reference data."""

    @staticmethod
    def _split(value: Optional[str]) -> list[str]:
        if not value:
            return []
        return [m for m in value.split("|") if m]

    def _from_row(self, row: Tuple) -> Exercise:
        ex_id, name, category, primary, secondary = row
        return Exercise(
            id=ex_id,
            name=name,
            category=category,
            primary_muscles=self._split(primary),
            secondary_muscles=self._split(secondary),
        )

    def fetch(self, exercise_id: str) -> Exercise | None:
        rows = super().fetch_all(
            "SELECT id, name, category, primary_muscles, secondary_muscles "
            "FROM exercise_catalog WHERE id = ?;",
            (exercise_id,),
        )
        return self._from_row(rows[0]) if rows else None

    def fetch_exercises(self, muscle: str | None = None) -> list[Exercise]:
        rows = super().fetch_all(
            "SELECT id, name, category, primary_muscles, secondary_muscles "
            "FROM exercise_catalog ORDER BY name;"
        )
        exercises = [self._from_row(r) for r in rows]
        if muscle:
            exercises = [e for e in exercises if muscle in e.primary_muscles]
        return exercises

    def add(self, exercise: Exercise) -> None:
        if self.fetch(exercise.id) is not None:
            raise ValueError("exercise exists")
        self.execute(
            "INSERT INTO exercise_catalog (id, name, category, primary_muscles, secondary_muscles, is_custom) "
            "VALUES (?, ?, ?, ?, ?, 1);",
            (
                exercise.id,
                exercise.name,
                exercise.category,
                "|".join(exercise.primary_muscles),
                "|".join(exercise.secondary_muscles),
            ),
        )

    def lookup(self) -> dict[str, Exercise]:
        return {e.id: e for e in self.fetch_exercises()}
