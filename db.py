import sqlite3
import os
import datetime
from contextlib import contextmanager
from typing import List, Tuple, Optional, Iterable

from config import YamlConfig
from settings_schema import validate_settings


WORKOUT_TYPES = ("A", "B", "C")
DIFFICULTY_FEEDBACK = ("too_light", "just_right", "too_heavy")
BODY_AREAS = ("shoulder", "back", "knee", "wrist", "elbow", "hip", "neck", "other")
INJURY_SEVERITIES = ("mild", "moderate", "bad")
NOTIFICATION_KINDS = ("morning", "pumpup", "window", "lastcall", "summary", "restday")


def _split_ids(value: str | None) -> list[int]:
    return [int(v) for v in (value or "").split("|") if v]


def _split_names(value: str | None) -> list[str]:
    return [v for v in (value or "").split("|") if v]


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT,
                    starting_weight REAL NOT NULL DEFAULT 82,
                    current_weight REAL,
                    target_weight REAL NOT NULL DEFAULT 75,
                    telegram_chat_id TEXT,
                    telegram_link_code TEXT,
                    wearable_access_token TEXT,
                    calendar_api_key TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );""",
            [
                "id",
                "email",
                "name",
                "starting_weight",
                "current_weight",
                "target_weight",
                "telegram_chat_id",
                "telegram_link_code",
                "wearable_access_token",
                "calendar_api_key",
                "created_at",
            ],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    muscle_group TEXT NOT NULL,
                    equipment TEXT NOT NULL,
                    instructions TEXT,
                    video_url TEXT,
                    base_weight_percent REAL NOT NULL DEFAULT 0,
                    weight_increment_kg REAL NOT NULL DEFAULT 0,
                    workout_type TEXT,
                    order_in_workout INTEGER NOT NULL DEFAULT 0,
                    sets INTEGER NOT NULL DEFAULT 3,
                    reps_min INTEGER NOT NULL DEFAULT 8,
                    reps_max INTEGER NOT NULL DEFAULT 12,
                    rest_secs INTEGER NOT NULL DEFAULT 90,
                    is_warm_up INTEGER NOT NULL DEFAULT 0,
                    warm_up_order INTEGER,
                    substitute_ids TEXT NOT NULL DEFAULT '',
                    injury_areas TEXT NOT NULL DEFAULT ''
                );""",
            [
                "id",
                "name",
                "muscle_group",
                "equipment",
                "instructions",
                "video_url",
                "base_weight_percent",
                "weight_increment_kg",
                "workout_type",
                "order_in_workout",
                "sets",
                "reps_min",
                "reps_max",
                "rest_secs",
                "is_warm_up",
                "warm_up_order",
                "substitute_ids",
                "injury_areas",
            ],
        ),
        "exercise_preferences": (
            """CREATE TABLE exercise_preferences (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    blacklisted INTEGER NOT NULL DEFAULT 0,
                    current_weight_kg REAL,
                    sessions_at_current_weight INTEGER NOT NULL DEFAULT 0,
                    total_sessions INTEGER NOT NULL DEFAULT 0,
                    last_performed_at TEXT,
                    UNIQUE (user_id, exercise_id),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_id",
                "exercise_id",
                "blacklisted",
                "current_weight_kg",
                "sessions_at_current_weight",
                "total_sessions",
                "last_performed_at",
            ],
        ),
        "injuries": (
            """CREATE TABLE injuries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    body_area TEXT NOT NULL,
                    severity TEXT NOT NULL,
                    notes TEXT,
                    started_at TEXT NOT NULL,
                    resolved_at TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "body_area", "severity", "notes", "started_at", "resolved_at"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    workout_type TEXT NOT NULL,
                    is_express INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT,
                    duration_mins INTEGER,
                    wearable_verified INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_id",
                "workout_type",
                "is_express",
                "completed_at",
                "duration_mins",
                "wearable_verified",
            ],
        ),
        "exercise_logs": (
            """CREATE TABLE exercise_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    sets_completed INTEGER NOT NULL,
                    weight_kg REAL NOT NULL,
                    difficulty_feedback TEXT NOT NULL,
                    enjoyed INTEGER NOT NULL DEFAULT 1,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            [
                "id",
                "workout_id",
                "exercise_id",
                "sets_completed",
                "weight_kg",
                "difficulty_feedback",
                "enjoyed",
            ],
        ),
        "weight_logs": (
            """CREATE TABLE weight_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    weight_kg REAL NOT NULL,
                    logged_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "weight_kg", "logged_at"],
        ),
        "waist_logs": (
            """CREATE TABLE waist_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    waist_cm REAL NOT NULL,
                    logged_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "waist_cm", "logged_at"],
        ),
        "weekly_stats": (
            """CREATE TABLE weekly_stats (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    week_start TEXT NOT NULL,
                    workouts_completed INTEGER NOT NULL DEFAULT 0,
                    punishment_active INTEGER NOT NULL DEFAULT 1,
                    xp_earned INTEGER NOT NULL DEFAULT 0,
                    quests_completed INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (user_id, week_start),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_id",
                "week_start",
                "workouts_completed",
                "punishment_active",
                "xp_earned",
                "quests_completed",
            ],
        ),
        "achievements": (
            """CREATE TABLE achievements (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    achievement_type TEXT NOT NULL,
                    awarded_at TEXT NOT NULL,
                    UNIQUE (user_id, achievement_type),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "achievement_type", "awarded_at"],
        ),
        "sent_notifications": (
            """CREATE TABLE sent_notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    sent_at TEXT NOT NULL,
                    UNIQUE (user_id, date, kind),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "date", "kind", "sent_at"],
        ),
        "wearable_daily": (
            """CREATE TABLE wearable_daily (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    sleep_duration_mins INTEGER,
                    sleep_efficiency INTEGER,
                    recovery_recommendation TEXT,
                    steps INTEGER,
                    active_minutes INTEGER,
                    resting_hr INTEGER,
                    UNIQUE (user_id, date),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_id",
                "date",
                "sleep_duration_mins",
                "sleep_efficiency",
                "recovery_recommendation",
                "steps",
                "active_minutes",
                "resting_hr",
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

    def __init__(self, db_path: str = "gym.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

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

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            # columns missing from the old table take their declared defaults
            conn.execute(
                f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        defaults = {
            "timezone": "Australia/Sydney",
            "min_workouts_for_goal": "3",
            "planned_workouts_per_week": "5",
            "workout_window_start_hour": "11",
            "workout_window_end_hour": "16",
            "default_body_weight": "82.0",
            "default_target_weight": "75.0",
            "notifications_enabled": "1",
            "telegram_bot_token": "",
            "cron_secret": "",
            "calendar_api_key": "",
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


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

    def fetch_records(self, query: str, params: Tuple = ()) -> List[dict]:
        """Return rows of ``query`` as dictionaries keyed by column name."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            cols = [c[0] for c in cursor.description]
            return [dict(zip(cols, row)) for row in cursor.fetchall()]

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class UserRepository(BaseRepository):
    """Repository for application users."""

    _COLUMNS = (
        "id, email, name, starting_weight, current_weight, target_weight, "
        "telegram_chat_id, telegram_link_code, wearable_access_token, "
        "calendar_api_key, created_at"
    )

    def create(
        self,
        email: str,
        name: str | None = None,
        starting_weight: float = 82.0,
        target_weight: float = 75.0,
        current_weight: float | None = None,
    ) -> int:
        if not email:
            raise ValueError("email required")
        rows = self.fetch_all("SELECT id FROM users WHERE email = ?;", (email,))
        if rows:
            raise ValueError("email already registered")
        return self.execute(
            "INSERT INTO users (email, name, starting_weight, current_weight, target_weight, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (
                email,
                name,
                starting_weight,
                current_weight,
                target_weight,
                datetime.datetime.now().isoformat(timespec="seconds"),
            ),
        )

    def fetch_detail(self, user_id: int) -> dict:
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM users WHERE id = ?;", (user_id,)
        )
        if not rows:
            raise ValueError("user not found")
        return rows[0]

    def exists(self, user_id: int) -> bool:
        return bool(self.fetch_all("SELECT id FROM users WHERE id = ?;", (user_id,)))

    def fetch_all_users(self) -> list[dict]:
        return self.fetch_records(f"SELECT {self._COLUMNS} FROM users ORDER BY id;")

    def fetch_with_chat(self) -> list[dict]:
        return self.fetch_records(
            f"SELECT {self._COLUMNS} FROM users WHERE telegram_chat_id IS NOT NULL ORDER BY id;"
        )

    def fetch_by_chat(self, chat_id: str) -> dict | None:
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM users WHERE telegram_chat_id = ?;", (chat_id,)
        )
        return rows[0] if rows else None

    def fetch_by_link_code(self, code: str) -> dict | None:
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM users WHERE telegram_link_code = ?;", (code,)
        )
        return rows[0] if rows else None

    def set_current_weight(self, user_id: int, weight: float) -> None:
        self.execute(
            "UPDATE users SET current_weight = ? WHERE id = ?;",
            (weight, user_id),
        )

    def set_link_code(self, user_id: int, code: str | None) -> None:
        self.execute(
            "UPDATE users SET telegram_link_code = ? WHERE id = ?;",
            (code, user_id),
        )

    def link_chat(self, user_id: int, chat_id: str) -> None:
        self.execute(
            "UPDATE users SET telegram_chat_id = ?, telegram_link_code = NULL WHERE id = ?;",
            (chat_id, user_id),
        )

    def set_wearable_token(self, user_id: int, token: str | None) -> None:
        self.execute(
            "UPDATE users SET wearable_access_token = ? WHERE id = ?;",
            (token, user_id),
        )

    def set_calendar_api_key(self, user_id: int, api_key: str | None) -> None:
        self.execute(
            "UPDATE users SET calendar_api_key = ? WHERE id = ?;",
            (api_key, user_id),
        )


class ExerciseRepository(BaseRepository):
    """Repository for the exercise catalog."""

    _COLUMNS = (
        "id, name, muscle_group, equipment, instructions, video_url, "
        "base_weight_percent, weight_increment_kg, workout_type, order_in_workout, "
        "sets, reps_min, reps_max, rest_secs, is_warm_up, warm_up_order, "
        "substitute_ids, injury_areas"
    )

    @staticmethod
    def _to_record(row: dict) -> dict:
        row["is_warm_up"] = bool(row["is_warm_up"])
        row["substitute_ids"] = _split_ids(row["substitute_ids"])
        row["injury_areas"] = _split_names(row["injury_areas"])
        return row

    def add(
        self,
        name: str,
        muscle_group: str,
        equipment: str,
        *,
        instructions: str | None = None,
        video_url: str | None = None,
        base_weight_percent: float = 0.0,
        weight_increment_kg: float = 0.0,
        workout_type: str | None = None,
        order_in_workout: int = 0,
        sets: int = 3,
        reps_min: int = 8,
        reps_max: int = 12,
        rest_secs: int = 90,
        is_warm_up: bool = False,
        warm_up_order: int | None = None,
        injury_areas: Iterable[str] = (),
    ) -> int:
        if workout_type is not None and workout_type not in WORKOUT_TYPES:
            raise ValueError("invalid workout type")
        if weight_increment_kg < 0 or base_weight_percent < 0:
            raise ValueError("weights must be non-negative")
        return self.execute(
            "INSERT INTO exercises (name, muscle_group, equipment, instructions, video_url, "
            "base_weight_percent, weight_increment_kg, workout_type, order_in_workout, sets, "
            "reps_min, reps_max, rest_secs, is_warm_up, warm_up_order, injury_areas) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                name,
                muscle_group,
                equipment,
                instructions,
                video_url,
                base_weight_percent,
                weight_increment_kg,
                workout_type,
                order_in_workout,
                sets,
                reps_min,
                reps_max,
                rest_secs,
                1 if is_warm_up else 0,
                warm_up_order,
                "|".join(a.lower() for a in injury_areas),
            ),
        )

    def count(self) -> int:
        rows = self.fetch_all("SELECT COUNT(*) FROM exercises;")
        return int(rows[0][0])

    def fetch_detail(self, exercise_id: int) -> dict:
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM exercises WHERE id = ?;", (exercise_id,)
        )
        if not rows:
            raise ValueError("exercise not found")
        return self._to_record(rows[0])

    def fetch_for_type(self, workout_type: str) -> list[dict]:
        """Return non warm-up exercises of ``workout_type`` in session order."""
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM exercises "
            "WHERE workout_type = ? AND is_warm_up = 0 ORDER BY order_in_workout, id;",
            (workout_type,),
        )
        return [self._to_record(r) for r in rows]

    def fetch_warm_ups(self) -> list[dict]:
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM exercises WHERE is_warm_up = 1 ORDER BY warm_up_order, id;"
        )
        return [self._to_record(r) for r in rows]

    def fetch_all_records(self) -> list[dict]:
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM exercises ORDER BY is_warm_up DESC, workout_type, order_in_workout, id;"
        )
        return [self._to_record(r) for r in rows]

    def fetch_substitutes(self, exercise_id: int) -> list[int]:
        rows = self.fetch_all(
            "SELECT substitute_ids FROM exercises WHERE id = ?;", (exercise_id,)
        )
        if not rows:
            raise ValueError("exercise not found")
        return _split_ids(rows[0][0])

    def _set_substitutes(self, exercise_id: int, ids: list[int]) -> None:
        self.execute(
            "UPDATE exercises SET substitute_ids = ? WHERE id = ?;",
            ("|".join(str(i) for i in ids), exercise_id),
        )

    def link_substitutes(self, exercise_id: int, substitute_id: int) -> None:
        """Pair two exercises as substitutes of each other."""
        if exercise_id == substitute_id:
            raise ValueError("exercise cannot substitute itself")
        first = self.fetch_substitutes(exercise_id)
        second = self.fetch_substitutes(substitute_id)
        if substitute_id not in first:
            self._set_substitutes(exercise_id, first + [substitute_id])
        if exercise_id not in second:
            self._set_substitutes(substitute_id, second + [exercise_id])

    def unlink_substitutes(self, exercise_id: int, substitute_id: int) -> None:
        first = self.fetch_substitutes(exercise_id)
        second = self.fetch_substitutes(substitute_id)
        self._set_substitutes(exercise_id, [i for i in first if i != substitute_id])
        self._set_substitutes(substitute_id, [i for i in second if i != exercise_id])


class ExercisePreferenceRepository(BaseRepository):
    """Repository for per-user exercise preferences and progression state."""

    def fetch(self, user_id: int, exercise_id: int) -> dict | None:
        rows = self.fetch_records(
            "SELECT id, user_id, exercise_id, blacklisted, current_weight_kg, "
            "sessions_at_current_weight, total_sessions, last_performed_at "
            "FROM exercise_preferences WHERE user_id = ? AND exercise_id = ?;",
            (user_id, exercise_id),
        )
        if not rows:
            return None
        row = rows[0]
        row["blacklisted"] = bool(row["blacklisted"])
        return row

    def blacklisted_ids(self, user_id: int) -> set[int]:
        rows = self.fetch_all(
            "SELECT exercise_id FROM exercise_preferences WHERE user_id = ? AND blacklisted = 1;",
            (user_id,),
        )
        return {int(r[0]) for r in rows}

    def record_session(
        self,
        user_id: int,
        exercise_id: int,
        *,
        blacklisted: bool,
        current_weight_kg: float,
        sessions_at_current_weight: int,
        performed_at: str,
    ) -> None:
        self.execute(
            "INSERT INTO exercise_preferences (user_id, exercise_id, blacklisted, current_weight_kg, "
            "sessions_at_current_weight, total_sessions, last_performed_at) VALUES (?, ?, ?, ?, ?, 1, ?) "
            "ON CONFLICT(user_id, exercise_id) DO UPDATE SET blacklisted=excluded.blacklisted, "
            "current_weight_kg=excluded.current_weight_kg, "
            "sessions_at_current_weight=excluded.sessions_at_current_weight, "
            "total_sessions=exercise_preferences.total_sessions + 1, "
            "last_performed_at=excluded.last_performed_at;",
            (
                user_id,
                exercise_id,
                1 if blacklisted else 0,
                current_weight_kg,
                sessions_at_current_weight,
                performed_at,
            ),
        )

    def set_blacklisted(self, user_id: int, exercise_id: int, blacklisted: bool) -> None:
        self.execute(
            "INSERT INTO exercise_preferences (user_id, exercise_id, blacklisted) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id, exercise_id) DO UPDATE SET blacklisted=excluded.blacklisted;",
            (user_id, exercise_id, 1 if blacklisted else 0),
        )


class InjuryRepository(BaseRepository):
    """Repository for user injuries."""

    def add(
        self,
        user_id: int,
        body_area: str,
        severity: str,
        notes: str | None = None,
        started_at: str | None = None,
    ) -> int:
        if body_area not in BODY_AREAS:
            raise ValueError("invalid body area")
        if severity not in INJURY_SEVERITIES:
            raise ValueError("invalid severity")
        return self.execute(
            "INSERT INTO injuries (user_id, body_area, severity, notes, started_at) VALUES (?, ?, ?, ?, ?);",
            (
                user_id,
                body_area,
                severity,
                notes,
                started_at or datetime.datetime.now().isoformat(timespec="seconds"),
            ),
        )

    def fetch_detail(self, injury_id: int) -> dict:
        rows = self.fetch_records(
            "SELECT id, user_id, body_area, severity, notes, started_at, resolved_at "
            "FROM injuries WHERE id = ?;",
            (injury_id,),
        )
        if not rows:
            raise ValueError("injury not found")
        return rows[0]

    def fetch_active(self, user_id: int) -> list[dict]:
        return self.fetch_records(
            "SELECT id, user_id, body_area, severity, notes, started_at, resolved_at "
            "FROM injuries WHERE user_id = ? AND resolved_at IS NULL ORDER BY started_at DESC, id DESC;",
            (user_id,),
        )

    def active_areas(self, user_id: int) -> set[str]:
        return {i["body_area"].lower() for i in self.fetch_active(user_id)}

    def resolve(self, injury_id: int, user_id: int, resolved_at: str | None = None) -> None:
        rows = self.fetch_all(
            "SELECT id FROM injuries WHERE id = ? AND user_id = ?;",
            (injury_id, user_id),
        )
        if not rows:
            raise ValueError("injury not found")
        self.execute(
            "UPDATE injuries SET resolved_at = ? WHERE id = ?;",
            (
                resolved_at or datetime.datetime.now().isoformat(timespec="seconds"),
                injury_id,
            ),
        )


class WorkoutRepository(BaseRepository):
    """Repository for completed workout sessions."""

    _COLUMNS = "id, user_id, workout_type, is_express, completed_at, duration_mins, wearable_verified"

    @staticmethod
    def _to_record(row: dict) -> dict:
        row["is_express"] = bool(row["is_express"])
        row["wearable_verified"] = bool(row["wearable_verified"])
        return row

    def create(
        self,
        user_id: int,
        workout_type: str,
        completed_at: str,
        is_express: bool = False,
        duration_mins: int | None = None,
    ) -> int:
        if workout_type not in WORKOUT_TYPES:
            raise ValueError("invalid workout type")
        return self.execute(
            "INSERT INTO workouts (user_id, workout_type, is_express, completed_at, duration_mins) "
            "VALUES (?, ?, ?, ?, ?);",
            (
                user_id,
                workout_type,
                1 if is_express else 0,
                completed_at,
                duration_mins if duration_mins is not None else (15 if is_express else 30),
            ),
        )

    def fetch_detail(self, workout_id: int) -> dict:
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM workouts WHERE id = ?;", (workout_id,)
        )
        if not rows:
            raise ValueError("workout not found")
        return self._to_record(rows[0])

    def count_completed(
        self,
        user_id: int,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> int:
        """Count completed workouts with ``start <= completed_at < end``."""
        query = "SELECT COUNT(*) FROM workouts WHERE user_id = ? AND completed_at IS NOT NULL"
        params: list[int | str] = [user_id]
        if start:
            query += " AND completed_at >= ?"
            params.append(start)
        if end:
            query += " AND completed_at < ?"
            params.append(end)
        rows = self.fetch_all(query + ";", tuple(params))
        return int(rows[0][0])

    def fetch_completed(
        self,
        user_id: int,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> list[dict]:
        query = (
            f"SELECT {self._COLUMNS} FROM workouts "
            "WHERE user_id = ? AND completed_at IS NOT NULL"
        )
        params: list[int | str] = [user_id]
        if start:
            query += " AND completed_at >= ?"
            params.append(start)
        if end:
            query += " AND completed_at < ?"
            params.append(end)
        query += " ORDER BY completed_at, id;"
        return [self._to_record(r) for r in self.fetch_records(query, tuple(params))]

    def fetch_last(self, user_id: int) -> dict | None:
        rows = self.fetch_records(
            f"SELECT {self._COLUMNS} FROM workouts WHERE user_id = ? AND completed_at IS NOT NULL "
            "ORDER BY completed_at DESC, id DESC LIMIT 1;",
            (user_id,),
        )
        return self._to_record(rows[0]) if rows else None

    def set_verified(self, workout_id: int, verified: bool = True) -> None:
        self.execute(
            "UPDATE workouts SET wearable_verified = ? WHERE id = ?;",
            (1 if verified else 0, workout_id),
        )


class ExerciseLogRepository(BaseRepository):
    """Repository for per-exercise results of completed workouts."""

    def add(
        self,
        workout_id: int,
        exercise_id: int,
        sets_completed: int,
        weight_kg: float,
        difficulty_feedback: str,
        enjoyed: bool = True,
    ) -> int:
        if difficulty_feedback not in DIFFICULTY_FEEDBACK:
            raise ValueError("invalid difficulty feedback")
        if sets_completed < 0 or weight_kg < 0:
            raise ValueError("sets and weight must be non-negative")
        return self.execute(
            "INSERT INTO exercise_logs (workout_id, exercise_id, sets_completed, weight_kg, difficulty_feedback, enjoyed) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (
                workout_id,
                exercise_id,
                sets_completed,
                weight_kg,
                difficulty_feedback,
                1 if enjoyed else 0,
            ),
        )

    def fetch_for_workout(self, workout_id: int) -> list[dict]:
        return self.fetch_records(
            "SELECT id, exercise_id, sets_completed, weight_kg, difficulty_feedback, enjoyed "
            "FROM exercise_logs WHERE workout_id = ? ORDER BY id;",
            (workout_id,),
        )

    def fetch_for_user(
        self,
        user_id: int,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> list[dict]:
        """Return logs joined with exercise names and completion times."""
        query = (
            "SELECT l.id, l.exercise_id, e.name, e.muscle_group, l.weight_kg, "
            "l.sets_completed, l.difficulty_feedback, w.completed_at "
            "FROM exercise_logs l JOIN workouts w ON l.workout_id = w.id "
            "JOIN exercises e ON l.exercise_id = e.id "
            "WHERE w.user_id = ? AND w.completed_at IS NOT NULL"
        )
        params: list[int | str] = [user_id]
        if start:
            query += " AND w.completed_at >= ?"
            params.append(start)
        if end:
            query += " AND w.completed_at < ?"
            params.append(end)
        query += " ORDER BY w.completed_at, l.id;"
        return self.fetch_records(query, tuple(params))


class WeightLogRepository(BaseRepository):
    """Repository for body weight logs."""

    def log(self, user_id: int, weight_kg: float, logged_at: str) -> int:
        if weight_kg <= 0:
            raise ValueError("weight must be positive")
        return self.execute(
            "INSERT INTO weight_logs (user_id, weight_kg, logged_at) VALUES (?, ?, ?);",
            (user_id, weight_kg, logged_at),
        )

    def count(self, user_id: int, since: Optional[str] = None) -> int:
        query = "SELECT COUNT(*) FROM weight_logs WHERE user_id = ?"
        params: list[int | str] = [user_id]
        if since:
            query += " AND logged_at >= ?"
            params.append(since)
        rows = self.fetch_all(query + ";", tuple(params))
        return int(rows[0][0])

    def fetch_history(
        self, user_id: int, start: Optional[str] = None, limit: int | None = None
    ) -> list[dict]:
        query = "SELECT id, weight_kg, logged_at FROM weight_logs WHERE user_id = ?"
        params: list[int | str] = [user_id]
        if start:
            query += " AND logged_at >= ?"
            params.append(start)
        query += " ORDER BY logged_at, id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return self.fetch_records(query + ";", tuple(params))


class WaistLogRepository(BaseRepository):
    """Repository for waist measurement logs."""

    def log(self, user_id: int, waist_cm: float, logged_at: str) -> int:
        if waist_cm <= 0:
            raise ValueError("waist must be positive")
        return self.execute(
            "INSERT INTO waist_logs (user_id, waist_cm, logged_at) VALUES (?, ?, ?);",
            (user_id, waist_cm, logged_at),
        )

    def count(self, user_id: int, since: Optional[str] = None) -> int:
        query = "SELECT COUNT(*) FROM waist_logs WHERE user_id = ?"
        params: list[int | str] = [user_id]
        if since:
            query += " AND logged_at >= ?"
            params.append(since)
        rows = self.fetch_all(query + ";", tuple(params))
        return int(rows[0][0])

    def fetch_latest(self, user_id: int) -> float | None:
        rows = self.fetch_all(
            "SELECT waist_cm FROM waist_logs WHERE user_id = ? ORDER BY logged_at DESC, id DESC LIMIT 1;",
            (user_id,),
        )
        return float(rows[0][0]) if rows else None

    def fetch_history(
        self, user_id: int, start: Optional[str] = None, limit: int | None = None
    ) -> list[dict]:
        query = "SELECT id, waist_cm, logged_at FROM waist_logs WHERE user_id = ?"
        params: list[int | str] = [user_id]
        if start:
            query += " AND logged_at >= ?"
            params.append(start)
        query += " ORDER BY logged_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return self.fetch_records(query + ";", tuple(params))


class WeeklyStatRepository(BaseRepository):
    """Repository for per-week workout counts, punishment flags and XP."""

    def fetch(self, user_id: int, week_start: str) -> dict | None:
        rows = self.fetch_records(
            "SELECT id, user_id, week_start, workouts_completed, punishment_active, xp_earned, quests_completed "
            "FROM weekly_stats WHERE user_id = ? AND week_start = ?;",
            (user_id, week_start),
        )
        if not rows:
            return None
        row = rows[0]
        row["punishment_active"] = bool(row["punishment_active"])
        return row

    def fetch_all_weeks(self, user_id: int) -> list[dict]:
        rows = self.fetch_records(
            "SELECT id, user_id, week_start, workouts_completed, punishment_active, xp_earned, quests_completed "
            "FROM weekly_stats WHERE user_id = ? ORDER BY week_start;",
            (user_id,),
        )
        for row in rows:
            row["punishment_active"] = bool(row["punishment_active"])
        return rows

    def record_workouts(
        self,
        user_id: int,
        week_start: str,
        workouts_completed: int,
        punishment_active: bool,
        xp: int = 0,
    ) -> None:
        self.execute(
            "INSERT INTO weekly_stats (user_id, week_start, workouts_completed, punishment_active, xp_earned) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, week_start) DO UPDATE SET "
            "workouts_completed=excluded.workouts_completed, "
            "punishment_active=excluded.punishment_active, "
            "xp_earned=weekly_stats.xp_earned + excluded.xp_earned;",
            (user_id, week_start, workouts_completed, 1 if punishment_active else 0, xp),
        )

    def add_xp(self, user_id: int, week_start: str, xp: int) -> None:
        self.execute(
            "INSERT INTO weekly_stats (user_id, week_start, workouts_completed, punishment_active, xp_earned) "
            "VALUES (?, ?, 0, 1, ?) "
            "ON CONFLICT(user_id, week_start) DO UPDATE SET "
            "xp_earned=weekly_stats.xp_earned + excluded.xp_earned;",
            (user_id, week_start, xp),
        )

    def set_quests(self, user_id: int, week_start: str, quests_completed: int, xp: int) -> None:
        self.execute(
            "INSERT INTO weekly_stats (user_id, week_start, workouts_completed, punishment_active, xp_earned, quests_completed) "
            "VALUES (?, ?, 0, 1, ?, ?) "
            "ON CONFLICT(user_id, week_start) DO UPDATE SET "
            "xp_earned=weekly_stats.xp_earned + excluded.xp_earned, "
            "quests_completed=excluded.quests_completed;",
            (user_id, week_start, xp, quests_completed),
        )

    def total_xp(self, user_id: int) -> int:
        rows = self.fetch_all(
            "SELECT SUM(xp_earned) FROM weekly_stats WHERE user_id = ?;", (user_id,)
        )
        return int(rows[0][0] or 0)


class AchievementRepository(BaseRepository):
    """Repository for awarded achievements."""

    def fetch_types(self, user_id: int) -> set[str]:
        rows = self.fetch_all(
            "SELECT achievement_type FROM achievements WHERE user_id = ?;", (user_id,)
        )
        return {r[0] for r in rows}

    def fetch_for_user(self, user_id: int) -> list[dict]:
        return self.fetch_records(
            "SELECT achievement_type, awarded_at FROM achievements WHERE user_id = ? ORDER BY awarded_at, id;",
            (user_id,),
        )

    def add(self, user_id: int, achievement_type: str, awarded_at: str) -> int:
        return self.execute(
            "INSERT OR IGNORE INTO achievements (user_id, achievement_type, awarded_at) VALUES (?, ?, ?);",
            (user_id, achievement_type, awarded_at),
        )


class SentNotificationRepository(BaseRepository):
    """Repository of per-day markers for scheduled notifications."""

    def exists(self, user_id: int, date: str, kind: str) -> bool:
        rows = self.fetch_all(
            "SELECT id FROM sent_notifications WHERE user_id = ? AND date = ? AND kind = ?;",
            (user_id, date, kind),
        )
        return bool(rows)

    def mark(self, user_id: int, date: str, kind: str, sent_at: str) -> None:
        if kind not in NOTIFICATION_KINDS:
            raise ValueError("invalid notification kind")
        self.execute(
            "INSERT INTO sent_notifications (user_id, date, kind, sent_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(user_id, date, kind) DO NOTHING;",
            (user_id, date, kind, sent_at),
        )

    def fetch_for_user(self, user_id: int, date: Optional[str] = None) -> list[dict]:
        query = "SELECT id, user_id, date, kind, sent_at FROM sent_notifications WHERE user_id = ?"
        params: list[int | str] = [user_id]
        if date:
            query += " AND date = ?"
            params.append(date)
        query += " ORDER BY id;"
        return self.fetch_records(query, tuple(params))


class WearableDailyRepository(BaseRepository):
    """Repository for daily wearable summaries."""

    _FIELDS = (
        "sleep_duration_mins",
        "sleep_efficiency",
        "recovery_recommendation",
        "steps",
        "active_minutes",
        "resting_hr",
    )

    def upsert(self, user_id: int, date: str, **fields) -> None:
        unknown = set(fields) - set(self._FIELDS)
        if unknown:
            raise ValueError(f"unknown fields: {', '.join(sorted(unknown))}")
        cols = list(fields)
        placeholders = ", ".join("?" for _ in range(len(cols) + 2))
        updates = ", ".join(f"{c}=excluded.{c}" for c in cols) or "date=excluded.date"
        self.execute(
            f"INSERT INTO wearable_daily (user_id, date{''.join(', ' + c for c in cols)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT(user_id, date) DO UPDATE SET {updates};",
            (user_id, date, *fields.values()),
        )

    def fetch_history(self, user_id: int, start: Optional[str] = None) -> list[dict]:
        query = (
            "SELECT date, sleep_duration_mins, sleep_efficiency, recovery_recommendation, "
            "steps, active_minutes, resting_hr FROM wearable_daily WHERE user_id = ?"
        )
        params: list[int | str] = [user_id]
        if start:
            query += " AND date >= ?"
            params.append(start)
        query += " ORDER BY date;"
        return self.fetch_records(query, tuple(params))


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    _BOOL_KEYS = {"notifications_enabled"}
    _TEXT_KEYS = {"timezone", "telegram_bot_token", "cron_secret", "calendar_api_key"}

    def __init__(
        self, db_path: str = "gym.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self._BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            if k in self._TEXT_KEYS:
                result[k] = v
                continue
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
                if key in self._BOOL_KEYS:
                    if val in {"1", "1.0", "true", "True"}:
                        val = "1"
                    else:
                        val = "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_float(self, key: str, default: float) -> float:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return float(rows[0][0]) if rows else default

    def set_float(self, key: str, value: float) -> None:
        self.set_text(key, str(value))

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_text(self, key: str, value: str) -> None:
        if key in self._TEXT_KEYS:
            validate_settings({key: value})
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

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
        data = self._raw_all_settings()
        for key in self._TEXT_KEYS - {"timezone"}:
            if data.get(key):
                data[key] = "***"
        return data
