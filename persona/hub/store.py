"""SQLite store for activity/keyword history, the profile and daily patterns.

Each record is kept as a JSON document. Loads are best-effort: a malformed
row is logged and skipped, the rest still load. ``import_all`` replaces the
whole state inside one transaction.
"""

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any

import aiosqlite

from persona.hub.constants import (
    EXPORT_ACTIVITY_HISTORY,
    EXPORT_DAILY_PATTERNS,
    EXPORT_KEYWORD_HISTORY,
    EXPORT_PROFILE,
    EXPORT_VERSION,
)
from persona.shared.models import ActivityPeriod, DailyPattern, KeywordEvent
from persona.shared.profile import UserProfile

logger = logging.getLogger(__name__)

RECORD_ERRORS = (KeyError, TypeError, ValueError, json.JSONDecodeError)


class StoreError(Exception):
    """Raised when the store cannot complete an operation."""


class PersonaStore:
    """Async SQLite store for one user's behavioral state."""

    def __init__(self, db_path: str, activity_retention: int = 1000, keyword_retention: int = 1000):
        self.db_path = db_path
        self.activity_retention = activity_retention
        self.keyword_retention = keyword_retention
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create database, enable WAL mode, and ensure schema exists."""
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)

        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA busy_timeout=5000")

        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS activity_periods (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                data TEXT NOT NULL
            )
        """)
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS keyword_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                data TEXT NOT NULL
            )
        """)
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS profile (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS daily_patterns (
                day TEXT PRIMARY KEY,
                data TEXT NOT NULL
            )
        """)
        await self._conn.execute("CREATE INDEX IF NOT EXISTS idx_activity_ts ON activity_periods(timestamp)")
        await self._conn.execute("CREATE INDEX IF NOT EXISTS idx_keyword_ts ON keyword_events(timestamp)")
        await self._conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "PersonaStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise StoreError("PersonaStore not initialized")
        return self._conn

    @asynccontextmanager
    async def transaction(self):
        """Serialized write scope: commit on success, roll back on any exception."""
        conn = self.conn
        async with self._write_lock:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()

    # ── Activity history ────────────────────────────────────────────────

    async def _insert_activity(self, period: ActivityPeriod) -> None:
        await self.conn.execute(
            "INSERT INTO activity_periods (timestamp, data) VALUES (?, ?)",
            (period.timestamp.isoformat(), json.dumps(period.to_dict())),
        )

    async def save_activity_period(self, period: ActivityPeriod) -> None:
        async with self.transaction():
            await self._insert_activity(period)
            await self._prune("activity_periods", self.activity_retention)

    async def load_activity_history(self, limit: int | None = None) -> list[ActivityPeriod]:
        """Stored periods, oldest first; the newest ``limit`` when given."""
        rows = await self._load_rows("activity_periods", limit)
        return self._parse_rows(rows, ActivityPeriod.from_dict, "activity_periods")

    # ── Keyword history ─────────────────────────────────────────────────

    async def _insert_keyword(self, event: KeywordEvent) -> None:
        await self.conn.execute(
            "INSERT INTO keyword_events (timestamp, data) VALUES (?, ?)",
            (event.timestamp.isoformat(), json.dumps(event.to_dict(), ensure_ascii=False)),
        )

    async def save_keyword_event(self, event: KeywordEvent) -> None:
        async with self.transaction():
            await self._insert_keyword(event)
            await self._prune("keyword_events", self.keyword_retention)

    async def load_keyword_history(self, limit: int | None = None) -> list[KeywordEvent]:
        rows = await self._load_rows("keyword_events", limit)
        return self._parse_rows(rows, KeywordEvent.from_dict, "keyword_events")

    # ── Profile ─────────────────────────────────────────────────────────

    async def _upsert_profile(self, data: dict[str, Any]) -> None:
        await self.conn.execute(
            """INSERT INTO profile (id, data, updated_at) VALUES (1, ?, ?)
               ON CONFLICT(id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at""",
            (json.dumps(data, ensure_ascii=False), datetime.now().isoformat()),
        )

    async def save_profile(self, profile: UserProfile) -> None:
        async with self.transaction():
            await self._upsert_profile(profile.to_dict())

    async def load_profile(self) -> UserProfile | None:
        """Stored profile, or None when absent or unreadable."""
        cursor = await self.conn.execute("SELECT data FROM profile WHERE id = 1")
        row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return UserProfile.from_dict(json.loads(row["data"]))
        except RECORD_ERRORS as e:
            logger.warning(f"Skipping malformed stored profile: {e}")
            return None

    # ── Daily patterns ──────────────────────────────────────────────────

    async def save_daily_patterns(self, patterns: dict[date, DailyPattern], retention: int | None = None) -> None:
        """Upsert per-date patterns, keeping the newest ``retention`` days."""
        async with self.transaction():
            await self._insert_daily_patterns(patterns)
            if retention:
                await self.conn.execute(
                    """DELETE FROM daily_patterns WHERE day NOT IN
                       (SELECT day FROM daily_patterns ORDER BY day DESC LIMIT ?)""",
                    (retention,),
                )

    async def _insert_daily_patterns(self, patterns: dict[date, DailyPattern]) -> None:
        await self.conn.executemany(
            "INSERT OR REPLACE INTO daily_patterns (day, data) VALUES (?, ?)",
            [(day.isoformat(), json.dumps(p.to_dict())) for day, p in patterns.items()],
        )

    async def load_daily_patterns(self) -> dict[date, DailyPattern]:
        cursor = await self.conn.execute("SELECT day, data FROM daily_patterns ORDER BY day ASC")
        patterns = {}
        for row in await cursor.fetchall():
            try:
                patterns[date.fromisoformat(row["day"])] = DailyPattern.from_dict(json.loads(row["data"]))
            except RECORD_ERRORS as e:
                logger.warning(f"Skipping malformed daily pattern {row['day']}: {e}")
        return patterns

    # ── Whole-state operations ──────────────────────────────────────────

    async def export_all(self) -> str:
        """Serialize the complete stored state as a JSON document."""
        profile = await self.load_profile()
        document = {
            "version": EXPORT_VERSION,
            "exported_at": datetime.now().isoformat(),
            EXPORT_ACTIVITY_HISTORY: [p.to_dict() for p in await self.load_activity_history()],
            EXPORT_KEYWORD_HISTORY: [e.to_dict() for e in await self.load_keyword_history()],
            EXPORT_PROFILE: profile.to_dict() if profile else None,
            EXPORT_DAILY_PATTERNS: {
                day.isoformat(): p.to_dict() for day, p in (await self.load_daily_patterns()).items()
            },
        }
        return json.dumps(document, ensure_ascii=False)

    async def import_all(self, blob: str | dict[str, Any]) -> None:
        """Replace all stored state with an exported document.

        The document is parsed before anything is touched; a document that
        is not an export raises ``StoreError`` and leaves the store as is.
        Individual malformed records inside a valid document are skipped.
        """
        try:
            document = json.loads(blob) if isinstance(blob, str) else blob
        except json.JSONDecodeError as e:
            raise StoreError(f"Import document is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise StoreError("Import document must be a JSON object")

        activity = _parse_list(document.get(EXPORT_ACTIVITY_HISTORY, []), ActivityPeriod.from_dict, "activity")
        keywords = _parse_list(document.get(EXPORT_KEYWORD_HISTORY, []), KeywordEvent.from_dict, "keyword")
        profile = None
        if document.get(EXPORT_PROFILE) is not None:
            try:
                profile = UserProfile.from_dict(document[EXPORT_PROFILE])
            except RECORD_ERRORS as e:
                raise StoreError(f"Import profile is malformed: {e}") from e
        daily = {}
        raw_daily = document.get(EXPORT_DAILY_PATTERNS, {})
        if not isinstance(raw_daily, dict):
            raise StoreError("daily_patterns must be an object")
        for day, raw in raw_daily.items():
            try:
                daily[date.fromisoformat(day)] = DailyPattern.from_dict(raw)
            except RECORD_ERRORS as e:
                logger.warning(f"Skipping malformed imported daily pattern {day}: {e}")

        async with self.transaction():
            await self._delete_all()
            for period in activity:
                await self._insert_activity(period)
            for event in keywords:
                await self._insert_keyword(event)
            if profile is not None:
                await self._upsert_profile(profile.to_dict())
            await self._insert_daily_patterns(daily)

        logger.info(
            f"Imported {len(activity)} activity periods, {len(keywords)} keyword events, "
            f"{len(daily)} daily patterns, profile={'yes' if profile else 'no'}"
        )

    async def clear_all(self) -> None:
        async with self.transaction():
            await self._delete_all()

    async def _delete_all(self) -> None:
        for table in ("activity_periods", "keyword_events", "profile", "daily_patterns"):
            await self.conn.execute(f"DELETE FROM {table}")  # noqa: S608

    # ── Helpers ─────────────────────────────────────────────────────────

    async def _prune(self, table: str, retention: int) -> None:
        await self.conn.execute(
            f"DELETE FROM {table} WHERE id NOT IN (SELECT id FROM {table} ORDER BY id DESC LIMIT ?)",  # noqa: S608
            (retention,),
        )

    async def _load_rows(self, table: str, limit: int | None) -> list[aiosqlite.Row]:
        if limit is None:
            cursor = await self.conn.execute(f"SELECT id, data FROM {table} ORDER BY id ASC")  # noqa: S608
            return list(await cursor.fetchall())
        cursor = await self.conn.execute(
            f"SELECT id, data FROM {table} ORDER BY id DESC LIMIT ?",  # noqa: S608
            (limit,),
        )
        return list(reversed(await cursor.fetchall()))

    @staticmethod
    def _parse_rows(rows, parser, table: str) -> list:
        records = []
        for row in rows:
            try:
                records.append(parser(json.loads(row["data"])))
            except RECORD_ERRORS as e:
                logger.warning(f"Skipping malformed {table} row {row['id']}: {e}")
        return records

    async def count(self, table: str) -> int:
        cursor = await self.conn.execute(f"SELECT COUNT(*) FROM {table}")  # noqa: S608
        row = await cursor.fetchone()
        return row[0]


def _parse_list(raw: Any, parser, kind: str) -> list:
    if not isinstance(raw, list):
        raise StoreError(f"{kind} history must be a list")
    records = []
    for index, item in enumerate(raw):
        try:
            records.append(parser(item))
        except RECORD_ERRORS as e:
            logger.warning(f"Skipping malformed imported {kind} record #{index}: {e}")
    return records
