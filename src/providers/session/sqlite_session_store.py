"""SQLite-backed persistent draft session store.

Persists sessions as JSON blobs via ``aiosqlite`` so drafts survive a
restart.  Expiry is an ``expires_at`` epoch column checked on every read;
expired rows are pruned on :meth:`initialize`.  The conditional write is a
single ``UPDATE ... WHERE version = ?`` so concurrent writers serialise in
SQLite itself.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.session_store import ISessionStore
from src.models.session import Session
from src.utils.logging import get_logger

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS {table} (
    session_id   TEXT    PRIMARY KEY,
    version      INTEGER NOT NULL,
    session_json TEXT    NOT NULL,
    expires_at   REAL    NOT NULL,
    updated_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_{table}_expires ON {table}(expires_at);"
)

_INSERT_SQL = """\
INSERT INTO {table} (session_id, version, session_json, expires_at)
VALUES (?, ?, ?, ?)
ON CONFLICT(session_id)
DO UPDATE SET version      = excluded.version,
              session_json = excluded.session_json,
              expires_at   = excluded.expires_at,
              updated_at   = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE {table}.expires_at <= ?;
"""

_CAS_SQL = """\
UPDATE {table}
SET version      = ?,
    session_json = ?,
    expires_at   = ?,
    updated_at   = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE session_id = ? AND version = ? AND expires_at > ?;
"""

_SELECT_SQL = "SELECT session_json FROM {table} WHERE session_id = ? AND expires_at > ?;"

_DELETE_SQL = "DELETE FROM {table} WHERE session_id = ? AND expires_at > ?;"

_LIVE_IDS_SQL = "SELECT session_id FROM {table} WHERE expires_at > ? ORDER BY updated_at;"

_PRUNE_SQL = "DELETE FROM {table} WHERE expires_at <= ?;"


class SQLiteSessionStore(ISessionStore):
    """Draft session store backed by SQLite.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    table_name:
        Table name to use.
    clock:
        Wall-clock source (epoch seconds); injectable for tests.
    """

    def __init__(
        self,
        db_path: str | Path,
        table_name: str = "draft_sessions",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._table = table_name
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the table and index, then prune expired sessions.

        Must be called once before use (typically during app startup).
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL.format(table=self._table))
            await db.execute(_CREATE_INDEX_SQL.format(table=self._table))
            cursor = await db.execute(_PRUNE_SQL.format(table=self._table), (self._clock(),))
            pruned = cursor.rowcount
            await db.commit()

        if pruned:
            self._logger.info("sessions_pruned", table=self._table, pruned=pruned)
        self._logger.info(
            "session_store_initialized",
            db_path=str(self._db_path),
            table=self._table,
        )

    # ------------------------------------------------------------------
    # ISessionStore implementation
    # ------------------------------------------------------------------

    async def get(self, session_id: str) -> Session | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                _SELECT_SQL.format(table=self._table),
                (session_id, self._clock()),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return Session.model_validate_json(row[0])

    async def create(self, session: Session, ttl: int) -> bool:
        now = self._clock()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                _INSERT_SQL.format(table=self._table),
                (session.session_id, session.version, session.model_dump_json(), now + ttl, now),
            )
            await db.commit()
            created = cursor.rowcount == 1
        if created:
            self._logger.debug("session_stored", session_id=session.session_id, version=session.version)
        return created

    async def compare_and_set(self, session: Session, expected_version: int, ttl: int) -> bool:
        now = self._clock()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                _CAS_SQL.format(table=self._table),
                (
                    session.version,
                    session.model_dump_json(),
                    now + ttl,
                    session.session_id,
                    expected_version,
                    now,
                ),
            )
            await db.commit()
            written = cursor.rowcount == 1
        if written:
            self._logger.debug("session_stored", session_id=session.session_id, version=session.version)
        return written

    async def delete(self, session_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                _DELETE_SQL.format(table=self._table),
                (session_id, self._clock()),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def list_ids(self) -> list[str]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(_LIVE_IDS_SQL.format(table=self._table), (self._clock(),))
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    def get_provider_name(self) -> str:
        return "sqlite"
