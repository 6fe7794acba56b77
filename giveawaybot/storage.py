"""SQLite persistence for giveaways and their participants."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

from .models import (
    Giveaway,
    GiveawayStatus,
    GiveawayType,
    Participant,
    TypeData,
)

LOGGER = logging.getLogger(__name__)


class GiveawayStore:
    """Async wrapper around the giveaway SQLite database."""

    def __init__(self, path: Path) -> None:
        """Initialise the store with the database file path."""
        self.path = path
        self._lock = asyncio.Lock()
        self._conn: Optional[sqlite3.Connection] = None

    async def open(self) -> None:
        """Open the database and create the schema if needed."""
        async with self._lock:
            if self._conn is not None:
                return
            self._conn = await asyncio.to_thread(self._connect)
            LOGGER.info("Giveaway database opened at %s", self.path)

    async def close(self) -> None:
        async with self._lock:
            if self._conn is None:
                return
            conn, self._conn = self._conn, None
            await asyncio.to_thread(conn.close)

    async def insert_giveaway(self, giveaway: Giveaway) -> None:
        await self._run(self._insert_giveaway, giveaway)

    async def get_giveaway(self, message_id: int) -> Optional[Giveaway]:
        return await self._run(self._get_giveaway, message_id)

    async def update_giveaway(
        self,
        message_id: int,
        *,
        prize: Optional[str] = None,
        end_timestamp: Optional[int] = None,
    ) -> bool:
        """Update only the supplied columns of an active giveaway.

        Returns False when nothing matched (missing or already ended).
        """
        columns: list[str] = []
        values: list[object] = []
        if prize is not None:
            columns.append("prize = ?")
            values.append(prize)
        if end_timestamp is not None:
            columns.append("end_timestamp = ?")
            values.append(int(end_timestamp))
        if not columns:
            return False
        return await self._run(self._update_active, message_id, columns, values)

    async def save_result(self, message_id: int, data: TypeData) -> None:
        """Persist the resolution payload (winners) of an ended giveaway."""
        await self._run(
            self._execute,
            "UPDATE giveaways SET data = ? WHERE message_id = ?",
            (json.dumps(data.to_payload()), message_id),
        )

    async def mark_ended(self, message_id: int) -> bool:
        """Transition a giveaway from active to ended.

        Returns True only for the call that performed the transition.
        """
        return await self._run(self._mark_ended, message_id)

    async def list_expired(self, now: int) -> List[Giveaway]:
        return await self._run(
            self._select,
            "SELECT * FROM giveaways WHERE status = ? AND end_timestamp <= ? "
            "ORDER BY end_timestamp",
            (GiveawayStatus.ACTIVE.value, int(now)),
        )

    async def list_active_guess_games(self) -> List[Giveaway]:
        return await self._run(
            self._select,
            "SELECT * FROM giveaways WHERE status = ? AND type = ?",
            (GiveawayStatus.ACTIVE.value, GiveawayType.GUESS.value),
        )

    async def add_participant(self, participant: Participant) -> bool:
        """Insert a participant; False if the user already joined."""
        return await self._run(self._add_participant, participant)

    async def list_participants(self, giveaway_id: int) -> List[Participant]:
        return await self._run(self._list_participants, giveaway_id)

    async def count_participants(self, giveaway_id: int) -> int:
        return await self._run(self._count_participants, giveaway_id)

    # --- Internal helpers -------------------------------------------------

    async def _run(self, func, *args):
        async with self._lock:
            if self._conn is None:
                raise RuntimeError("GiveawayStore.open() must be awaited first.")
            return await asyncio.to_thread(func, self._conn, *args)

    def _connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        self._ensure_schema(conn)
        return conn

    @staticmethod
    def _execute(conn: sqlite3.Connection, sql: str, params: tuple) -> int:
        with conn:
            return conn.execute(sql, params).rowcount

    def _insert_giveaway(self, conn: sqlite3.Connection, giveaway: Giveaway) -> None:
        with conn:
            conn.execute(
                """
                INSERT INTO giveaways(
                    message_id,
                    channel_id,
                    thread_id,
                    guild_id,
                    organizer_id,
                    prize,
                    image_url,
                    end_timestamp,
                    created_at,
                    type,
                    status,
                    data
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    giveaway.message_id,
                    giveaway.channel_id,
                    giveaway.thread_id,
                    giveaway.guild_id,
                    giveaway.organizer_id,
                    giveaway.prize,
                    giveaway.image_url,
                    giveaway.end_timestamp,
                    giveaway.created_at,
                    giveaway.type.value,
                    giveaway.status.value,
                    json.dumps(giveaway.data.to_payload()),
                ),
            )

    def _get_giveaway(
        self, conn: sqlite3.Connection, message_id: int
    ) -> Optional[Giveaway]:
        row = conn.execute(
            "SELECT * FROM giveaways WHERE message_id = ?", (message_id,)
        ).fetchone()
        return self._row_to_giveaway(row) if row else None

    def _update_active(
        self,
        conn: sqlite3.Connection,
        message_id: int,
        columns: list[str],
        values: list[object],
    ) -> bool:
        sql = (
            f"UPDATE giveaways SET {', '.join(columns)} "
            "WHERE message_id = ? AND status = ?"
        )
        return self._execute(
            conn, sql, (*values, message_id, GiveawayStatus.ACTIVE.value)
        ) == 1

    def _mark_ended(self, conn: sqlite3.Connection, message_id: int) -> bool:
        return self._execute(
            conn,
            "UPDATE giveaways SET status = ? WHERE message_id = ? AND status = ?",
            (
                GiveawayStatus.ENDED.value,
                message_id,
                GiveawayStatus.ACTIVE.value,
            ),
        ) == 1

    def _select(
        self, conn: sqlite3.Connection, sql: str, params: tuple
    ) -> List[Giveaway]:
        return [self._row_to_giveaway(row) for row in conn.execute(sql, params)]

    @staticmethod
    def _add_participant(conn: sqlite3.Connection, participant: Participant) -> bool:
        try:
            with conn:
                conn.execute(
                    "INSERT INTO participants(giveaway_id, user_id, joined_at) "
                    "VALUES (?, ?, ?)",
                    (
                        participant.giveaway_id,
                        participant.user_id,
                        participant.joined_at,
                    ),
                )
        except sqlite3.IntegrityError:
            return False
        return True

    @staticmethod
    def _list_participants(
        conn: sqlite3.Connection, giveaway_id: int
    ) -> List[Participant]:
        return [
            Participant(
                giveaway_id=int(row["giveaway_id"]),
                user_id=int(row["user_id"]),
                joined_at=int(row["joined_at"]),
            )
            for row in conn.execute(
                "SELECT giveaway_id, user_id, joined_at FROM participants "
                "WHERE giveaway_id = ? ORDER BY joined_at",
                (giveaway_id,),
            )
        ]

    @staticmethod
    def _count_participants(conn: sqlite3.Connection, giveaway_id: int) -> int:
        row = conn.execute(
            "SELECT COUNT(*) FROM participants WHERE giveaway_id = ?", (giveaway_id,)
        ).fetchone()
        return int(row[0])

    @staticmethod
    def _row_to_giveaway(row: sqlite3.Row) -> Giveaway:
        giveaway_type = GiveawayType(row["type"])
        payload = json.loads(row["data"]) if row["data"] else {}
        return Giveaway(
            message_id=int(row["message_id"]),
            channel_id=int(row["channel_id"]),
            thread_id=int(row["thread_id"]) if row["thread_id"] is not None else None,
            guild_id=int(row["guild_id"]),
            organizer_id=int(row["organizer_id"]),
            prize=row["prize"],
            image_url=row["image_url"],
            end_timestamp=int(row["end_timestamp"]),
            created_at=int(row["created_at"] or 0),
            type=giveaway_type,
            status=GiveawayStatus(row["status"]),
            data=Giveaway.data_from_payload(giveaway_type, payload),
        )

    @staticmethod
    def _ensure_schema(conn: sqlite3.Connection) -> None:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS giveaways (
                message_id INTEGER PRIMARY KEY,
                channel_id INTEGER NOT NULL,
                thread_id INTEGER,
                guild_id INTEGER NOT NULL,
                organizer_id INTEGER NOT NULL,
                prize TEXT NOT NULL,
                image_url TEXT,
                end_timestamp INTEGER NOT NULL,
                created_at INTEGER NOT NULL DEFAULT 0,
                type TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                data TEXT
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS participants (
                giveaway_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                joined_at INTEGER NOT NULL,
                PRIMARY KEY (giveaway_id, user_id)
            )
            """
        )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_giveaways_status_end
            ON giveaways(status, end_timestamp)
            """
        )
        conn.commit()
