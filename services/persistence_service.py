from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SentReply:
    account: str
    message_id: str
    thread_id: Optional[str]
    replied_at: datetime
    marked_at: Optional[datetime]


class SentReplyLedger:
    """SQLite-backed record of the Gmail messages that already got an auto-reply.

    A row is written as soon as the reply is sent and completed once the marker
    label lands, so a message whose labeling failed is never answered twice.
    """

    def __init__(self, db_path: Path, account: str = "me"):
        self._db_path = db_path
        self._account = account
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_schema(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sent_replies (
                    account TEXT NOT NULL,
                    message_id TEXT NOT NULL,
                    thread_id TEXT,
                    replied_at TEXT NOT NULL,
                    marked_at TEXT,
                    PRIMARY KEY (account, message_id)
                )
                """
            )

    def has_replied(self, message_id: str) -> bool:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT 1 FROM sent_replies WHERE account=? AND message_id=?",
                (self._account, message_id),
            ).fetchone()
        return row is not None

    def record_reply(self, message_id: str, thread_id: Optional[str] = None) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO sent_replies(account, message_id, thread_id, replied_at)
                VALUES (?, ?, ?, ?)
                """,
                (self._account, message_id, thread_id, timestamp),
            )
        LOGGER.debug("Recorded reply to %s for account %s", message_id, self._account)

    def record_marked(self, message_id: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        with closing(self._connect()) as conn, conn:
            conn.execute(
                "UPDATE sent_replies SET marked_at=? WHERE account=? AND message_id=?",
                (timestamp, self._account, message_id),
            )

    def unmarked(self) -> list[str]:
        """Message ids that were replied to but never confirmed as labeled."""

        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT message_id FROM sent_replies WHERE account=? AND marked_at IS NULL ORDER BY replied_at",
                (self._account,),
            ).fetchall()
        return [row[0] for row in rows]

    def recent_entries(self, limit: int = 10) -> list[SentReply]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                """
                SELECT account, message_id, thread_id, replied_at, marked_at
                FROM sent_replies WHERE account=? ORDER BY replied_at DESC LIMIT ?
                """,
                (self._account, limit),
            ).fetchall()
        return [
            SentReply(
                account=row[0],
                message_id=row[1],
                thread_id=row[2],
                replied_at=datetime.fromisoformat(row[3]),
                marked_at=datetime.fromisoformat(row[4]) if row[4] else None,
            )
            for row in rows
        ]
