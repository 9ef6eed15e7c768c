"""SQLite storage for messages, their lifecycle status, sender history and templates."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import parseaddr
from pathlib import Path

from mailtone.errors import PersistenceError
from mailtone.processing.templates import TemplateCatalog
from mailtone.processing.types import EmailMessage, MessageStatus, SenderHistory, ToneAnalysis
from mailtone.storage.models import ALL_TABLES, MessageRow

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path("data/mailtone.db")

_MESSAGE_COLUMNS = (
    "id, sender, sender_address, recipient, subject, content, received_at, "
    "processed_at, tone_analysis, status, updated_at"
)


def normalise_address(address: str) -> str:
    """Lower-cased bare address of a From/To header value."""
    _, addr = parseaddr(address)
    return (addr or address).strip().lower()


def _to_db_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_db_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _from_db_time(value: str | None) -> datetime | None:
    return _parse_db_time(value) if value is not None else None


class MessageDatabase:
    """Wraps SQLite for message persistence, sender history and reply templates.

    Implements the MessageStore, HistoryLookup and template-loading contracts.
    Every sqlite3 failure is re-raised as PersistenceError; the store never
    retries.

    Usage::

        db = MessageDatabase()
        message_id = db.create_message(message)
        db.update_status(message_id, MessageStatus.PROCESSING)
        history = db.get_history("alice@example.com")
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._path = Path(db_path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"cannot open database {self._path}: {exc}") from exc

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    # ── MessageStore ────────────────────────────────────────────────────────────

    def create_message(self, message: EmailMessage) -> int:
        """Insert a new message row and return its id."""
        try:
            with self._conn:
                cursor = self._conn.execute(
                    """
                    INSERT INTO messages
                        (sender, sender_address, recipient, subject, content,
                         received_at, status)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message.sender,
                        normalise_address(message.sender),
                        message.recipient,
                        message.subject,
                        message.content or "",
                        _to_db_time(message.received_at),
                        message.status.value,
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to store message from {message.sender}: {exc}") from exc
        message_id = cursor.lastrowid
        if message_id is None:
            raise PersistenceError("database did not assign a message id")
        return message_id

    def update_status(self, message_id: int, status: MessageStatus) -> None:
        self._update(
            message_id,
            "UPDATE messages SET status = ?, updated_at = datetime('now') WHERE id = ?",
            (MessageStatus(status).value, message_id),
        )

    def save_analysis(
        self,
        message_id: int,
        analysis: ToneAnalysis,
        processed_at: datetime,
        status: MessageStatus,
    ) -> None:
        """Overwrite analysis, processed date and status. Idempotent."""
        self._update(
            message_id,
            """
            UPDATE messages
            SET tone_analysis = ?, processed_at = ?, status = ?, updated_at = datetime('now')
            WHERE id = ?
            """,
            (analysis.to_json(), _to_db_time(processed_at), MessageStatus(status).value, message_id),
        )

    # ── Read API ────────────────────────────────────────────────────────────────

    def get_message(self, message_id: int) -> EmailMessage | None:
        """Return the stored message for message_id, or None if not found."""
        row = self._fetch_row(message_id)
        return _row_to_message(row) if row else None

    def get_row(self, message_id: int) -> MessageRow | None:
        return self._fetch_row(message_id)

    def list_messages(self, status: MessageStatus | None = None, limit: int = 20) -> list[MessageRow]:
        """Return the most recent rows, optionally filtered by status."""
        try:
            if status is None:
                rows = self._conn.execute(
                    f"SELECT {_MESSAGE_COLUMNS} FROM messages ORDER BY id DESC LIMIT ?",
                    (limit,),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE status = ? "
                    "ORDER BY id DESC LIMIT ?",
                    (MessageStatus(status).value, limit),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to list messages: {exc}") from exc
        return [MessageRow(**dict(r)) for r in rows]

    # ── HistoryLookup ───────────────────────────────────────────────────────────

    def get_history(self, address: str, before: datetime | None = None) -> SenderHistory:
        """Count messages from address, optionally only those received before `before`."""
        sql = (
            "SELECT COUNT(*) AS prior_count, MAX(received_at) AS last_contact "
            "FROM messages WHERE sender_address = ?"
        )
        params: list[object] = [normalise_address(address)]
        if before is not None:
            sql += " AND received_at < ?"
            params.append(_to_db_time(before))
        try:
            row = self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to read history for {address}: {exc}") from exc
        return SenderHistory(
            prior_count=int(row["prior_count"]),
            last_contact=_from_db_time(row["last_contact"]),
        )

    # ── Templates ───────────────────────────────────────────────────────────────

    def seed_templates(self, templates: Mapping[str, str]) -> int:
        """Insert templates whose keys are not stored yet. Returns the number added."""
        try:
            with self._conn:
                before = self._conn.total_changes
                self._conn.executemany(
                    "INSERT OR IGNORE INTO templates (key, body) VALUES (?, ?)",
                    [(str(getattr(k, "value", k)), body) for k, body in templates.items()],
                )
                added = self._conn.total_changes - before
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to seed templates: {exc}") from exc
        if added:
            logger.info("Seeded %d reply template(s)", added)
        return added

    def save_template(self, key: str, body: str) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO templates (key, body) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        body = excluded.body,
                        updated_at = datetime('now')
                    """,
                    (key, body),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to save template {key!r}: {exc}") from exc

    def load_templates(self) -> TemplateCatalog:
        """Snapshot every stored template into an immutable catalog."""
        try:
            rows = self._conn.execute("SELECT key, body FROM templates").fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to load templates: {exc}") from exc
        return TemplateCatalog({row["key"]: row["body"] for row in rows})

    # ── Private ─────────────────────────────────────────────────────────────────

    def _create_tables(self) -> None:
        with self._conn:
            for ddl in ALL_TABLES:
                self._conn.execute(ddl)

    def _update(self, message_id: int, sql: str, params: tuple[object, ...]) -> None:
        try:
            with self._conn:
                cursor = self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to update message {message_id}: {exc}") from exc
        if cursor.rowcount == 0:
            raise PersistenceError(f"message {message_id} not found")

    def _fetch_row(self, message_id: int) -> MessageRow | None:
        try:
            row = self._conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?",
                (message_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to read message {message_id}: {exc}") from exc
        return MessageRow(**dict(row)) if row else None


def _row_to_message(row: MessageRow) -> EmailMessage:
    return EmailMessage(
        id=row.id,
        sender=row.sender,
        recipient=row.recipient,
        subject=row.subject,
        content=row.content,
        received_at=_parse_db_time(row.received_at),
        processed_at=_from_db_time(row.processed_at),
        tone_analysis=ToneAnalysis.from_json(row.tone_analysis) if row.tone_analysis else None,
        status=MessageStatus(row.status),
    )
