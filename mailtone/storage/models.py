"""SQLite table schemas and typed query result types for the storage layer."""

from dataclasses import dataclass


# ── DDL ────────────────────────────────────────────────────────────────────────

_CREATE_MESSAGES = """
CREATE TABLE IF NOT EXISTS messages (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    sender          TEXT NOT NULL,
    sender_address  TEXT NOT NULL,
    recipient       TEXT NOT NULL,
    subject         TEXT,
    content         TEXT NOT NULL DEFAULT '',
    received_at     TEXT NOT NULL,
    processed_at    TEXT,
    tone_analysis   TEXT,
    status          TEXT NOT NULL DEFAULT 'RECEIVED',
    updated_at      TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

_CREATE_SENDER_INDEX = """
CREATE INDEX IF NOT EXISTS idx_messages_sender_address
    ON messages (sender_address, received_at)
"""

_CREATE_TEMPLATES = """
CREATE TABLE IF NOT EXISTS templates (
    key         TEXT PRIMARY KEY,
    body        TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

#: All DDL statements in creation order.
ALL_TABLES: list[str] = [
    _CREATE_MESSAGES,
    _CREATE_SENDER_INDEX,
    _CREATE_TEMPLATES,
]


# ── Query result types ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MessageRow:
    """A full row from the messages table."""

    id: int
    sender: str
    sender_address: str
    recipient: str
    subject: str | None
    content: str
    received_at: str
    processed_at: str | None
    tone_analysis: str | None  # JSON-encoded ToneAnalysis
    status: str
    updated_at: str
