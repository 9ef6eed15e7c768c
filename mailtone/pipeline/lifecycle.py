"""Message lifecycle state machine and the persistence contract it drives."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Protocol, runtime_checkable

from mailtone.errors import InvalidTransitionError
from mailtone.processing.types import EmailMessage, MessageStatus, ToneAnalysis, utcnow

logger = logging.getLogger(__name__)

#: Allowed forward moves. REPLIED and ERROR are terminal.
TRANSITIONS: dict[MessageStatus, frozenset[MessageStatus]] = {
    MessageStatus.RECEIVED: frozenset({MessageStatus.PROCESSING, MessageStatus.ERROR}),
    MessageStatus.PROCESSING: frozenset({MessageStatus.PROCESSED, MessageStatus.ERROR}),
    MessageStatus.PROCESSED: frozenset({MessageStatus.REPLIED, MessageStatus.ERROR}),
    MessageStatus.REPLIED: frozenset(),
    MessageStatus.ERROR: frozenset(),
}

TERMINAL_STATUSES: frozenset[MessageStatus] = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)


def can_transition(current: MessageStatus, target: MessageStatus) -> bool:
    return target in TRANSITIONS[current]


# ── Persistence interface ──────────────────────────────────────────────────────


@runtime_checkable
class MessageStore(Protocol):
    """Write side of message persistence.

    Implementations report failures by raising PersistenceError.
    """

    def create_message(self, message: EmailMessage) -> int:
        """Store a new message and return its assigned id."""
        ...

    def update_status(self, message_id: int, status: MessageStatus) -> None:
        ...

    def save_analysis(
        self,
        message_id: int,
        analysis: ToneAnalysis,
        processed_at: datetime,
        status: MessageStatus,
    ) -> None:
        """Store analysis, processed date and status together (overwrite)."""
        ...


# ── State machine ──────────────────────────────────────────────────────────────


class MessageLifecycle:
    """Moves a message forward through its statuses, persisting each step.

    Every method takes the current message and returns an updated copy; the
    store is written before the copy is returned, so a PersistenceError leaves
    the caller holding the previous state.

    Usage::

        lifecycle = MessageLifecycle(db)
        message = lifecycle.receive(message)
        message = lifecycle.start_processing(message)
        message = lifecycle.complete_processing(message, analysis)
    """

    def __init__(self, store: MessageStore) -> None:
        self._store = store

    def receive(self, message: EmailMessage) -> EmailMessage:
        """Persist a newly observed message in RECEIVED and assign its id."""
        if message.id is not None:
            raise InvalidTransitionError(f"message {message.id} has already been stored")
        if message.status != MessageStatus.RECEIVED:
            raise InvalidTransitionError(
                f"new messages must start in RECEIVED, not {message.status.value}"
            )
        message_id = self._store.create_message(message)
        logger.debug("message=%s stored as RECEIVED", message_id)
        return replace(message, id=message_id)

    def start_processing(self, message: EmailMessage) -> EmailMessage:
        self._check(message, MessageStatus.PROCESSING)
        self._store.update_status(message.id, MessageStatus.PROCESSING)  # type: ignore[arg-type]
        return self._moved(message, MessageStatus.PROCESSING)

    def complete_processing(
        self,
        message: EmailMessage,
        analysis: ToneAnalysis,
        processed_at: datetime | None = None,
    ) -> EmailMessage:
        self._check(message, MessageStatus.PROCESSED)
        processed_at = processed_at or utcnow()
        self._store.save_analysis(
            message.id,  # type: ignore[arg-type]
            analysis,
            processed_at,
            MessageStatus.PROCESSED,
        )
        return self._moved(
            replace(message, tone_analysis=analysis, processed_at=processed_at),
            MessageStatus.PROCESSED,
        )

    def mark_replied(self, message: EmailMessage) -> EmailMessage:
        self._check(message, MessageStatus.REPLIED)
        if message.tone_analysis is None:
            raise InvalidTransitionError(
                f"message {message.id} cannot be REPLIED without a tone analysis"
            )
        self._store.update_status(message.id, MessageStatus.REPLIED)  # type: ignore[arg-type]
        return self._moved(message, MessageStatus.REPLIED)

    def fail(self, message: EmailMessage) -> EmailMessage:
        self._check(message, MessageStatus.ERROR)
        self._store.update_status(message.id, MessageStatus.ERROR)  # type: ignore[arg-type]
        return self._moved(message, MessageStatus.ERROR)

    # ── Internal ───────────────────────────────────────────────────────────────

    @staticmethod
    def _check(message: EmailMessage, target: MessageStatus) -> None:
        if message.id is None:
            raise InvalidTransitionError("message has not been stored yet")
        if not can_transition(message.status, target):
            raise InvalidTransitionError(
                f"message {message.id}: {message.status.value} -> {target.value} not allowed"
            )

    @staticmethod
    def _moved(message: EmailMessage, target: MessageStatus) -> EmailMessage:
        logger.debug(
            "message=%s %s -> %s", message.id, message.status.value, target.value
        )
        return replace(message, status=target)
