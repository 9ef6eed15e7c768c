"""Tests for the message lifecycle state machine."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from mailtone.errors import InvalidTransitionError, PersistenceError
from mailtone.pipeline.lifecycle import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    MessageLifecycle,
    MessageStore,
    can_transition,
)
from mailtone.processing.types import EmailMessage, MessageStatus, ToneAnalysis
from mailtone.storage.db import MessageDatabase


# ── Helpers ────────────────────────────────────────────────────────────────────


def make_message(**kwargs: object) -> EmailMessage:
    defaults: dict[str, object] = dict(
        sender="alice@example.com",
        recipient="support@example.com",
        subject="Hello",
        content="Hi there",
    )
    return EmailMessage(**{**defaults, **kwargs})  # type: ignore[arg-type]


def make_store(message_id: int = 7) -> MagicMock:
    store = MagicMock()
    store.create_message.return_value = message_id
    return store


# ── Transition table ───────────────────────────────────────────────────────────


class TestTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (MessageStatus.RECEIVED, MessageStatus.PROCESSING),
            (MessageStatus.PROCESSING, MessageStatus.PROCESSED),
            (MessageStatus.PROCESSED, MessageStatus.REPLIED),
            (MessageStatus.RECEIVED, MessageStatus.ERROR),
            (MessageStatus.PROCESSING, MessageStatus.ERROR),
            (MessageStatus.PROCESSED, MessageStatus.ERROR),
        ],
    )
    def test_allowed(self, current: MessageStatus, target: MessageStatus) -> None:
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (MessageStatus.PROCESSED, MessageStatus.RECEIVED),
            (MessageStatus.PROCESSING, MessageStatus.RECEIVED),
            (MessageStatus.RECEIVED, MessageStatus.REPLIED),
            (MessageStatus.RECEIVED, MessageStatus.PROCESSED),
            (MessageStatus.REPLIED, MessageStatus.ERROR),
            (MessageStatus.ERROR, MessageStatus.PROCESSING),
        ],
    )
    def test_rejected(self, current: MessageStatus, target: MessageStatus) -> None:
        assert not can_transition(current, target)

    def test_terminal_statuses(self) -> None:
        assert TERMINAL_STATUSES == {MessageStatus.REPLIED, MessageStatus.ERROR}

    def test_every_status_has_an_entry(self) -> None:
        assert set(TRANSITIONS) == set(MessageStatus)


# ── MessageLifecycle with a mock store ─────────────────────────────────────────


class TestMessageLifecycle:
    def test_receive_assigns_id(self) -> None:
        store = make_store(42)
        stored = MessageLifecycle(store).receive(make_message())

        assert stored.id == 42
        assert stored.status == MessageStatus.RECEIVED
        store.create_message.assert_called_once()

    def test_receive_rejects_stored_message(self) -> None:
        store = make_store()
        with pytest.raises(InvalidTransitionError):
            MessageLifecycle(store).receive(make_message(id=3))
        store.create_message.assert_not_called()

    def test_receive_rejects_non_received_status(self) -> None:
        with pytest.raises(InvalidTransitionError):
            MessageLifecycle(make_store()).receive(
                make_message(status=MessageStatus.PROCESSED)
            )

    def test_happy_path_writes_each_step(self) -> None:
        store = make_store(1)
        lifecycle = MessageLifecycle(store)
        analysis = ToneAnalysis.default()
        processed_at = datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)

        m = lifecycle.receive(make_message())
        m = lifecycle.start_processing(m)
        m = lifecycle.complete_processing(m, analysis, processed_at=processed_at)
        m = lifecycle.mark_replied(m)

        assert m.status == MessageStatus.REPLIED
        assert m.tone_analysis == analysis
        assert m.processed_at == processed_at
        store.update_status.assert_any_call(1, MessageStatus.PROCESSING)
        store.save_analysis.assert_called_once_with(
            1, analysis, processed_at, MessageStatus.PROCESSED
        )
        store.update_status.assert_called_with(1, MessageStatus.REPLIED)

    def test_complete_processing_defaults_processed_at(self) -> None:
        lifecycle = MessageLifecycle(make_store())
        m = lifecycle.start_processing(lifecycle.receive(make_message()))

        m = lifecycle.complete_processing(m, ToneAnalysis.default())

        assert m.processed_at is not None
        assert m.processed_at.tzinfo is not None

    def test_returns_copies(self) -> None:
        lifecycle = MessageLifecycle(make_store())
        received = lifecycle.receive(make_message())
        processing = lifecycle.start_processing(received)

        assert received.status == MessageStatus.RECEIVED
        assert processing.status == MessageStatus.PROCESSING
        assert processing.id == received.id

    def test_unstored_message_rejected(self) -> None:
        with pytest.raises(InvalidTransitionError, match="not been stored"):
            MessageLifecycle(make_store()).start_processing(make_message())

    def test_skipping_processing_rejected(self) -> None:
        store = make_store()
        lifecycle = MessageLifecycle(store)
        m = lifecycle.receive(make_message())

        with pytest.raises(InvalidTransitionError):
            lifecycle.complete_processing(m, ToneAnalysis.default())
        store.save_analysis.assert_not_called()

    def test_mark_replied_requires_analysis(self) -> None:
        store = make_store()
        m = make_message(id=1, status=MessageStatus.PROCESSED)

        with pytest.raises(InvalidTransitionError, match="tone analysis"):
            MessageLifecycle(store).mark_replied(m)
        store.update_status.assert_not_called()

    @pytest.mark.parametrize(
        "status", [MessageStatus.RECEIVED, MessageStatus.PROCESSING, MessageStatus.PROCESSED]
    )
    def test_fail_from_non_terminal(self, status: MessageStatus) -> None:
        store = make_store()
        m = MessageLifecycle(store).fail(make_message(id=5, status=status))

        assert m.status == MessageStatus.ERROR
        store.update_status.assert_called_once_with(5, MessageStatus.ERROR)

    @pytest.mark.parametrize("status", [MessageStatus.REPLIED, MessageStatus.ERROR])
    def test_terminal_statuses_cannot_move(self, status: MessageStatus) -> None:
        lifecycle = MessageLifecycle(make_store())
        m = make_message(id=5, status=status, tone_analysis=ToneAnalysis.default())

        with pytest.raises(InvalidTransitionError):
            lifecycle.fail(m)
        with pytest.raises(InvalidTransitionError):
            lifecycle.start_processing(m)

    def test_persistence_error_propagates_and_keeps_state(self) -> None:
        store = make_store()
        store.update_status.side_effect = PersistenceError("disk full")
        lifecycle = MessageLifecycle(store)
        received = lifecycle.receive(make_message())

        with pytest.raises(PersistenceError):
            lifecycle.start_processing(received)
        assert received.status == MessageStatus.RECEIVED


# ── MessageLifecycle against SQLite ────────────────────────────────────────────


class TestLifecycleWithDatabase:
    def test_database_satisfies_store_protocol(self, db: MessageDatabase) -> None:
        assert isinstance(db, MessageStore)

    def test_stored_status_follows_transitions(self, db: MessageDatabase) -> None:
        lifecycle = MessageLifecycle(db)
        analysis = ToneAnalysis.default()

        m = lifecycle.receive(make_message())
        assert db.get_message(m.id).status == MessageStatus.RECEIVED  # type: ignore[arg-type, union-attr]

        m = lifecycle.start_processing(m)
        assert db.get_message(m.id).status == MessageStatus.PROCESSING  # type: ignore[arg-type, union-attr]

        m = lifecycle.complete_processing(m, analysis)
        stored = db.get_message(m.id)  # type: ignore[arg-type]
        assert stored is not None
        assert stored.status == MessageStatus.PROCESSED
        assert stored.tone_analysis == analysis
        assert stored.processed_at == m.processed_at

        lifecycle.mark_replied(m)
        assert db.get_message(m.id).status == MessageStatus.REPLIED  # type: ignore[arg-type, union-attr]
