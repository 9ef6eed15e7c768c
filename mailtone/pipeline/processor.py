"""Reply pipeline: drives one message from RECEIVED to PROCESSED or REPLIED."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from mailtone.errors import ClassificationError, MailtoneError, TemplateNotFound, ValidationError
from mailtone.pipeline.lifecycle import TERMINAL_STATUSES, MessageLifecycle
from mailtone.processing.classifier import ToneClassifierProtocol
from mailtone.processing.policy import should_auto_reply
from mailtone.processing.templates import (
    TemplateKey,
    TemplateSelector,
    TemplateStore,
    placeholder_values,
    reply_subject,
    substitute,
)
from mailtone.processing.types import EmailMessage, MessageStatus, SenderHistory, ToneAnalysis

logger = logging.getLogger(__name__)

SKIPPED_POLICY = "policy_declined"
SKIPPED_TEMPLATE = "template_not_found"


# ── Collaborator interfaces ────────────────────────────────────────────────────


@runtime_checkable
class HistoryLookup(Protocol):
    """Read-only prior-contact counts per sender address."""

    def get_history(self, address: str, before: datetime | None = None) -> SenderHistory:
        ...


@runtime_checkable
class ReplySender(Protocol):
    """Outbound transport. Raises ReplyDeliveryError when a reply is not sent."""

    def send(self, to: str, subject: str, body: str) -> None:
        ...


# ── Result ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of one pipeline run."""

    message: EmailMessage
    reply_body: str | None = None
    template_key: TemplateKey | None = None
    skipped_reason: str | None = None

    @property
    def replied(self) -> bool:
        return self.message.status == MessageStatus.REPLIED

    @property
    def analysis(self) -> ToneAnalysis | None:
        return self.message.tone_analysis


def validate_message(message: EmailMessage) -> None:
    """Reject messages without a sender or recipient before they are stored.

    Raises:
        ValidationError: naming the missing field(s).
    """
    missing = [
        name
        for name, value in (("from", message.sender), ("to", message.recipient))
        if not value or not value.strip()
    ]
    if missing:
        raise ValidationError(f"missing required field(s): {', '.join(missing)}")


# ── Pipeline ───────────────────────────────────────────────────────────────────


class ReplyPipeline:
    """Classifies a message, decides on an auto-reply and sends it.

    Stages, in order:
      1. validate (ValidationError, nothing stored)
      2. RECEIVED → PROCESSING → classify → PROCESSED (analysis persisted)
      3. policy: stop here if no auto-reply is warranted
      4. history lookup → template selection → substitution → send → REPLIED

    A missing template leaves the message in PROCESSED and returns a result
    without a reply. Any other failure after the message is stored moves it
    to ERROR and is re-raised to the caller.

    Usage::

        pipeline = ReplyPipeline(MessageLifecycle(db), ToneClassifier(), db, catalog)
        result = pipeline.process(EmailMessage(sender=..., recipient=..., content=...))
    """

    def __init__(
        self,
        lifecycle: MessageLifecycle,
        classifier: ToneClassifierProtocol,
        history: HistoryLookup,
        templates: TemplateStore,
        selector: TemplateSelector | None = None,
        sender: ReplySender | None = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._classifier = classifier
        self._history = history
        self._templates = templates
        self._selector = selector or TemplateSelector()
        self._sender = sender

    def process(self, message: EmailMessage) -> ProcessingResult:
        validate_message(message)
        message = self._lifecycle.receive(message)
        try:
            message = self._analyse(message)
            return self._reply(message)
        except Exception as exc:
            self._fail(message, exc)
            raise

    # ── Stages ─────────────────────────────────────────────────────────────────

    def _analyse(self, message: EmailMessage) -> EmailMessage:
        message = self._lifecycle.start_processing(message)
        try:
            analysis = self._classifier.classify(message.content)
        except ClassificationError:
            raise
        except Exception as exc:
            raise ClassificationError(
                f"classification failed for message {message.id}: {exc}"
            ) from exc

        message = self._lifecycle.complete_processing(message, analysis)
        logger.info(
            "message=%s sentiment=%s urgency=%s formality=%s",
            message.id,
            analysis.sentiment.value,
            analysis.urgency.value,
            analysis.formality.value,
        )
        return message

    def _reply(self, message: EmailMessage) -> ProcessingResult:
        analysis = message.tone_analysis
        if analysis is None or not should_auto_reply(analysis):
            logger.debug("message=%s no auto-reply warranted", message.id)
            return ProcessingResult(message=message, skipped_reason=SKIPPED_POLICY)

        history = self._history.get_history(message.sender, before=message.received_at)
        key = self._selector.select(analysis, history)
        try:
            template = self._templates.get_template(key.value)
        except TemplateNotFound as exc:
            logger.error("message=%s reply skipped: %s", message.id, exc)
            return ProcessingResult(
                message=message, template_key=key, skipped_reason=SKIPPED_TEMPLATE
            )

        body = substitute(template, placeholder_values(message, analysis, history))
        if self._sender is not None:
            self._sender.send(to=message.sender, subject=reply_subject(message.subject), body=body)
            logger.info("message=%s reply sent to %s (template=%s)", message.id, message.sender, key.value)

        message = self._lifecycle.mark_replied(message)
        return ProcessingResult(message=message, reply_body=body, template_key=key)

    def _fail(self, message: EmailMessage, exc: Exception) -> EmailMessage:
        """Best-effort move to ERROR; the original exception is re-raised by the caller."""
        logger.error("message=%s processing failed: %s", message.id, exc)
        if message.status in TERMINAL_STATUSES:
            return message
        try:
            return self._lifecycle.fail(message)
        except MailtoneError as fail_exc:
            logger.error("message=%s could not be marked ERROR: %s", message.id, fail_exc)
            return message
