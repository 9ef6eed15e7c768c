"""ReplyEngine wires the store, classifier and pipeline together for the CLI."""

from __future__ import annotations

import logging

from mailtone.config import Settings
from mailtone.pipeline.lifecycle import MessageLifecycle
from mailtone.pipeline.processor import ProcessingResult, ReplyPipeline
from mailtone.processing.classifier import ToneClassifier, ToneClassifierProtocol
from mailtone.processing.model_classifier import ModelToneClassifier
from mailtone.processing.templates import DEFAULT_TEMPLATES, TemplateCatalog, TemplateSelector
from mailtone.processing.types import EmailMessage, MessageStatus, ToneAnalysis
from mailtone.storage.db import MessageDatabase
from mailtone.storage.models import MessageRow
from mailtone.transport.smtp import SmtpReplySender

logger = logging.getLogger(__name__)


def build_classifier(settings: Settings) -> ToneClassifierProtocol:
    """Return the classifier selected by TONE_CLASSIFIER."""
    if settings.classifier == "model":
        return ModelToneClassifier(
            api_key=settings.anthropic_api_key or None, model=settings.tone_model
        )
    return ToneClassifier()


class ReplyEngine:
    """Owns the database and exposes the operations the CLI commands need.

    Templates are seeded on first run and loaded once, here, for the lifetime
    of the engine.

    Usage::

        engine = ReplyEngine(MessageDatabase(settings.db_path), settings)
        result = engine.process(message, send=False)
    """

    def __init__(
        self,
        db: MessageDatabase,
        settings: Settings,
        classifier: ToneClassifierProtocol | None = None,
    ) -> None:
        self.db = db
        self.settings = settings
        self.classifier = classifier or build_classifier(settings)
        self.db.seed_templates(DEFAULT_TEMPLATES)
        self.templates: TemplateCatalog = self.db.load_templates()
        logger.info("Loaded %d reply template(s)", len(self.templates))
        self.selector = TemplateSelector(settings.frequent_sender_threshold)

    def close(self) -> None:
        self.db.close()

    def process(self, message: EmailMessage, send: bool = False) -> ProcessingResult:
        """Run the full pipeline. send=True delivers the reply over SMTP."""
        sender = SmtpReplySender(self.settings.smtp, default_from=message.recipient) if send else None
        pipeline = ReplyPipeline(
            lifecycle=MessageLifecycle(self.db),
            classifier=self.classifier,
            history=self.db,
            templates=self.templates,
            selector=self.selector,
            sender=sender,
        )
        return pipeline.process(message)

    def analyze(self, text: str) -> ToneAnalysis:
        return self.classifier.classify(text)

    def get_message(self, message_id: int) -> EmailMessage | None:
        return self.db.get_message(message_id)

    def list_messages(self, status: MessageStatus | None = None, limit: int = 20) -> list[MessageRow]:
        return self.db.list_messages(status=status, limit=limit)

    def template_keys(self) -> list[str]:
        return self.templates.list_template_keys()

    def get_template(self, key: str) -> str:
        return self.templates.get_template(key)
