"""Tests for ReplyEngine and classifier selection."""

from unittest.mock import MagicMock, patch

from mailtone.cli.engine import ReplyEngine, build_classifier
from mailtone.config import Settings, SmtpSettings
from mailtone.processing.classifier import ToneClassifier
from mailtone.processing.model_classifier import ModelToneClassifier
from mailtone.processing.templates import DEFAULT_TEMPLATES, TemplateKey
from mailtone.processing.types import EmailMessage, MessageStatus, Urgency
from mailtone.storage.db import MessageDatabase


def make_message(**kwargs: object) -> EmailMessage:
    defaults: dict[str, object] = dict(
        sender="alice@example.com",
        recipient="support@example.com",
        subject="Help",
        content="This is urgent",
    )
    return EmailMessage(**{**defaults, **kwargs})  # type: ignore[arg-type]


class TestBuildClassifier:
    def test_keyword_by_default(self) -> None:
        assert isinstance(build_classifier(Settings()), ToneClassifier)

    def test_model_when_configured(self) -> None:
        settings = Settings(classifier="model", anthropic_api_key="sk-test")
        assert isinstance(build_classifier(settings), ModelToneClassifier)


class TestReplyEngine:
    def test_seeds_default_templates(self, db: MessageDatabase) -> None:
        engine = ReplyEngine(db, Settings())
        assert engine.template_keys() == sorted(DEFAULT_TEMPLATES)
        assert engine.get_template("default") == DEFAULT_TEMPLATES["default"]

    def test_keeps_edited_templates(self, db: MessageDatabase) -> None:
        db.save_template("default", "Custom body for {subject}")
        engine = ReplyEngine(db, Settings())
        assert engine.get_template("default") == "Custom body for {subject}"

    def test_uses_configured_threshold(self, db: MessageDatabase) -> None:
        engine = ReplyEngine(db, Settings(frequent_sender_threshold=7))
        assert engine.selector.frequent_threshold == 7

    def test_process_without_send(self, db: MessageDatabase) -> None:
        engine = ReplyEngine(db, Settings())
        with patch("mailtone.cli.engine.SmtpReplySender") as sender_cls:
            result = engine.process(make_message())

        sender_cls.assert_not_called()
        assert result.message.status == MessageStatus.REPLIED
        assert result.template_key == TemplateKey.DEFAULT
        assert engine.get_message(result.message.id) == result.message  # type: ignore[arg-type]

    def test_process_with_send(self, db: MessageDatabase) -> None:
        smtp = SmtpSettings(host="smtp.example.com")
        engine = ReplyEngine(db, Settings(smtp=smtp))
        with patch("mailtone.cli.engine.SmtpReplySender") as sender_cls:
            result = engine.process(make_message(), send=True)

        sender_cls.assert_called_once_with(smtp, default_from="support@example.com")
        sender_cls.return_value.send.assert_called_once()
        assert result.replied

    def test_analyze_does_not_store(self, db: MessageDatabase) -> None:
        engine = ReplyEngine(db, Settings())
        assert engine.analyze("urgent").urgency == Urgency.HIGH
        assert engine.list_messages() == []

    def test_injected_classifier(self, db: MessageDatabase) -> None:
        classifier = MagicMock()
        engine = ReplyEngine(db, Settings(), classifier=classifier)
        engine.analyze("x")
        classifier.classify.assert_called_once_with("x")

    def test_list_messages_filters(self, db: MessageDatabase) -> None:
        engine = ReplyEngine(db, Settings())
        engine.process(make_message())
        engine.process(make_message(content="Thanks!"))

        assert len(engine.list_messages()) == 2
        assert len(engine.list_messages(status=MessageStatus.PROCESSED)) == 1
