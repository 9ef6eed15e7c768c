"""Deterministic keyword-rule tone classifier.

Each dimension (sentiment, urgency, formality) is decided by an ordered table
of keyword rules. Rules are evaluated top to bottom against the lower-cased
text and the first rule with any keyword present (substring match) wins; the
dimension keeps its default when no rule matches. The order of the default
tables is significant: "problem"/"error"/"issue" (NEGATIVE) is checked before
"angry"/"frustrated"/"terrible" (VERY_NEGATIVE), and "urgent" (HIGH) before
"critical" (CRITICAL).
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, TypeVar, runtime_checkable

from mailtone.processing.parser import extract_text
from mailtone.processing.types import (
    MAX_TOPICS,
    SUMMARY_CHAR_LIMIT,
    Emotion,
    Formality,
    Sentiment,
    ToneAnalysis,
    Urgency,
    truncate_summary,
)

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"\W+")

R = TypeVar("R", bound="KeywordRule")


@runtime_checkable
class ToneClassifierProtocol(Protocol):
    """Anything that maps message text to a ToneAnalysis."""

    def classify(self, text: str) -> ToneAnalysis:
        ...


# ── Rules ──────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class KeywordRule:
    """Assigns `value` when any of `keywords` occurs in the lower-cased text."""

    keywords: tuple[str, ...]
    value: Enum

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


@dataclass(frozen=True)
class SentimentRule(KeywordRule):
    """A sentiment rule that also contributes emotion weights."""

    emotions: Mapping[Emotion, float] = field(default_factory=dict)


def first_match(rules: Sequence[R], text: str) -> R | None:
    """Return the first rule matching text, or None."""
    for rule in rules:
        if rule.matches(text):
            return rule
    return None


# ── Configuration ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ClassifierConfig:
    """Immutable rule tables and limits for ToneClassifier."""

    sentiment_rules: tuple[SentimentRule, ...]
    urgency_rules: tuple[KeywordRule, ...]
    formality_rules: tuple[KeywordRule, ...]
    base_emotions: Mapping[Emotion, float] = field(
        default_factory=lambda: {Emotion.NEUTRAL: 0.8}
    )
    stop_words: frozenset[str] = frozenset({"from", "this", "that", "with", "have", "your"})
    max_topics: int = MAX_TOPICS
    min_topic_length: int = 4
    summary_length: int = SUMMARY_CHAR_LIMIT


DEFAULT_CONFIG = ClassifierConfig(
    sentiment_rules=(
        SentimentRule(
            ("problem", "error", "issue"),
            Sentiment.NEGATIVE,
            {Emotion.SADNESS: 0.5, Emotion.NEUTRAL: 0.3},
        ),
        SentimentRule(
            ("angry", "frustrated", "terrible"),
            Sentiment.VERY_NEGATIVE,
            {Emotion.ANGER: 0.7, Emotion.SADNESS: 0.2},
        ),
        SentimentRule(
            ("thanks", "good", "happy"),
            Sentiment.POSITIVE,
            {Emotion.HAPPINESS: 0.6, Emotion.NEUTRAL: 0.4},
        ),
        SentimentRule(
            ("excellent", "amazing", "great"),
            Sentiment.VERY_POSITIVE,
            {Emotion.HAPPINESS: 0.8, Emotion.SURPRISE: 0.2},
        ),
    ),
    urgency_rules=(
        KeywordRule(("urgent", "asap", "immediately"), Urgency.HIGH),
        KeywordRule(("critical", "emergency"), Urgency.CRITICAL),
        KeywordRule(("when you have time", "no rush"), Urgency.LOW),
    ),
    formality_rules=(
        KeywordRule(
            ("dear sir", "yours sincerely", "to whom it may concern"), Formality.FORMAL
        ),
        KeywordRule(("hey", "btw", "lol"), Formality.INFORMAL),
    ),
)


# ── Classifier ─────────────────────────────────────────────────────────────────


class ToneClassifier:
    """Pure, total keyword classifier. Never raises for str input.

    Usage::

        classifier = ToneClassifier()
        analysis = classifier.classify("This is urgent, please help ASAP")
    """

    def __init__(self, config: ClassifierConfig = DEFAULT_CONFIG) -> None:
        self._config = config

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    def classify(self, text: str) -> ToneAnalysis:
        """Return the tone analysis of text; the default analysis for blank input.

        HTML bodies are reduced to their visible text before matching, so
        markup never reaches the keyword rules, topics or summary.
        """
        text = extract_text(text)
        if not text or not text.strip():
            logger.debug("Blank content; returning default analysis")
            return ToneAnalysis.default()

        lowered = text.lower()
        cfg = self._config

        sentiment_rule = first_match(cfg.sentiment_rules, lowered)
        urgency_rule = first_match(cfg.urgency_rules, lowered)
        formality_rule = first_match(cfg.formality_rules, lowered)

        emotions = dict(cfg.base_emotions)
        if sentiment_rule is not None:
            emotions.update(sentiment_rule.emotions)
        elif Emotion.NEUTRAL not in emotions:
            emotions[Emotion.NEUTRAL] = 1.0

        return ToneAnalysis(
            sentiment=sentiment_rule.value if sentiment_rule else Sentiment.NEUTRAL,
            emotions=emotions,
            urgency=urgency_rule.value if urgency_rule else Urgency.NORMAL,
            formality=formality_rule.value if formality_rule else Formality.NEUTRAL,
            top_topics=tuple(self.extract_topics(lowered)),
            summary_text=truncate_summary(text, cfg.summary_length),
        )

    def extract_topics(self, lowered: str) -> list[str]:
        """Most frequent qualifying tokens, ties kept in first-seen order."""
        cfg = self._config
        words = [
            w
            for w in _TOKEN_SPLIT.split(lowered)
            if len(w) >= cfg.min_topic_length and w not in cfg.stop_words
        ]
        # Counter.most_common is stable for equal counts (insertion order).
        return [word for word, _ in Counter(words).most_common(cfg.max_topics)]
