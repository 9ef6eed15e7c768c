"""Types for the tone analysis and auto-reply pipeline."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any

MAX_TOPICS = 4
SUMMARY_CHAR_LIMIT = 100
ELLIPSIS = "..."
DEFAULT_SUMMARY = "Unable to analyse message content."


class Sentiment(str, Enum):
    """Overall sentiment of a message, from most negative to most positive."""

    VERY_NEGATIVE = "VERY_NEGATIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"
    POSITIVE = "POSITIVE"
    VERY_POSITIVE = "VERY_POSITIVE"


class Emotion(str, Enum):
    """Emotion tags that may carry a weight in ToneAnalysis.emotions."""

    ANGER = "ANGER"
    FEAR = "FEAR"
    HAPPINESS = "HAPPINESS"
    SADNESS = "SADNESS"
    SURPRISE = "SURPRISE"
    DISGUST = "DISGUST"
    NEUTRAL = "NEUTRAL"


class Urgency(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Formality(str, Enum):
    VERY_INFORMAL = "VERY_INFORMAL"
    INFORMAL = "INFORMAL"
    NEUTRAL = "NEUTRAL"
    FORMAL = "FORMAL"
    VERY_FORMAL = "VERY_FORMAL"


class MessageStatus(str, Enum):
    """Processing stage a message currently occupies."""

    RECEIVED = "RECEIVED"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    REPLIED = "REPLIED"
    ERROR = "ERROR"


def truncate_summary(text: str, limit: int = SUMMARY_CHAR_LIMIT) -> str:
    """Return the first `limit` characters of text, plus "..." if anything was cut."""
    return f"{text[:limit]}{ELLIPSIS}" if len(text) > limit else text


# ── Tone analysis ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ToneAnalysis:
    """Structured tone assessment of a single message.

    Produced by a tone classifier and consumed by:
      - the reply decision policy (sentiment + urgency only)
      - TemplateSelector        (sentiment + urgency)
      - MessageDatabase         (stored as JSON alongside the message)

    Emotion weights are independent confidence-like scores in [0, 1]; they
    are not normalised and need not sum to 1.
    top_topics is clamped to MAX_TOPICS and summary_text to SUMMARY_CHAR_LIMIT
    characters plus "..." on construction, whatever the source.
    """

    sentiment: Sentiment = Sentiment.NEUTRAL
    emotions: Mapping[Emotion, float] = field(
        default_factory=lambda: {Emotion.NEUTRAL: 1.0}
    )
    urgency: Urgency = Urgency.NORMAL
    formality: Formality = Formality.NEUTRAL
    top_topics: tuple[str, ...] = ()
    summary_text: str = ""

    def __post_init__(self) -> None:
        # Coerce raw string values so rows/JSON can be passed straight in.
        object.__setattr__(self, "sentiment", Sentiment(self.sentiment))
        object.__setattr__(self, "urgency", Urgency(self.urgency))
        object.__setattr__(self, "formality", Formality(self.formality))

        emotions: dict[Emotion, float] = {}
        for tag, weight in dict(self.emotions).items():
            value = float(weight)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"emotion weight for {tag} out of range: {value}")
            emotions[Emotion(tag)] = value
        object.__setattr__(self, "emotions", MappingProxyType(emotions))
        object.__setattr__(
            self, "top_topics", tuple(str(t) for t in self.top_topics)[:MAX_TOPICS]
        )
        object.__setattr__(self, "summary_text", truncate_summary(str(self.summary_text)))

    @classmethod
    def default(cls) -> ToneAnalysis:
        """The analysis used when the content cannot be analysed."""
        return cls(
            sentiment=Sentiment.NEUTRAL,
            emotions={Emotion.NEUTRAL: 1.0},
            urgency=Urgency.NORMAL,
            formality=Formality.NEUTRAL,
            top_topics=(),
            summary_text=DEFAULT_SUMMARY,
        )

    # ── Serialisation ──────────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready wire form (camelCase keys, enum values as strings)."""
        return {
            "sentiment": self.sentiment.value,
            "emotions": {tag.value: weight for tag, weight in self.emotions.items()},
            "urgency": self.urgency.value,
            "formality": self.formality.value,
            "topTopics": list(self.top_topics),
            "summaryText": self.summary_text,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ToneAnalysis:
        """Build from the wire form. Missing keys take their default values.

        Raises:
            ValueError: if an enum value or emotion weight is invalid.
        """
        emotions = data.get("emotions") or {Emotion.NEUTRAL.value: 1.0}
        topics: Iterable[str] = data.get("topTopics") or ()
        return cls(
            sentiment=data.get("sentiment") or Sentiment.NEUTRAL,
            emotions=emotions,
            urgency=data.get("urgency") or Urgency.NORMAL,
            formality=data.get("formality") or Formality.NEUTRAL,
            top_topics=tuple(topics),
            summary_text=str(data.get("summaryText") or ""),
        )

    @classmethod
    def from_json(cls, raw: str) -> ToneAnalysis:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("tone analysis JSON must be an object")
        return cls.from_dict(data)


# ── Sender history ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SenderHistory:
    """Prior contact aggregate for one sender address. Read-only to the pipeline."""

    prior_count: int = 0
    last_contact: datetime | None = None

    @classmethod
    def first_contact(cls) -> SenderHistory:
        return cls(prior_count=0, last_contact=None)


# ── Message ────────────────────────────────────────────────────────────────────


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EmailMessage:
    """An inbound email as tracked through the processing lifecycle.

    Instances are immutable; each lifecycle step returns an updated copy.
    `id` is None until the message is first persisted and never changes after.
    `content` is "" (never None) when the message has no body.
    """

    sender: str
    recipient: str
    subject: str | None = None
    content: str = ""
    received_at: datetime = field(default_factory=utcnow)
    processed_at: datetime | None = None
    tone_analysis: ToneAnalysis | None = None
    status: MessageStatus = MessageStatus.RECEIVED
    id: int | None = None

    def __post_init__(self) -> None:
        if self.content is None:
            object.__setattr__(self, "content", "")
        object.__setattr__(self, "status", MessageStatus(self.status))
