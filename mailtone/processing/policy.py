"""Auto-reply decision policy."""

from __future__ import annotations

from mailtone.processing.types import Sentiment, ToneAnalysis, Urgency

AUTO_REPLY_URGENCIES: frozenset[Urgency] = frozenset({Urgency.HIGH, Urgency.CRITICAL})
AUTO_REPLY_SENTIMENTS: frozenset[Sentiment] = frozenset(
    {Sentiment.NEGATIVE, Sentiment.VERY_NEGATIVE}
)


def should_auto_reply(analysis: ToneAnalysis | None) -> bool:
    """True for urgent or negative messages; False when there is no analysis.

    Depends on sentiment and urgency only.
    """
    if analysis is None:
        return False
    return (
        analysis.urgency in AUTO_REPLY_URGENCIES
        or analysis.sentiment in AUTO_REPLY_SENTIMENTS
    )
