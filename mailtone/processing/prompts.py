"""Anthropic tool definition and prompt builder for model-based tone analysis."""

from typing import Any

from mailtone.processing.parser import strip_html
from mailtone.processing.types import Emotion, Formality, Sentiment, Urgency

# Body characters sent to the model, counted after HTML stripping.
BODY_CHAR_LIMIT = 4_000

TONE_TOOL_NAME = "record_tone_analysis"


# ── Tool definition ────────────────────────────────────────────────────────────

#: Anthropic tool schema mirroring the ToneAnalysis JSON wire form.
TONE_TOOL: dict[str, Any] = {
    "name": TONE_TOOL_NAME,
    "description": "Record the tone analysis of an email.",
    "input_schema": {
        "type": "object",
        "properties": {
            "sentiment": {
                "type": "string",
                "enum": [s.value for s in Sentiment],
            },
            "emotions": {
                "type": "object",
                "description": "Emotion tag -> weight between 0 and 1.",
                "properties": {
                    e.value: {"type": "number", "minimum": 0, "maximum": 1}
                    for e in Emotion
                },
                "additionalProperties": False,
            },
            "urgency": {
                "type": "string",
                "enum": [u.value for u in Urgency],
            },
            "formality": {
                "type": "string",
                "enum": [f.value for f in Formality],
            },
            "topTopics": {
                "type": "array",
                "items": {"type": "string"},
                "maxItems": 4,
                "description": "Main topic keywords, most prominent first.",
            },
            "summaryText": {
                "type": "string",
                "description": "Short summary of the message.",
            },
        },
        "required": [
            "sentiment",
            "emotions",
            "urgency",
            "formality",
            "topTopics",
            "summaryText",
        ],
    },
}


# ── Prompt builder ─────────────────────────────────────────────────────────────


def build_messages(text: str) -> list[dict[str, str]]:
    """Build the Anthropic messages list for analysing the tone of one body."""
    plain = strip_html(text)
    body_preview = plain[:BODY_CHAR_LIMIT]
    if len(plain) > BODY_CHAR_LIMIT:
        body_preview += "\n[… email truncated …]"

    return [
        {
            "role": "user",
            "content": (
                "Analyse the tone of the following email and call "
                f"{TONE_TOOL_NAME} with the overall sentiment, emotion weights, "
                "urgency, formality, main topics and a short summary.\n\n"
                + body_preview
            ),
        }
    ]
