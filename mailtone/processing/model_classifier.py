"""Model-backed tone classifier using an Anthropic tool call in place of keyword rules."""

from __future__ import annotations

import logging
import os
from typing import Any

from anthropic import Anthropic
from anthropic.types import ToolUseBlock

from mailtone.errors import ClassificationError
from mailtone.processing.prompts import TONE_TOOL, TONE_TOOL_NAME, build_messages
from mailtone.processing.types import ToneAnalysis

logger = logging.getLogger(__name__)

_MODEL = "claude-haiku-4-5-20251001"
_MAX_TOKENS = 1024


class ModelToneClassifier:
    """Asks an Anthropic model for a ToneAnalysis via a forced tool call.

    Keeps the classifier contract total: any failure (API error, missing tool
    call, values outside the enumerated sets) yields ToneAnalysis.default().
    Pass strict=True to raise ClassificationError instead, so the pipeline
    moves the message to ERROR.

    Usage::

        classifier = ModelToneClassifier()
        analysis = classifier.classify(body)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = _MODEL,
        strict: bool = False,
        client: Anthropic | None = None,
    ) -> None:
        self._client = client or Anthropic(
            api_key=api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        )
        self._model = model
        self._strict = strict

    def classify(self, text: str) -> ToneAnalysis:
        if not text or not text.strip():
            return ToneAnalysis.default()
        try:
            return self._request(text)
        except Exception as exc:  # noqa: BLE001
            if self._strict:
                raise ClassificationError(f"tone model call failed: {exc}") from exc
            logger.warning("Tone model call failed, using default analysis: %s", exc)
            return ToneAnalysis.default()

    def _request(self, text: str) -> ToneAnalysis:
        response = self._client.messages.create(
            model=self._model,
            max_tokens=_MAX_TOKENS,
            tools=[TONE_TOOL],  # type: ignore[list-item]
            tool_choice={"type": "tool", "name": TONE_TOOL_NAME},
            messages=build_messages(text),  # type: ignore[arg-type]
        )
        for block in response.content:
            if isinstance(block, ToolUseBlock) and block.name == TONE_TOOL_NAME:
                return parse_tone_analysis(block.input)  # type: ignore[arg-type]

        raise ClassificationError(
            f"model did not return a {TONE_TOOL_NAME} tool call "
            f"(stop_reason={response.stop_reason!r})"
        )


def parse_tone_analysis(data: dict[str, Any]) -> ToneAnalysis:
    """Convert raw tool-call input into a ToneAnalysis.

    Topics and summary are clamped by ToneAnalysis itself.

    Raises:
        ValueError: if an enum value or emotion weight is invalid.
    """
    return ToneAnalysis.from_dict(data)
