"""Message content extraction: RFC 822 parsing and HTML-to-text."""

from __future__ import annotations

import email
import logging
import re
from dataclasses import dataclass
from email import policy
from email.message import EmailMessage as MimeMessage
from html.parser import HTMLParser

logger = logging.getLogger(__name__)

_TAG = re.compile(r"<[a-zA-Z!/][^>]*>")
_INVISIBLE_TAGS = frozenset({"script", "style", "head", "title"})


# ── HTML ───────────────────────────────────────────────────────────────────────


class _HTMLStripper(HTMLParser):
    """Collects visible text nodes, skipping script/style/head content."""

    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []
        self._hidden = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _INVISIBLE_TAGS:
            self._hidden += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in _INVISIBLE_TAGS and self._hidden:
            self._hidden -= 1

    def handle_data(self, data: str) -> None:
        text = data.strip()
        if text and not self._hidden:
            self._parts.append(text)

    def get_text(self) -> str:
        return " ".join(self._parts)


def looks_like_html(text: str) -> bool:
    return bool(_TAG.search(text))


def strip_html(text: str) -> str:
    """Return the visible text of an HTML string.

    Text without any tag is returned unchanged, so plain bodies that merely
    contain "<" keep their original form.
    """
    if not looks_like_html(text):
        return text
    stripper = _HTMLStripper()
    try:
        stripper.feed(text)
        stripper.close()
    except Exception:  # noqa: BLE001
        logger.debug("HTML parsing failed; using raw text")
        return text
    return stripper.get_text()


# ── RFC 822 ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ParsedEmail:
    """Header fields and plain-text body extracted from a raw message."""

    sender: str = ""
    recipient: str = ""
    subject: str | None = None
    content: str = ""


def _body_text(part: MimeMessage) -> str:
    try:
        text = part.get_content()
    except (LookupError, UnicodeError):
        payload = part.get_payload(decode=True) or b""
        text = payload.decode("utf-8", errors="replace")
    if not isinstance(text, str):
        return ""
    return strip_html(text) if part.get_content_type() == "text/html" else text


def extract_body(msg: MimeMessage) -> str:
    """Plain-text body of msg, preferring text/plain over text/html.

    Falls back to joining every inline text part when neither alternative is
    found (e.g. multipart/mixed with text/* parts marked as attachments).
    """
    body = msg.get_body(preferencelist=("plain", "html"))
    if body is not None:
        return _body_text(body)  # type: ignore[arg-type]
    parts = [
        _body_text(part)  # type: ignore[arg-type]
        for part in msg.walk()
        if part.get_content_maintype() == "text"
    ]
    return "\n\n".join(p for p in parts if p)


def parse_email(raw: str) -> ParsedEmail:
    """Parse an RFC 822 message into sender, recipient, subject and body text.

    Missing headers come back empty; validation happens later in the pipeline.
    """
    msg = email.message_from_string(raw, policy=policy.default)
    subject = msg.get("Subject")
    parsed = ParsedEmail(
        sender=str(msg.get("From", "")).strip(),
        recipient=str(msg.get("To", "")).strip(),
        subject=str(subject).strip() if subject is not None else None,
        content=extract_body(msg),  # type: ignore[arg-type]
    )
    logger.debug("Parsed message from %r with %d body chars", parsed.sender, len(parsed.content))
    return parsed


def extract_text(content: str) -> str:
    """Text used for tone analysis: HTML bodies are reduced to visible text."""
    return strip_html(content) if content else content
