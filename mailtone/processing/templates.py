"""Reply template selection, the template catalog, and placeholder substitution."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from email.utils import parseaddr
from enum import Enum
from types import MappingProxyType
from typing import Protocol, runtime_checkable

from mailtone.config import DEFAULT_FREQUENT_SENDER_THRESHOLD
from mailtone.errors import TemplateNotFound
from mailtone.processing.types import (
    EmailMessage,
    SenderHistory,
    Sentiment,
    ToneAnalysis,
    Urgency,
)

logger = logging.getLogger(__name__)


class TemplateKey(str, Enum):
    """Identifiers of the canned reply bodies."""

    URGENT_CRITICAL = "urgent_critical"
    NEGATIVE_REPEATED = "negative_repeated"
    FREQUENT_SENDER = "frequent_sender"
    DEFAULT = "default"


_NEGATIVE: frozenset[Sentiment] = frozenset({Sentiment.NEGATIVE, Sentiment.VERY_NEGATIVE})


# ── Selection ──────────────────────────────────────────────────────────────────


class TemplateSelector:
    """Picks a template key from a tone analysis and the sender's history.

    First matching rule wins:
      1. urgency CRITICAL                           → URGENT_CRITICAL
      2. negative sentiment and prior_count > 0     → NEGATIVE_REPEATED
      3. prior_count >= frequent_threshold          → FREQUENT_SENDER
      4. otherwise                                  → DEFAULT
    """

    def __init__(self, frequent_threshold: int = DEFAULT_FREQUENT_SENDER_THRESHOLD) -> None:
        if frequent_threshold < 1:
            raise ValueError("frequent_threshold must be at least 1")
        self._frequent_threshold = frequent_threshold

    @property
    def frequent_threshold(self) -> int:
        return self._frequent_threshold

    def select(self, analysis: ToneAnalysis, history: SenderHistory) -> TemplateKey:
        if analysis.urgency == Urgency.CRITICAL:
            return TemplateKey.URGENT_CRITICAL
        if analysis.sentiment in _NEGATIVE and history.prior_count > 0:
            return TemplateKey.NEGATIVE_REPEATED
        if history.prior_count >= self._frequent_threshold:
            return TemplateKey.FREQUENT_SENDER
        return TemplateKey.DEFAULT


# ── Store ──────────────────────────────────────────────────────────────────────


@runtime_checkable
class TemplateStore(Protocol):
    """Read-only source of template bodies."""

    def get_template(self, key: str) -> str:
        """Return the body for key. Raises TemplateNotFound if absent."""
        ...

    def list_template_keys(self) -> list[str]:
        ...


class TemplateCatalog:
    """Immutable in-memory snapshot of templates, loaded once at startup."""

    def __init__(self, templates: Mapping[str, str]) -> None:
        self._templates = MappingProxyType(
            {str(getattr(k, "value", k)): v for k, v in templates.items()}
        )

    def get_template(self, key: str) -> str:
        name = str(getattr(key, "value", key))
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFound(name) from None

    def list_template_keys(self) -> list[str]:
        return sorted(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, key: object) -> bool:
        return str(getattr(key, "value", key)) in self._templates


DEFAULT_TEMPLATES: dict[str, str] = {
    TemplateKey.URGENT_CRITICAL.value: (
        "Hello {{SENDER_NAME}},\n\n"
        "Thank you for your message. This is an automatic reply.\n\n"
        'We have received your critical message regarding "{{SUBJECT}}":\n'
        '  "{summary}"\n\n'
        "It has been escalated and will be handled with the highest priority.\n\n"
        "Kind regards,\n"
        "Customer Support\n"
    ),
    TemplateKey.NEGATIVE_REPEATED.value: (
        "Hello {{SENDER_NAME}},\n\n"
        "Thank you for getting in touch again. This is an automatic reply.\n\n"
        'We are sorry to hear about the trouble with "{{SUBJECT}}". '
        "We can see you have written to us {{EMAIL_COUNT}} time(s) before, "
        "most recently on {{LAST_EMAIL_DATE}}, and we will prioritise resolving this.\n\n"
        "Kind regards,\n"
        "Customer Support\n"
    ),
    TemplateKey.FREQUENT_SENDER.value: (
        "Hello {{SENDER_NAME}},\n\n"
        "Thank you for your message. This is an automatic reply.\n\n"
        'We have received your message regarding "{{SUBJECT}}". '
        "Thank you for being in regular contact ({{EMAIL_COUNT}} previous messages); "
        "we will get back to you shortly.\n\n"
        "Kind regards,\n"
        "Customer Support\n"
    ),
    TemplateKey.DEFAULT.value: (
        "Hello,\n\n"
        "Thank you for your message. This is an automatic reply.\n\n"
        'We have received your message regarding "{subject}" and will deal with it '
        "as soon as possible.\n\n"
        "Kind regards,\n"
        "Customer Support\n"
    ),
}


# ── Substitution ───────────────────────────────────────────────────────────────


def substitute(template: str, values: Mapping[str, str]) -> str:
    """Replace each literal placeholder token in one pass.

    Keys of values are full tokens (e.g. "{{SUBJECT}}", "{from}"). Replacement
    text is never rescanned, so a value containing another token is inserted
    verbatim. Tokens not in values are left untouched.
    """
    if not values:
        return template
    # Longest first so overlapping tokens prefer the more specific match.
    tokens = sorted(values, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(t) for t in tokens))
    return pattern.sub(lambda m: values[m.group(0)], template)


def sender_name(address: str) -> str:
    """Display name of a From header, or the local part of the bare address."""
    name, addr = parseaddr(address)
    if name:
        return name
    addr = addr or address
    return addr.split("@", 1)[0]


def placeholder_values(
    message: EmailMessage,
    analysis: ToneAnalysis,
    history: SenderHistory,
) -> dict[str, str]:
    """Build the token → value mapping for a reply to message.

    {{LAST_EMAIL_DATE}} is only resolved when the sender has a prior contact.
    """
    subject = message.subject or ""
    values = {
        "{{SENDER_NAME}}": sender_name(message.sender),
        "{{SUBJECT}}": subject,
        "{{EMAIL_COUNT}}": str(history.prior_count),
        "{subject}": subject,
        "{from}": message.sender,
        "{summary}": analysis.summary_text,
    }
    if history.last_contact is not None:
        values["{{LAST_EMAIL_DATE}}"] = history.last_contact.date().isoformat()
    return values


def reply_subject(subject: str | None) -> str:
    """Prefix subject with "Re: " unless it already has one."""
    subject = (subject or "").strip()
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}" if subject else "Re: your message"
