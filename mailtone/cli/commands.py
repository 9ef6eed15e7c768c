"""CLI command implementations. All commands delegate to ReplyEngine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TextIO

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from mailtone.errors import MailtoneError, TemplateNotFound, ValidationError
from mailtone.processing.parser import parse_email
from mailtone.processing.types import EmailMessage, MessageStatus, ToneAnalysis

if TYPE_CHECKING:
    from mailtone.cli.engine import ReplyEngine

logger = logging.getLogger(__name__)
console = Console(width=200)

_STATUS_STYLE: dict[str, str] = {
    MessageStatus.RECEIVED.value: "dim",
    MessageStatus.PROCESSING.value: "yellow",
    MessageStatus.PROCESSED.value: "cyan",
    MessageStatus.REPLIED.value: "green",
    MessageStatus.ERROR.value: "red",
}


def _analysis_table(analysis: ToneAnalysis) -> Table:
    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("Sentiment", analysis.sentiment.value)
    table.add_row("Urgency", analysis.urgency.value)
    table.add_row("Formality", analysis.formality.value)
    table.add_row(
        "Emotions",
        ", ".join(f"{tag.value}={weight:.2f}" for tag, weight in analysis.emotions.items()),
    )
    table.add_row("Topics", ", ".join(analysis.top_topics) or "—")
    table.add_row("Summary", Text(analysis.summary_text))
    return table


def _styled_status(status: str) -> str:
    style = _STATUS_STYLE.get(status, "")
    return f"[{style}]{status}[/{style}]" if style else status


# ── process ──────────────────────────────────────────────────────────────────────


@click.command()
@click.option("--from", "sender", default="", help="Sender address (required).")
@click.option("--to", "recipient", default="", help="Recipient address (required).")
@click.option("--subject", default=None, help="Message subject.")
@click.option("--content", default=None, help="Message body. Read from stdin when omitted.")
@click.option(
    "--eml",
    type=click.File("r"),
    default=None,
    help="Raw RFC 822 message ('-' for stdin). Explicit options override its headers.",
)
@click.option("--send/--no-send", default=False, show_default=True, help="Deliver the reply over SMTP.")
@click.pass_obj
def process(
    engine: ReplyEngine,
    sender: str,
    recipient: str,
    subject: str | None,
    content: str | None,
    eml: TextIO | None,
    send: bool,
) -> None:
    """Manually run one message through classification and auto-reply."""
    if eml is not None:
        parsed = parse_email(eml.read())
        sender = sender or parsed.sender
        recipient = recipient or parsed.recipient
        subject = subject if subject is not None else parsed.subject
        content = content if content is not None else parsed.content
    elif content is None:
        stdin = click.get_text_stream("stdin")
        content = "" if stdin.isatty() else stdin.read()

    message = EmailMessage(sender=sender, recipient=recipient, subject=subject, content=content)
    try:
        result = engine.process(message, send=send)
    except ValidationError as exc:
        raise click.UsageError(f"Rejected: {exc}") from exc
    except MailtoneError as exc:
        logger.error("Processing failed: %s", exc)
        console.print(f"[red]Processing failed: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    stored = result.message
    console.print(
        f"Message [bold]{stored.id}[/bold] accepted — status {_styled_status(stored.status.value)}"
    )
    if result.analysis is not None:
        console.print(_analysis_table(result.analysis))

    if result.reply_body is not None:
        title = f"Reply ({result.template_key.value if result.template_key else '?'})"
        console.print(Panel(Text(result.reply_body), title=title, border_style="green"))
    elif result.skipped_reason:
        console.print(f"[dim]No reply: {result.skipped_reason.replace('_', ' ')}[/dim]")


# ── analyze ──────────────────────────────────────────────────────────────────────


@click.command()
@click.argument("text")
@click.pass_obj
def analyze(engine: ReplyEngine, text: str) -> None:
    """Classify TEXT without storing anything."""
    console.print(_analysis_table(engine.analyze(text)))


# ── show / list ──────────────────────────────────────────────────────────────────


@click.command()
@click.argument("message_id", type=int)
@click.pass_obj
def show(engine: ReplyEngine, message_id: int) -> None:
    """Show a stored message and its tone analysis."""
    message = engine.get_message(message_id)
    if message is None:
        console.print(f"[yellow]No message with id {message_id}.[/yellow]")
        raise SystemExit(1)

    console.print(
        f"[bold]#{message.id}[/bold] {_styled_status(message.status.value)}\n"
        f"From:     {escape(message.sender)}\n"
        f"To:       {escape(message.recipient)}\n"
        f"Subject:  {escape(message.subject or '')}\n"
        f"Received: {message.received_at.isoformat()}\n"
        f"Processed: {message.processed_at.isoformat() if message.processed_at else '—'}"
    )
    if message.tone_analysis is not None:
        console.print(_analysis_table(message.tone_analysis))
    if message.content:
        console.print(Panel(Text(message.content), title="Content", border_style="blue"))


@click.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in MessageStatus], case_sensitive=False),
    default=None,
    help="Only show messages in this status.",
)
@click.option("--limit", default=20, show_default=True, help="Number of messages.")
@click.pass_obj
def list_messages(engine: ReplyEngine, status: str | None, limit: int) -> None:
    """List the most recent stored messages."""
    rows = engine.list_messages(
        status=MessageStatus(status.upper()) if status else None, limit=limit
    )
    if not rows:
        console.print("[yellow]No messages stored yet.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=6)
    table.add_column("From", max_width=30)
    table.add_column("Subject", max_width=40)
    table.add_column("Received", width=12)
    table.add_column("Status", width=12)
    for row in rows:
        table.add_row(
            str(row.id),
            Text(row.sender),
            Text(row.subject or ""),
            row.received_at[:10],
            _styled_status(row.status),
        )
    console.print(table)


# ── templates ────────────────────────────────────────────────────────────────────


@click.command()
@click.argument("key", required=False)
@click.pass_obj
def templates(engine: ReplyEngine, key: str | None) -> None:
    """List template keys, or print the body of KEY."""
    if key is None:
        for name in engine.template_keys():
            console.print(name)
        return
    try:
        body = engine.get_template(key)
    except TemplateNotFound as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    console.print(Panel(Text(body), title=key, border_style="blue"))
