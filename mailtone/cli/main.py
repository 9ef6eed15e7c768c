"""CLI entry point for the tone-aware auto-reply processor."""

import logging

import click
from dotenv import load_dotenv

from mailtone.cli.engine import ReplyEngine
from mailtone.config import Settings
from mailtone.storage.db import MessageDatabase

logger = logging.getLogger(__name__)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Tone-aware email auto-reply: process, inspect and template commands."""
    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.ensure_object(dict)
    db = MessageDatabase(db_path=settings.db_path)
    ctx.obj = ReplyEngine(db, settings)
    ctx.call_on_close(ctx.obj.close)


# Import and register commands after cli is defined to avoid circular imports.
from mailtone.cli.commands import analyze, list_messages, process, show, templates  # noqa: E402

cli.add_command(process)
cli.add_command(analyze)
cli.add_command(show)
cli.add_command(list_messages)
cli.add_command(templates)
