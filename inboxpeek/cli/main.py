"""CLI entry point for the inboxpeek IMAP client."""

import logging
import os
from pathlib import Path

import click
from dotenv import load_dotenv

from inboxpeek.cli.mailbox import MailboxApp
from inboxpeek.imap.provider import ImapEmailProvider
from inboxpeek.storage.credentials import CredentialStore

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log session and fetch activity.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Read and triage an IMAP inbox without marking anything as read."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.ensure_object(dict)
    store = CredentialStore(db_path=Path(os.environ.get("INBOXPEEK_DB", "data/inboxpeek.db")))
    ctx.obj = MailboxApp(ImapEmailProvider(), store)
    ctx.call_on_close(ctx.obj.close)


# Import and register commands after cli is defined to avoid circular imports.
from inboxpeek.cli.commands import list_emails, login, logout, mark_read, show, unread  # noqa: E402

cli.add_command(login)
cli.add_command(logout)
cli.add_command(unread)
cli.add_command(list_emails)
cli.add_command(show)
cli.add_command(mark_read)
