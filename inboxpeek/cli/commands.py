"""CLI command implementations — all commands delegate to MailboxApp use cases."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from inboxpeek.agent.use_cases import UseCaseError
from inboxpeek.imap.errors import MailError
from inboxpeek.imap.types import MessageContent, MessageSummary, SearchFilter
from inboxpeek.processing.parser import html_to_text

if TYPE_CHECKING:
    from inboxpeek.cli.mailbox import MailboxApp

logger = logging.getLogger(__name__)
console = Console(width=200)


def _describe(exc: Exception) -> str:
    cause = exc.__cause__
    return f"{exc}: {cause}" if cause is not None else str(exc)


def _summary_table(emails: list[MessageSummary]) -> Table:
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("UID", style="dim", width=8)
    table.add_column("Date", width=16)
    table.add_column("From", max_width=32)
    table.add_column("Subject", max_width=60)

    for email in emails:
        subject_style = "bold" if email.seen is False else ""
        table.add_row(
            email.id,
            email.date.strftime("%Y-%m-%d %H:%M"),
            Text(email.sender),
            Text(email.subject, style=subject_style),
        )
    return table


# ── login / logout ───────────────────────────────────────────────────────────────


@click.command()
@click.option("--host", envvar="EMAIL_HOST", default="imap.gmail.com", show_default=True)
@click.option("--port", envvar="EMAIL_PORT", default=993, show_default=True, type=int)
@click.option("--user", envvar="EMAIL_USER", required=True, help="Mailbox login.")
@click.option(
    "--password", envvar="EMAIL_PASS", required=True,
    help="Password; Gmail needs an app password.",
)
@click.option("--insecure", is_flag=True, help="Connect without TLS (e.g. port 143).")
@click.pass_obj
def login(app: MailboxApp, host: str, port: int, user: str, password: str, insecure: bool) -> None:
    """Validate credentials against the server and save them."""
    asyncio.run(_login_async(app, host, port, user, password, not insecure))


async def _login_async(
    app: MailboxApp, host: str, port: int, user: str, password: str, secure: bool
) -> None:
    console.print(f"Connecting to [bold]{host}:{port}[/bold] as {user}...")
    ok = await app.authenticate.execute(host, port, user, password, secure=secure)
    await app.provider.disconnect()
    if not ok:
        console.print(
            "[red]Login failed.[/red] Check the server, user and password. "
            "Gmail users need an app password: https://myaccount.google.com/apppasswords"
        )
        return
    console.print("[green]Logged in. Credentials saved.[/green]")


@click.command()
@click.pass_obj
def logout(app: MailboxApp) -> None:
    """Forget the saved credentials."""
    asyncio.run(app.logout.execute())
    console.print("Logged out.")


# ── listings ─────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def unread(app: MailboxApp) -> None:
    """Show the 10 most recent unread emails."""
    asyncio.run(_unread_async(app))


async def _unread_async(app: MailboxApp) -> None:
    try:
        async with app.session():
            emails = await app.list_unread.execute()
    except (UseCaseError, MailError) as exc:
        console.print(f"[red]Mail error: {escape(_describe(exc))}[/red]")
        return

    if not emails:
        console.print("[green]No unread emails.[/green]")
        return
    console.print(_summary_table(emails))


@click.command(name="list")
@click.option("--unread/--all", "unread_only", default=False, help="Only unread emails.")
@click.option(
    "--from", "from_addresses", multiple=True,
    help="Sender substring; repeat to match any of several.",
)
@click.option("--limit", default=10, show_default=True, help="Number of emails.")
@click.pass_obj
def list_emails(
    app: MailboxApp, unread_only: bool, from_addresses: tuple[str, ...], limit: int
) -> None:
    """List the most recent emails, optionally filtered."""
    search_filter = SearchFilter(
        unread_only=unread_only, from_addresses=from_addresses, limit=limit
    )
    asyncio.run(_list_async(app, search_filter))


async def _list_async(app: MailboxApp, search_filter: SearchFilter) -> None:
    try:
        async with app.session():
            emails = await app.list_emails.execute(search_filter)
    except (UseCaseError, MailError) as exc:
        console.print(f"[red]Mail error: {escape(_describe(exc))}[/red]")
        return

    if not emails:
        console.print("[yellow]No emails match.[/yellow]")
        return
    console.print(_summary_table(emails))


# ── single message ───────────────────────────────────────────────────────────────


def _render_body(email: MessageContent) -> str:
    if email.body.text:
        return email.body.text
    if email.body.html:
        return html_to_text(email.body.html)
    return "(empty message)"


@click.command()
@click.argument("uid")
@click.pass_obj
def show(app: MailboxApp, uid: str) -> None:
    """Display one email without marking it as read."""
    asyncio.run(_show_async(app, uid))


async def _show_async(app: MailboxApp, uid: str) -> None:
    try:
        async with app.session():
            email = await app.get_content.execute(uid)
    except (UseCaseError, MailError) as exc:
        console.print(f"[red]Mail error: {escape(_describe(exc))}[/red]")
        return

    console.print(f"[bold]From:[/bold]    {escape(email.sender)}")
    console.print(f"[bold]Date:[/bold]    {email.date.strftime('%Y-%m-%d %H:%M %Z')}")
    console.print(f"[bold]Subject:[/bold] {escape(email.subject)}")
    console.print(Panel(Text(_render_body(email)), border_style="blue"))


@click.command(name="mark-read")
@click.argument("uid")
@click.pass_obj
def mark_read(app: MailboxApp, uid: str) -> None:
    """Mark one email as read."""
    asyncio.run(_mark_read_async(app, uid))


async def _mark_read_async(app: MailboxApp, uid: str) -> None:
    try:
        async with app.session():
            await app.mark_read.execute(uid)
    except (UseCaseError, MailError) as exc:
        console.print(f"[red]Mail error: {escape(_describe(exc))}[/red]")
        return
    console.print(f"[green]Marked {uid} as read.[/green]")
