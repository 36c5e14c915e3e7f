"""Index lookup commands: show, thread, ls."""

import sys
from pathlib import Path

import click
from click import argument, echo, option
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..errors import MailwatchError
from ..index import IndexRecord

from .utils import basedir_option, err, format_record_date, open_index


def records_table(records: list[IndexRecord], title: str | None = None) -> Table:
    """Render index records as a rich table."""
    table = Table(title=title)
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("From")
    table.add_column("Subject")
    table.add_column("Att", justify="right")
    table.add_column("Message ID", style="dim")
    for rec in records:
        table.add_row(
            format_record_date(rec.date, rec.time),
            escape(rec.sender[:40]),
            escape(rec.subject[:60]),
            str(len(rec.attachment_names)) if rec.attachments else "",
            escape(rec.message_id),
        )
    return table


@click.command()
@basedir_option
@argument('message_id')
def show(basedir: Path, message_id: str):
    """Show the index record for MESSAGE_ID."""
    index = open_index(basedir)
    try:
        rec = index.get(message_id)
    except MailwatchError as e:
        err(f"Error: {e}")
        sys.exit(1)
    finally:
        index.disconnect()

    if not rec:
        err(f"Message '{message_id}' not found in index.")
        sys.exit(1)

    echo(f"Message ID:  {rec.message_id}")
    echo(f"Thread ID:   {rec.thread_id}")
    echo(f"Date:        {format_record_date(rec.date, rec.time)}")
    echo(f"From:        {rec.sender}")
    echo(f"Subject:     {rec.subject}")
    echo(f"File:        {rec.filename}")
    if rec.attachments:
        echo("Attachments:")
        for name in rec.attachment_names:
            echo(f"  {name}")


@click.command()
@basedir_option
@argument('thread_id')
def thread(basedir: Path, thread_id: str):
    """List indexed messages in THREAD_ID, oldest first."""
    index = open_index(basedir)
    try:
        records = list(index.iter_thread(thread_id))
    except MailwatchError as e:
        err(f"Error: {e}")
        sys.exit(1)
    finally:
        index.disconnect()

    if not records:
        err(f"Thread '{thread_id}' not found in index.")
        sys.exit(1)

    Console().print(records_table(records, title=f"Thread {thread_id}"))


@click.command(name="ls")
@basedir_option
@option('-l', '--limit', type=int, default=20, show_default=True, help="Max messages to list (0 = all)")
def ls(basedir: Path, limit: int):
    """List indexed messages, newest first."""
    index = open_index(basedir)
    try:
        total = index.count()
        records = list(index.iter_records(limit=limit or None))
    except MailwatchError as e:
        err(f"Error: {e}")
        sys.exit(1)
    finally:
        index.disconnect()

    if not records:
        echo("Index is empty.")
        return

    Console().print(records_table(records))
    echo(f"Showing {len(records)} of {total:,} indexed messages")
