"""Pull command: fetch new messages and materialize them under the storage base."""

import sys
from pathlib import Path

import click
import humanize
from click import echo, option, style
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from ..address import normalize
from ..config import SyncConfig, load_account
from ..errors import ConfigError
from ..imap import MAX_RESULTS, SearchQuery, get_imap_client
from ..index import MailIndex
from ..message import MaterializedMessage
from ..sync import MessageState, SyncEngine

from .utils import basedir_option, err, parse_yyyymmdd


@click.command()
@basedir_option
@option('-e', '--end-date', callback=parse_yyyymmdd, help="Find emails up to this date (YYYYMMDD, exclusive)")
@option('-H', '--host', help="IMAP host, or 'gmail' (default: $MAILWATCH_HOST, config.yaml, gmail)")
@option('-m', '--max-results', type=click.IntRange(1, MAX_RESULTS), default=MAX_RESULTS, show_default=True, help="Max emails to find")
@option('-n', '--dry-run', is_flag=True, help="Show what would be written")
@option('-N', '--newer-than', 'newer_than', type=click.IntRange(min=0), help="Find emails newer than N days")
@option('-O', '--older-than', 'older_than', type=click.IntRange(min=0), help="Find emails older than N days")
@option('-p', '--password', help="IMAP password (default: $MAILWATCH_PASSWORD, config.yaml)")
@option('-s', '--start-date', callback=parse_yyyymmdd, help="Find emails from this date (YYYYMMDD)")
@option('-u', '--user', help="IMAP username (default: $MAILWATCH_USER, config.yaml)")
@option('-v', '--verbose', is_flag=True, help="Show each message")
def pull(
    basedir: Path,
    end_date,
    host: str | None,
    max_results: int,
    dry_run: bool,
    newer_than: int | None,
    older_than: int | None,
    password: str | None,
    start_date,
    user: str | None,
    verbose: bool,
):
    """Download new inbox messages into BASEDIR.

    Each message is written to BASEDIR/<sender>/<YYYYMMDD>/<YYYYMMDD-HHMMSS>.<NNN>,
    attachments to a sibling .d directory, and recorded in
    BASEDIR/index.sqlite.db. Already-indexed messages are skipped, so it is
    safe to rerun.

    \b
    Examples:
      mailwatch pull -b ~/mail -N 7          # Last week
      mailwatch pull -b ~/mail -s 20240101 -e 20240201
      mailwatch pull -b ~/mail -m 50 -n      # Dry run
    """
    if (start_date or end_date) and (newer_than is not None or older_than is not None):
        raise click.UsageError("Use either --start-date/--end-date or --newer-than/--older-than")

    try:
        account = load_account(basedir, host=host, user=user, password=password)
    except ConfigError as e:
        err(f"Error: {e}")
        sys.exit(1)
    missing = account.missing()
    if missing:
        err(f"Missing credentials: {', '.join(missing)}")
        err("Set them in .env, export them, or pass -u/-p.")
        sys.exit(1)

    config = SyncConfig(
        basedir=basedir,
        query=SearchQuery(
            start_date=start_date,
            end_date=end_date,
            newer_than_days=newer_than,
            older_than_days=older_than,
            max_results=max_results,
        ),
        dry_run=dry_run,
    )

    client = get_imap_client(account.host, account.port)

    echo(f"Source: {client.host} ({account.user})")
    echo(f"Folder: {config.query.folder}")
    echo(f"Basedir: {basedir}")
    if dry_run:
        echo(style("DRY RUN - no changes will be made", fg="yellow"))
    echo()

    console = Console()

    def print_result(msg: MaterializedMessage, state: MessageState):
        """Print a result line (scrollable) above the progress spinner."""
        subj = escape((msg.subject or "(no subject)")[:60])
        sender = escape(normalize(msg.sender) or "?")
        if state == MessageState.INDEXED:
            console.print(f"  [green]✓[/] {sender:30} {subj}")
        elif state == MessageState.CHECKED_NEW:
            console.print(f"  [dim]○ {sender:30} {subj}[/]")
        elif verbose:
            console.print(f"  [dim]· {sender:30} {subj}[/]")

    try:
        client.connect(account.user, account.password)
        with MailIndex(config.index_path, readonly=dry_run) as index:
            engine = SyncEngine(config, index)
            with Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]Pulling"),
                TextColumn("{task.completed} messages"),
                TimeElapsedColumn(),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("pull", total=None)

                def on_message(msg: MaterializedMessage, state: MessageState):
                    if verbose or dry_run:
                        print_result(msg, state)
                    progress.advance(task)

                stats = engine.run(client, progress_callback=on_message)
            total = index.count()
    except Exception as e:
        err(f"Error: {e}")
        sys.exit(1)
    finally:
        client.disconnect()

    echo()
    echo(f"Found: {stats.fetched}")
    if stats.skipped:
        echo(f"Skipped (already indexed): {stats.skipped}")
    if dry_run:
        echo(f"Would write: {stats.fetched - stats.skipped}")
    else:
        echo(f"Written: {stats.written} ({humanize.naturalsize(stats.bytes_written, binary=True)})")
        echo(f"Total indexed: {total:,}")
