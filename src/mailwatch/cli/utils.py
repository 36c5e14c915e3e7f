"""Shared CLI utilities and helpers."""

import sys
from datetime import date, datetime
from pathlib import Path

import click
from click import prompt

from ..errors import MailwatchError
from ..index import MailIndex, get_index_path


def err(*args, **kwargs):
    """Print to stderr."""
    print(*args, file=sys.stderr, **kwargs)


def parse_yyyymmdd(ctx, param, value: str | None) -> date | None:
    """Click callback: parse a YYYYMMDD option value."""
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError:
        raise click.BadParameter(f"expected YYYYMMDD, got {value!r}")


def format_record_date(date_str: str, time_str: str) -> str:
    """Render index date/time columns as ``YYYY-MM-DD HH:MM:SS``."""
    try:
        dt = datetime.strptime(f"{date_str}{time_str}", "%Y%m%d%H%M%S")
    except ValueError:
        return f"{date_str} {time_str}"
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def get_password(password_opt: str | None) -> str:
    """Get password from option, stdin (if piped), or prompt."""
    if password_opt:
        return password_opt
    elif not sys.stdin.isatty():
        return sys.stdin.readline().rstrip("\n")
    else:
        return prompt("Password", hide_input=True)


def open_index(basedir: Path) -> MailIndex:
    """Open an existing index, exiting if there is none yet."""
    path = get_index_path(basedir)
    if not path.exists():
        err(f"No index at {path}. Run 'mailwatch pull -b {basedir}' first.")
        sys.exit(1)
    index = MailIndex(path, readonly=True)
    try:
        index.connect()
    except MailwatchError as e:
        err(f"Error: {e}")
        sys.exit(1)
    return index


# =============================================================================
# Decorators and Click helpers
# =============================================================================

basedir_option = click.option(
    '-b', '--basedir',
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Storage base directory (created if missing)",
)


class AliasGroup(click.Group):
    """Click Group that supports command aliases."""

    def __init__(self, *args, aliases: dict[str, str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.aliases = aliases or {}

    def get_command(self, ctx, cmd_name):
        cmd_name = self.aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, cmd_name)

    def resolve_command(self, ctx, args):
        _, cmd_name, args = super().resolve_command(ctx, args)
        cmd_name = self.aliases.get(cmd_name, cmd_name)
        return _, cmd_name, args
