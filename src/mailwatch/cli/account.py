"""Account command: store IMAP settings in BASEDIR/config.yaml."""

from pathlib import Path

import click
from click import argument, echo, option

from ..config import AccountConfig, save_account
from ..imap import IMAP_PORT

from .utils import basedir_option, get_password


@click.command()
@basedir_option
@option('-H', '--host', default="gmail", show_default=True, help="IMAP host, or 'gmail'")
@option('-p', '--password', help="Password (will prompt if not provided)")
@option('-P', '--port', type=int, default=IMAP_PORT, show_default=True, help="IMAP port")
@option('-S', '--no-password', is_flag=True, help="Don't store a password (use $MAILWATCH_PASSWORD instead)")
@argument('user')
def account(
    basedir: Path,
    host: str,
    password: str | None,
    port: int,
    no_password: bool,
    user: str,
):
    """Save the IMAP account to pull from.

    \b
    Examples:
      mailwatch account -b ~/mail user@gmail.com
      mailwatch account -b ~/mail -H imap.example.com -S user@example.com
    """
    if no_password:
        password = ""
    else:
        password = get_password(password)

    config_path = save_account(
        AccountConfig(host=host, user=user, password=password, port=port),
        basedir,
    )
    echo(f"Account {user} ({host}) saved to {config_path}")
