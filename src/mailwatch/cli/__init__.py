"""CLI package for mailwatch.

- pull.py: Download new messages into a storage base
- index_cmds.py: Index lookups (show, thread, ls)
- account.py: Save IMAP account settings
- utils.py: Shared utilities and helpers
"""

import click
from dotenv import load_dotenv

from .utils import AliasGroup

from .account import account
from .index_cmds import ls, show, thread
from .pull import pull


@click.group(cls=AliasGroup, aliases={
    'a': 'account',
    'p': 'pull',
    's': 'show',
    't': 'thread',
})
def main():
    """Incrementally download mail to a local directory tree."""
    load_dotenv()


main.add_command(account)
main.add_command(ls)
main.add_command(pull)
main.add_command(show)
main.add_command(thread)


__all__ = [
    'main',
    'account',
    'ls',
    'pull',
    'show',
    'thread',
]
