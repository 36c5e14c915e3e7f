"""Sender address normalization."""

import re

ADDRESS_RE = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,5}")


def normalize(raw_address: str) -> str:
    """Extract the first ``user@domain.tld`` found in a free-form address header.

    Returns an empty string if the header contains no address; senders are
    allowed to be malformed.

    >>> normalize("John Doe <john.doe@example.co>")
    'john.doe@example.co'
    """
    if not raw_address:
        return ""
    match = ADDRESS_RE.search(raw_address)
    return match.group(0) if match else ""
