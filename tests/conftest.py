"""Shared fixtures: message factory and an in-memory message source."""

from datetime import datetime

import pytest

from mailwatch.message import Attachment, MaterializedMessage


class FakeSource:
    """MessageSource (and stand-in IMAP client) serving a fixed message list."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.queries = []
        self.host = "imap.example.com"
        self.connected = False

    def connect(self, user, password):
        self.connected = True

    def disconnect(self):
        self.connected = False

    def fetch(self, query):
        self.queries.append(query)
        yield from self.messages[:query.max_results]


def _make_message(
    message_id="msg-1",
    thread_id=None,
    date=datetime(2024, 3, 15, 14, 30, 45),
    sender="John Doe <john.doe@example.co>",
    subject="Hello",
    body_text="hello world",
    body_html=None,
    attachments=(),
):
    return MaterializedMessage(
        message_id=message_id,
        thread_id=thread_id or message_id,
        date=date,
        sender=sender,
        subject=subject,
        body_text=body_text,
        body_html=body_html,
        attachments=[Attachment(name, data) for name, data in attachments],
    )


@pytest.fixture
def make_message():
    return _make_message


@pytest.fixture
def fake_source():
    return FakeSource
