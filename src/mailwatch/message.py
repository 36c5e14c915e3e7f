"""In-memory representation of a fetched message."""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime


@dataclass
class Attachment:
    """A named attachment payload."""
    filename: str
    data: bytes


@dataclass
class MaterializedMessage:
    """One message fetched from a MessageSource, not yet written to disk."""
    message_id: str
    thread_id: str
    date: datetime | None
    sender: str
    subject: str
    body_text: str | None = None
    body_html: str | None = None
    attachments: list[Attachment] = field(default_factory=list)

    def body_bytes(self) -> bytes:
        """Body content to write: plain text if present, else HTML, else empty."""
        if self.body_text is not None:
            return self.body_text.encode("utf-8")
        if self.body_html is not None:
            return self.body_html.encode("utf-8")
        return b""

    @classmethod
    def from_bytes(
        cls,
        raw: bytes,
        message_id: str | None = None,
        thread_id: str | None = None,
    ) -> "MaterializedMessage":
        """Build a message from raw RFC 822 bytes.

        ``message_id``/``thread_id`` override the header-derived identifiers,
        for servers that assign their own (e.g. Gmail).
        """
        msg = BytesParser(policy=policy.default).parsebytes(raw)

        header_id = str(msg.get("Message-ID", "")).strip()
        if not header_id:
            header_id = f"<{hashlib.sha256(raw).hexdigest()}@content-hash>"
        message_id = message_id or header_id
        thread_id = thread_id or compute_thread_id(
            header_id,
            str(msg.get("References", "")),
            str(msg.get("In-Reply-To", "")).strip(),
        )

        return cls(
            message_id=message_id,
            thread_id=thread_id,
            date=parse_date(msg.get("Date")),
            sender=str(msg.get("From", "")),
            subject=str(msg.get("Subject", "")),
            body_text=_body_content(msg, "plain"),
            body_html=_body_content(msg, "html"),
            attachments=[
                Attachment(part.get_filename() or "", _attachment_data(part))
                for part in msg.iter_attachments()
            ],
        )


def compute_thread_id(message_id: str, references: str | None, in_reply_to: str | None) -> str:
    """Thread root: first ID in References, else In-Reply-To, else the message itself."""
    if references:
        matches = re.findall(r'<[^>]+>', references)
        if matches:
            return matches[0]
    if in_reply_to:
        return in_reply_to
    return message_id


def parse_date(value) -> datetime | None:
    """Parse a Date header, returning None if missing or malformed."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(str(value))
    except (TypeError, ValueError):
        return None


def _body_content(msg: EmailMessage, subtype: str) -> str | None:
    part = msg.get_body(preferencelist=(subtype,))
    if part is None:
        return None
    try:
        content = part.get_content()
    except (LookupError, ValueError):
        payload = part.get_payload(decode=True) or b""
        content = payload.decode("utf-8", errors="replace")
    return content if isinstance(content, str) else None


def _attachment_data(part: EmailMessage) -> bytes:
    """Raw bytes of an attachment part.

    Attached messages (``message/rfc822``) have no decodable payload; they are
    serialized back to RFC 822 bytes.
    """
    if part.is_multipart():
        inner = part.get_payload()
        if part.get_content_type() == "message/rfc822" and len(inner) == 1:
            return inner[0].as_bytes()
        return part.as_bytes()
    return part.get_payload(decode=True) or b""
