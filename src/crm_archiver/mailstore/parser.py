"""Utilities for parsing raw RFC822 messages into structured models."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime

from ..core.models import EmailBody, MailEnvelope


class EmailParser:
    """Convert raw email payloads into envelopes ready for the CRM."""

    def __init__(self) -> None:
        """Prepare internal parser instance."""
        self._parser = BytesParser(policy=policy.default)

    def parse(
        self,
        uid: int,
        payload: bytes,
        folder: str,
        *,
        received_at: datetime | None = None,
    ) -> MailEnvelope:
        """Parse raw RFC822 bytes into a :class:`MailEnvelope`.

        ``received_at`` defaults to the ``Date`` header when the store does
        not supply its own arrival time.
        """
        message = self._parser.parsebytes(payload)
        sent_at = _try_parse_datetime(message.get("Date"))
        body_text, body_html = _extract_bodies(message)

        return MailEnvelope(
            uid=uid,
            folder=folder,
            message_id=message.get("Message-ID"),
            subject=message.get("Subject"),
            sender=_take_first_address(message.get("From")),
            to=tuple(_extract_addresses(message.get_all("To", []))),
            cc=tuple(_extract_addresses(message.get_all("Cc", []))),
            sent_at=sent_at,
            received_at=received_at or sent_at,
            body=EmailBody(text=body_text, html=body_html),
        )


def _extract_addresses(headers: Iterable[str]) -> Iterable[str]:
    for _, email_address in getaddresses([str(header) for header in headers]):
        if email_address:
            yield email_address


def _take_first_address(header_value: str | None) -> str | None:
    if header_value is None:
        return None
    addresses = list(_extract_addresses([header_value]))
    return addresses[0] if addresses else None


def _extract_bodies(message: EmailMessage) -> tuple[str | None, str | None]:
    plain_chunks: list[str] = []
    html_chunks: list[str] = []

    for part in message.walk():
        if part.is_multipart() or part.get_content_disposition() == "attachment":
            continue
        try:
            content = part.get_content()
        except LookupError:
            continue
        if not isinstance(content, str) or not content.strip():
            continue
        if part.get_content_type() == "text/plain":
            plain_chunks.append(content.strip())
        elif part.get_content_type() == "text/html":
            html_chunks.append(content.strip())

    text = "\n\n".join(plain_chunks) or None
    html = "\n".join(html_chunks) or None
    return text, html


def _try_parse_datetime(header_value: str | None) -> datetime | None:
    if header_value is None:
        return None
    try:
        return parsedate_to_datetime(str(header_value))
    except (TypeError, ValueError):
        return None


__all__ = ["EmailParser"]
