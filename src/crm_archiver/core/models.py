"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ArchiveReason(str, Enum):
    """Why a message is being archived; selects the governing account list."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"
    SEND_AND_ARCHIVE = "send_and_archive"
    MANUAL = "manual"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class CrmEntity:
    """A CRM record an archived email can be related to."""

    module_name: str
    entity_id: str


@dataclass(slots=True)
class ArchiveResult:
    """Outcome of archiving one message.

    A successful result carries the CRM id assigned to the email plus any
    non-fatal problems met along the way; a failed one carries the error.
    Use :meth:`success` and :meth:`failure` rather than the constructor.
    """

    email_id: str | None
    problems: list[Exception] = field(default_factory=list)
    error: Exception | None = None

    @classmethod
    def success(
        cls, email_id: str, problems: list[Exception] | None = None
    ) -> ArchiveResult:
        """Build a successful result for ``email_id``."""
        if not email_id:
            raise ValueError("A successful archive requires an email id")
        return cls(email_id=email_id, problems=list(problems or ()))

    @classmethod
    def failure(cls, error: Exception) -> ArchiveResult:
        """Build a failed result wrapping ``error``."""
        return cls(email_id=None, problems=[], error=error)

    @property
    def is_success(self) -> bool:
        """Return ``True`` when the message was archived."""
        return self.error is None and self.email_id is not None


@dataclass(slots=True)
class EmailBody:
    """Container for textual representations of an email."""

    text: str | None
    html: str | None


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class MailEnvelope:
    """Parsed email ready to be written to the CRM."""

    uid: int
    folder: str
    message_id: str | None
    subject: str | None
    sender: str | None
    to: tuple[str, ...]
    cc: tuple[str, ...]
    sent_at: datetime | None
    received_at: datetime | None
    body: EmailBody

    def addresses(self) -> tuple[str, ...]:
        """Return distinct sender and recipient addresses, lower-cased, in order."""
        seen: dict[str, None] = {}
        for address in (self.sender, *self.to, *self.cc):
            if address:
                seen.setdefault(address.lower(), None)
        return tuple(seen)


@dataclass(slots=True)
class SweepReport:
    """Counters describing one scheduled sweep."""

    folders_scanned: int = 0
    folders_failed: int = 0
    attempted: int = 0
    archived: int = 0
    failed: int = 0


__all__ = [
    "ArchiveReason",
    "ArchiveResult",
    "CrmEntity",
    "EmailBody",
    "MailEnvelope",
    "SweepReport",
]
