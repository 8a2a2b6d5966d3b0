"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from .models import ArchiveReason, ArchiveResult


class ArchivingError(RuntimeError):
    """Base class for errors raised while archiving email."""


class RelationshipError(ArchivingError):
    """Raised when the CRM refuses to relate an email to an entity."""


class Store(Protocol):
    """One mail account and its top level folders."""

    @property
    def id(self) -> str:
        """Stable identifier of the account."""
        raise NotImplementedError

    @property
    def root_folders(self) -> Sequence[Folder]:
        """Top level folders in native order."""
        raise NotImplementedError


class Folder(Protocol):
    """A folder in a mail store tree."""

    @property
    def id(self) -> str:
        """Stable, store scoped identifier."""
        raise NotImplementedError

    @property
    def name(self) -> str:
        """Display name."""
        raise NotImplementedError

    @property
    def store(self) -> Store:
        """Account owning this folder."""
        raise NotImplementedError

    @property
    def child_folders(self) -> Sequence[Folder]:
        """Direct children in native order."""
        raise NotImplementedError

    def query_messages_since(self, since: datetime) -> Sequence[object]:
        """Return items received at or after ``since`` (minute precision)."""
        raise NotImplementedError


@runtime_checkable
class MailItem(Protocol):
    """A mail message that can be archived to the CRM."""

    crm_id: str | None
    subject: str | None
    sender: str | None
    received_at: datetime | None

    @property
    def parent(self) -> Folder | None:
        """Folder holding the message, if it can be resolved."""
        raise NotImplementedError

    def archive(
        self, reason: ArchiveReason, excluded_addresses: str = ""
    ) -> ArchiveResult:
        """Archive the message; sets ``crm_id`` on success."""
        raise NotImplementedError


class RelationshipClient(Protocol):
    """The CRM call that relates two records."""

    def try_set_relationship(
        self, module1: str, id1: str, module2: str, id2: str
    ) -> bool:
        """Relate two records; ``False`` when the backend reports a failure."""
        raise NotImplementedError


class ArchiveLedger(Protocol):
    """Record of messages already archived, keyed per folder and message."""

    def lookup(self, store_id: str, folder_id: str, message_key: str) -> str | None:
        """Return the CRM id recorded for a message, if any."""
        raise NotImplementedError

    def record(
        self, store_id: str, folder_id: str, message_key: str, crm_id: str
    ) -> None:
        """Remember that a message was archived as ``crm_id``."""
        raise NotImplementedError


__all__ = [
    "ArchiveLedger",
    "ArchivingError",
    "Folder",
    "MailItem",
    "RelationshipClient",
    "RelationshipError",
    "Store",
]
