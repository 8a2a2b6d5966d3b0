"""Expose an IMAP account as the store, folder and mail item tree."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from ..core.interfaces import ArchiveLedger
from ..core.models import ArchiveReason, ArchiveResult, MailEnvelope
from ..crm.archiver import CrmEmailArchiver
from .imap_client import FolderListing, ImapClient, ImapError
from .parser import EmailParser

LOGGER = logging.getLogger(__name__)


class ImapStore:
    """One IMAP account; the folder tree is read on first access."""

    def __init__(
        self,
        client: ImapClient,
        store_id: str,
        archiver: CrmEmailArchiver,
        *,
        ledger: ArchiveLedger | None = None,
        parser: EmailParser | None = None,
    ) -> None:
        self._client = client
        self._id = store_id
        self.archiver = archiver
        self.ledger = ledger
        self.parser = parser or EmailParser()
        self._roots: list[ImapFolder] | None = None
        self._by_name: dict[str, ImapFolder] = {}

    @property
    def id(self) -> str:
        return self._id

    @property
    def client(self) -> ImapClient:
        return self._client

    @property
    def root_folders(self) -> Sequence[ImapFolder]:
        return self._ensure_tree()

    def folder(self, full_name: str) -> ImapFolder | None:
        """Return the folder with IMAP name ``full_name``, if listed."""
        self._ensure_tree()
        return self._by_name.get(full_name)

    def _ensure_tree(self) -> list[ImapFolder]:
        if self._roots is None:
            self._roots = self._build_tree(self._client.list_folders())
        return self._roots

    def _build_tree(self, listings: Sequence[FolderListing]) -> list[ImapFolder]:
        self._by_name = {
            listing.name: ImapFolder(self, listing) for listing in listings
        }
        roots: list[ImapFolder] = []
        for folder in self._by_name.values():
            parent = self._by_name.get(folder.parent_name or "")
            if parent is None or parent is folder:
                roots.append(folder)
            else:
                parent.children.append(folder)
        return roots


class ImapFolder:
    """A folder of an :class:`ImapStore`."""

    def __init__(self, store: ImapStore, listing: FolderListing) -> None:
        self._store = store
        self.listing = listing
        self.children: list[ImapFolder] = []

    @property
    def id(self) -> str:
        return f"{self._store.id}/{self.listing.name}"

    @property
    def name(self) -> str:
        delimiter = self.listing.delimiter
        if delimiter and delimiter in self.listing.name:
            return self.listing.name.rsplit(delimiter, 1)[1]
        return self.listing.name

    @property
    def full_name(self) -> str:
        return self.listing.name

    @property
    def parent_name(self) -> str | None:
        delimiter = self.listing.delimiter
        if not delimiter or delimiter not in self.listing.name:
            return None
        return self.listing.name.rsplit(delimiter, 1)[0]

    @property
    def store(self) -> ImapStore:
        return self._store

    @property
    def child_folders(self) -> Sequence[ImapFolder]:
        return self.children

    def query_messages_since(self, since: datetime) -> list[ImapMailItem]:
        """Return mail items in this folder that arrived at or after ``since``.

        Messages that cannot be fetched or parsed are logged and left out.
        """
        if not self.listing.selectable:
            return []
        client = self._store.client
        items: list[ImapMailItem] = []
        for ref in client.search_since(self.full_name, since):
            try:
                payload = client.fetch_message(self.full_name, ref.uid)
                envelope = self._store.parser.parse(
                    ref.uid, payload, self.full_name, received_at=ref.internal_date
                )
            except (ImapError, ValueError) as exc:
                LOGGER.warning(
                    "Skipping UID %s in %s: %s", ref.uid, self.full_name, exc
                )
                continue
            items.append(ImapMailItem(self, envelope))
        return items

    def __repr__(self) -> str:
        return f"ImapFolder({self.id!r})"


class ImapMailItem:
    """A message in an :class:`ImapFolder`, archivable to the CRM."""

    def __init__(self, folder: ImapFolder | None, envelope: MailEnvelope) -> None:
        self._folder = folder
        self.envelope = envelope
        self.crm_id: str | None = None

    @property
    def subject(self) -> str | None:
        return self.envelope.subject

    @property
    def sender(self) -> str | None:
        return self.envelope.sender

    @property
    def received_at(self) -> datetime | None:
        return self.envelope.received_at

    @property
    def parent(self) -> ImapFolder | None:
        return self._folder

    @property
    def message_key(self) -> str:
        """Key identifying the message within its folder."""
        return self.envelope.message_id or f"uid:{self.envelope.uid}"

    def archive(
        self, reason: ArchiveReason, excluded_addresses: str = ""
    ) -> ArchiveResult:
        """Archive to the CRM unless this message was archived before."""
        if self.crm_id is not None:
            return ArchiveResult.success(self.crm_id)
        if self._folder is None:
            raise ImapError("Cannot archive a message without a folder")

        store = self._folder.store
        ledger = store.ledger
        if ledger is not None:
            existing = ledger.lookup(store.id, self._folder.id, self.message_key)
            if existing is not None:
                LOGGER.debug(
                    "'%s' already archived as CRM email %s", self.subject, existing
                )
                self.crm_id = existing
                return ArchiveResult.success(existing)

        result = store.archiver.archive(self.envelope, reason, excluded_addresses)
        if result.is_success and result.email_id is not None:
            self.crm_id = result.email_id
            if ledger is not None:
                ledger.record(store.id, self._folder.id, self.message_key, result.email_id)
        return result


__all__ = ["ImapFolder", "ImapMailItem", "ImapStore"]
