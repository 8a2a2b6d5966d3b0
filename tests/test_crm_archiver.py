"""Tests for writing parsed emails into the CRM."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from crm_archiver.core.interfaces import RelationshipError
from crm_archiver.core.models import ArchiveReason, EmailBody, MailEnvelope
from crm_archiver.crm import CrmEmailArchiver, CrmError, parse_excluded_addresses


class StubCrmClient:
    """Records CRM calls; contacts and failures are scripted per address."""

    def __init__(
        self,
        *,
        contacts: dict[str, list[str]] | None = None,
        lookup_errors: set[str] | None = None,
        refused_links: set[str] | None = None,
        set_entry_error: CrmError | None = None,
    ) -> None:
        self.contacts = contacts or {}
        self.lookup_errors = lookup_errors or set()
        self.refused_links = refused_links or set()
        self.set_entry_error = set_entry_error
        self.entries: list[tuple[str, dict[str, Any]]] = []
        self.queries: list[str] = []
        self.links: list[tuple[str, str, str, str]] = []

    def set_entry(self, module_name: str, fields: dict[str, Any]) -> str:
        if self.set_entry_error is not None:
            raise self.set_entry_error
        self.entries.append((module_name, dict(fields)))
        return "email-1"

    def get_entry_list(self, module_name: str, query: str) -> list[dict[str, Any]]:
        assert module_name == "Contacts"
        self.queries.append(query)
        for address, ids in self.contacts.items():
            if f"'{address.upper()}'" in query:
                return [{"id": contact_id} for contact_id in ids]
        for address in self.lookup_errors:
            if f"'{address.upper()}'" in query:
                raise CrmError("lookup failed")
        return []

    def try_set_relationship(
        self, module1: str, id1: str, module2: str, id2: str
    ) -> bool:
        self.links.append((module1, id1, module2, id2))
        return id1 not in self.refused_links


def _envelope() -> MailEnvelope:
    return MailEnvelope(
        uid=42,
        folder="INBOX",
        message_id="<42@example.com>",
        subject="Renewal quote",
        sender="alice@example.com",
        to=("Bob@Example.com",),
        cc=("carol@example.com", "alice@example.com"),
        sent_at=datetime(2026, 3, 1, 11, 30, tzinfo=timezone(timedelta(hours=2))),
        received_at=None,
        body=EmailBody(text="Please find the quote attached.", html=None),
    )


def test_creates_email_record_with_crm_fields() -> None:
    client = StubCrmClient()

    result = CrmEmailArchiver(client).archive(_envelope(), ArchiveReason.INBOUND)  # type: ignore[arg-type]

    assert result.is_success
    assert result.email_id == "email-1"
    module_name, fields = client.entries[0]
    assert module_name == "Emails"
    assert fields["name"] == "Renewal quote"
    assert fields["date_sent"] == "2026-03-01 09:30:00"
    assert fields["from_addr"] == "alice@example.com"
    assert fields["to_addrs"] == "Bob@Example.com"
    assert fields["cc_addrs"] == "carol@example.com; alice@example.com"
    assert fields["type"] == "inbound"
    assert fields["status"] == "archived"


def test_outgoing_reasons_mark_email_as_sent() -> None:
    client = StubCrmClient()

    CrmEmailArchiver(client).archive(_envelope(), ArchiveReason.SEND_AND_ARCHIVE)  # type: ignore[arg-type]

    assert client.entries[0][1]["type"] == "out"


def test_contacts_are_related_except_excluded_addresses() -> None:
    client = StubCrmClient(
        contacts={
            "alice@example.com": ["c-alice"],
            "bob@example.com": ["c-bob"],
        }
    )

    result = CrmEmailArchiver(client).archive(  # type: ignore[arg-type]
        _envelope(), ArchiveReason.INBOUND, "BOB@example.com; someone@else.com"
    )

    assert result.problems == []
    assert client.links == [("Contacts", "c-alice", "emails", "email-1")]
    assert len(client.queries) == 2


def test_contact_problems_do_not_fail_archive() -> None:
    client = StubCrmClient(
        contacts={"alice@example.com": ["c-alice"]},
        lookup_errors={"carol@example.com"},
        refused_links={"c-alice"},
    )

    result = CrmEmailArchiver(client).archive(_envelope(), ArchiveReason.INBOUND)  # type: ignore[arg-type]

    assert result.is_success
    assert len(result.problems) == 2
    assert isinstance(result.problems[0], CrmError)
    assert isinstance(result.problems[1], RelationshipError)


def test_email_record_failure_fails_archive() -> None:
    error = CrmError("set_entry rejected")
    client = StubCrmClient(set_entry_error=error)

    result = CrmEmailArchiver(client).archive(_envelope(), ArchiveReason.INBOUND)  # type: ignore[arg-type]

    assert not result.is_success
    assert result.error is error
    assert client.queries == []


def test_parse_excluded_addresses() -> None:
    assert parse_excluded_addresses(" A@x.com;b@y.com , ") == frozenset(
        {"a@x.com", "b@y.com"}
    )
    assert parse_excluded_addresses("") == frozenset()
