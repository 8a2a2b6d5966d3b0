"""Write parsed emails into the CRM and relate them to known contacts."""

from __future__ import annotations

import logging
import re

from ..archiving.relationships import RelationshipLinker
from ..core.datetime_utils import format_crm_datetime
from ..core.models import ArchiveReason, ArchiveResult, CrmEntity, MailEnvelope
from .client import CrmError, SuiteCrmClient

LOGGER = logging.getLogger(__name__)

EMAILS_MODULE_NAME = "Emails"
CONTACTS_MODULE_NAME = "Contacts"

_OUTGOING_REASONS = frozenset({ArchiveReason.OUTBOUND, ArchiveReason.SEND_AND_ARCHIVE})

_CONTACT_BY_ADDRESS_QUERY = (
    "contacts.id IN (SELECT eabr.bean_id FROM email_addr_bean_rel eabr "
    "JOIN email_addresses ea ON (ea.id = eabr.email_address_id) "
    "WHERE eabr.bean_module = 'Contacts' AND eabr.deleted = 0 "
    "AND ea.email_address_caps = '{address}')"
)


def parse_excluded_addresses(raw: str) -> frozenset[str]:
    """Split a comma or semicolon separated address list, case-insensitively."""
    return frozenset(
        part.strip().lower() for part in re.split(r"[,;]", raw or "") if part.strip()
    )


class CrmEmailArchiver:
    """Create CRM email records for parsed messages."""

    def __init__(self, client: SuiteCrmClient) -> None:
        self._client = client
        self._linker = RelationshipLinker(client)

    def archive(
        self,
        envelope: MailEnvelope,
        reason: ArchiveReason,
        excluded_addresses: str = "",
    ) -> ArchiveResult:
        """Store ``envelope`` as a CRM email and relate it to its contacts.

        Failing to create the email record fails the archive. Failures while
        finding or relating contacts are reported as problems on an otherwise
        successful result.
        """
        try:
            email_id = self._client.set_entry(
                EMAILS_MODULE_NAME, _email_fields(envelope, reason)
            )
        except CrmError as exc:
            LOGGER.error(
                "Failed to create CRM email for '%s' from '%s'",
                envelope.subject,
                envelope.sender,
                exc_info=exc,
            )
            return ArchiveResult.failure(exc)

        LOGGER.debug("Archived '%s' as CRM email %s", envelope.subject, email_id)
        excluded = parse_excluded_addresses(excluded_addresses)
        problems: list[Exception] = []
        contacts: list[CrmEntity] = []
        for address in envelope.addresses():
            if address in excluded:
                continue
            try:
                contacts.extend(self._find_contacts(address))
            except CrmError as exc:
                LOGGER.warning("Contact lookup for %s failed: %s", address, exc)
                problems.append(exc)

        problems.extend(self._linker.link_entities(email_id, contacts))
        return ArchiveResult.success(email_id, problems)

    def _find_contacts(self, address: str) -> list[CrmEntity]:
        query = _CONTACT_BY_ADDRESS_QUERY.format(
            address=address.upper().replace("'", "''")
        )
        entries = self._client.get_entry_list(CONTACTS_MODULE_NAME, query)
        return [
            CrmEntity(CONTACTS_MODULE_NAME, str(entry["id"]))
            for entry in entries
            if entry.get("id")
        ]


def _email_fields(envelope: MailEnvelope, reason: ArchiveReason) -> dict[str, str | None]:
    return {
        "name": envelope.subject or "(no subject)",
        "date_sent": format_crm_datetime(envelope.sent_at or envelope.received_at),
        "message_id": envelope.message_id,
        "from_addr": envelope.sender,
        "to_addrs": "; ".join(envelope.to),
        "cc_addrs": "; ".join(envelope.cc),
        "description": envelope.body.text,
        "description_html": envelope.body.html,
        "type": "out" if reason in _OUTGOING_REASONS else "inbound",
        "status": "archived",
    }


__all__ = ["CrmEmailArchiver", "parse_excluded_addresses"]
