"""Relate archived emails to CRM records, collecting per-record failures."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.interfaces import MailItem, RelationshipClient, RelationshipError
from ..core.models import ArchiveReason, ArchiveResult, CrmEntity

LOGGER = logging.getLogger(__name__)

EMAILS_MODULE = "emails"


class RelationshipLinker:
    """Create one CRM relationship per entity without stopping on failures."""

    def __init__(self, client: RelationshipClient) -> None:
        self._client = client

    def create_relationship_or_fail(self, email_id: str, entity: CrmEntity) -> None:
        """Relate ``email_id`` to ``entity``; raise if the backend refuses."""
        success = self._client.try_set_relationship(
            entity.module_name, entity.entity_id, EMAILS_MODULE, email_id
        )
        if not success:
            raise RelationshipError(
                f"Cannot create email relationship with {entity.module_name} "
                "('set_relationship' failed)"
            )

    def link_entities(
        self, email_id: str, entities: Iterable[CrmEntity]
    ) -> list[Exception]:
        """Relate ``email_id`` to each entity in order; return the failures."""
        failures: list[Exception] = []
        for entity in entities:
            try:
                self.create_relationship_or_fail(email_id, entity)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error(
                    "Failed to relate email %s to %s %s",
                    email_id,
                    entity.module_name,
                    entity.entity_id,
                    exc_info=exc,
                )
                failures.append(exc)
        return failures

    def archive_with_relationships(
        self,
        message: MailItem,
        entities: Iterable[CrmEntity],
        reason: ArchiveReason,
        excluded_addresses: str = "",
    ) -> ArchiveResult:
        """Archive ``message`` then relate it to ``entities``.

        A failed archive is returned as is and nothing is linked. Otherwise the
        returned result lists the archive's own problems followed by any
        linking failures.
        """
        result = message.archive(reason, excluded_addresses)
        if not result.is_success or result.email_id is None:
            return result

        warnings = self.link_entities(result.email_id, entities)
        return ArchiveResult.success(
            result.email_id, [*(result.problems or ()), *warnings]
        )


__all__ = ["EMAILS_MODULE", "RelationshipLinker"]
