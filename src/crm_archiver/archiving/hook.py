"""Archive single messages as the mail client reports them."""

from __future__ import annotations

import logging

from ..core.interfaces import MailItem
from ..core.models import ArchiveReason
from .policy import EligibilityPolicy

LOGGER = logging.getLogger(__name__)


class EventHook:
    """Apply the eligibility policy to one new or sent message."""

    def __init__(self, policy: EligibilityPolicy) -> None:
        self._policy = policy

    def on_new_message(
        self,
        message: MailItem,
        reason: ArchiveReason,
        excluded_addresses: str = "",
    ) -> None:
        """Archive ``message`` for ``reason`` if its account is enrolled."""
        parent = message.parent
        if parent is None:
            LOGGER.debug("NULL email folder for %s '%s'", reason, message.subject)
            return

        if self._policy.message_qualifies(reason, parent.store.id):
            message.archive(reason, excluded_addresses)
        else:
            LOGGER.debug("NOT archiving %s email (folder %s)", reason, parent.name)


__all__ = ["EventHook"]
