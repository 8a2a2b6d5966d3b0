"""Rules deciding whether folders and messages should be archived."""

from __future__ import annotations

from dataclasses import dataclass

from ..core.config import ArchivingSettings
from ..core.models import ArchiveReason


@dataclass(frozen=True, slots=True)
class EligibilityPolicy:
    """Side-effect free eligibility checks over a fixed settings snapshot."""

    settings: ArchivingSettings

    def folder_qualifies_for_sweep(self, folder_id: str) -> bool:
        """Return ``True`` when the folder is enrolled for scheduled archiving."""
        enrolled = self.settings.auto_archive_folders
        return enrolled is not None and folder_id in enrolled

    def message_qualifies(self, reason: ArchiveReason, store_id: str) -> bool:
        """Return ``True`` when mail archived for ``reason`` from ``store_id`` qualifies.

        Only the reason and the owning account matter; the message itself is
        never inspected. Reasons without an account list never qualify.
        """
        if reason is ArchiveReason.INBOUND:
            accounts = self.settings.accounts_to_archive_inbound
        elif reason is ArchiveReason.OUTBOUND:
            accounts = self.settings.accounts_to_archive_outbound
        else:
            return False
        return accounts is not None and store_id in accounts


__all__ = ["EligibilityPolicy"]
