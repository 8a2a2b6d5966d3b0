"""Scheduled sweep over enrolled folders."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from ..core.config import ArchivingSettings
from ..core.datetime_utils import format_restriction_datetime, truncate_to_minute
from ..core.fallible import attempt
from ..core.interfaces import Folder, MailItem
from ..core.models import ArchiveReason, SweepReport
from .folders import flatten_folders
from .policy import EligibilityPolicy

LOGGER = logging.getLogger(__name__)

# Received-time filters reach one day past the age cutoff.
QUERY_BACK_PAD = timedelta(days=1)


class ArchiveOrchestrator:
    """Archive recent mail from every enrolled folder, one sweep at a time."""

    def __init__(
        self,
        folder_source: Callable[[], Iterable[Folder]],
        settings: ArchivingSettings,
        *,
        policy: EligibilityPolicy | None = None,
        session_check: Callable[[], bool] | None = None,
    ) -> None:
        """Initialise with a source of root folders and the archiving rules."""
        self._folder_source = folder_source
        self._settings = settings
        self._policy = policy or EligibilityPolicy(settings)
        self._session_check = session_check
        self.last_report: SweepReport | None = None

    def run_iteration(self, now: datetime | None = None) -> None:
        """Run one scheduled iteration, skipping it when there is no CRM session."""
        if self._session_check is not None and not self._session_check():
            LOGGER.debug("Auto-archive iteration skipped because no CRM session")
            return
        LOGGER.debug("Auto-archive iteration started")
        self.sweep(now or datetime.now(tz=UTC))
        LOGGER.debug("Auto-archive iteration completed")

    def sweep(self, now: datetime) -> None:
        """Archive mail received since the configured cutoff in enrolled folders."""
        report = SweepReport()
        self.last_report = report
        min_received = now - timedelta(
            days=self._settings.days_old_email_to_auto_archive
        )
        since = truncate_to_minute(min_received - QUERY_BACK_PAD)

        roots = attempt(self._folder_source)
        if not roots.ok:
            LOGGER.error("Unable to open mail store for sweep", exc_info=roots.error)
            return

        for folder in flatten_folders(roots.value or ()):
            if not self._is_enrolled(folder):
                continue
            outcome = attempt(self._archive_folder_items, folder, since, report)
            if not outcome.ok:
                report.folders_failed += 1
                LOGGER.error(
                    "Failed to archive items in folder %s",
                    _read_safely(lambda: folder.name),
                    exc_info=outcome.error,
                )

        LOGGER.info(
            "Sweep finished: folders=%s, folder_failures=%s, attempted=%s, "
            "archived=%s, failed=%s",
            report.folders_scanned,
            report.folders_failed,
            report.attempted,
            report.archived,
            report.failed,
        )

    def _is_enrolled(self, folder: Folder) -> bool:
        folder_id = attempt(lambda: folder.id)
        if not folder_id.ok:
            LOGGER.error("Unable to read folder id", exc_info=folder_id.error)
            return False
        return self._policy.folder_qualifies_for_sweep(folder_id.value or "")

    def _archive_folder_items(
        self, folder: Folder, since: datetime, report: SweepReport
    ) -> None:
        report.folders_scanned += 1
        folder_name = _read_safely(lambda: folder.name)
        LOGGER.debug(
            "Querying folder %s for items received since %s",
            folder_name,
            format_restriction_datetime(since),
        )
        items = attempt(lambda: list(folder.query_messages_since(since)))
        if not items.ok:
            report.folders_failed += 1
            LOGGER.error(
                "Failed to archive items in folder %s", folder_name, exc_info=items.error
            )
            return

        for item in items.value or ():
            is_mail = attempt(isinstance, item, MailItem)
            if not is_mail.ok or not is_mail.value:
                continue
            report.attempted += 1
            outcome = attempt(lambda: item.archive(ArchiveReason.INBOUND))
            error = outcome.error
            if outcome.ok and outcome.value is not None and not outcome.value.is_success:
                error = outcome.value.error
            if error is not None:
                report.failed += 1
                LOGGER.error(
                    "Failed to archive email '%s' from '%s'",
                    _read_safely(lambda: item.subject),
                    _read_safely(lambda: item.sender),
                    exc_info=error,
                )
                continue
            report.archived += 1


def _read_safely(read: Callable[[], object]) -> str:
    """Return ``read()`` as text for log messages, or a placeholder if it raises."""
    value = attempt(read)
    return "<unavailable>" if not value.ok else str(value.value)


__all__ = ["ArchiveOrchestrator", "QUERY_BACK_PAD"]
