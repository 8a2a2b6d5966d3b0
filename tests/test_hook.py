"""Tests for the single message archive hook."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pytest

from crm_archiver.archiving import EligibilityPolicy, EventHook
from crm_archiver.core.config import ArchivingSettings
from crm_archiver.core.models import ArchiveReason, ArchiveResult


@dataclass
class StubStore:
    id: str


@dataclass
class StubFolder:
    name: str
    store: StubStore


class StubMessage:
    """Mail item recording archive calls."""

    def __init__(self, parent: StubFolder | None) -> None:
        self.parent = parent
        self.subject = "Quarterly numbers"
        self.sender = "cfo@example.com"
        self.received_at = None
        self.crm_id: str | None = None
        self.calls: list[tuple[ArchiveReason, str]] = []

    def archive(
        self, reason: ArchiveReason, excluded_addresses: str = ""
    ) -> ArchiveResult:
        self.calls.append((reason, excluded_addresses))
        self.crm_id = "crm-1"
        return ArchiveResult.success("crm-1")


def _hook() -> EventHook:
    settings = ArchivingSettings(
        accounts_to_archive_inbound=["work"],
        accounts_to_archive_outbound=["sales"],
    )
    return EventHook(EligibilityPolicy(settings))


def test_message_without_folder_is_not_archived(
    caplog: pytest.LogCaptureFixture,
) -> None:
    message = StubMessage(parent=None)

    with caplog.at_level(logging.DEBUG, logger="crm_archiver.archiving.hook"):
        _hook().on_new_message(message, ArchiveReason.INBOUND)

    assert message.calls == []
    assert "NULL email folder for inbound 'Quarterly numbers'" in caplog.text


def test_enrolled_account_is_archived_with_exclusions() -> None:
    message = StubMessage(StubFolder("Sent", StubStore("sales")))

    _hook().on_new_message(message, ArchiveReason.OUTBOUND, "me@example.com")

    assert message.calls == [(ArchiveReason.OUTBOUND, "me@example.com")]
    assert message.crm_id == "crm-1"


def test_account_not_enrolled_for_reason_is_skipped(
    caplog: pytest.LogCaptureFixture,
) -> None:
    message = StubMessage(StubFolder("Sent", StubStore("work")))

    with caplog.at_level(logging.DEBUG, logger="crm_archiver.archiving.hook"):
        _hook().on_new_message(message, ArchiveReason.OUTBOUND)

    assert message.calls == []
    assert "NOT archiving outbound email (folder Sent)" in caplog.text


class FailingMessage(StubMessage):
    """Mail item whose archive raises or reports failure."""

    def __init__(self, parent: StubFolder, *, error: Exception | None = None) -> None:
        super().__init__(parent)
        self._error = error

    def archive(
        self, reason: ArchiveReason, excluded_addresses: str = ""
    ) -> ArchiveResult:
        self.calls.append((reason, excluded_addresses))
        if self._error is not None:
            raise self._error
        return ArchiveResult.failure(RuntimeError("set_entry failed"))


def test_archive_errors_reach_the_caller() -> None:
    message = FailingMessage(
        StubFolder("INBOX", StubStore("work")), error=ConnectionError("CRM down")
    )

    with pytest.raises(ConnectionError, match="CRM down"):
        _hook().on_new_message(message, ArchiveReason.INBOUND)

    assert message.crm_id is None


def test_failed_archive_result_leaves_message_unarchived() -> None:
    message = FailingMessage(StubFolder("INBOX", StubStore("work")))

    _hook().on_new_message(message, ArchiveReason.INBOUND)

    assert message.calls == [(ArchiveReason.INBOUND, "")]
    assert message.crm_id is None
