"""Tests for CLI argument handling."""

from __future__ import annotations

import pytest

from crm_archiver.cli import _parse_link, build_parser, execute
from crm_archiver.core.config import AppSettings, ArchivingSettings
from crm_archiver.core.models import CrmEntity


def test_parser_defaults_to_info() -> None:
    args = build_parser().parse_args([])

    assert args.command == "info"
    assert args.folder == "INBOX"
    assert args.link == []


def test_parser_collects_repeated_links() -> None:
    args = build_parser().parse_args(
        ["archive", "--uid", "7", "--link", "Accounts:1", "--link", "Cases:2"]
    )

    assert args.uid == 7
    assert [_parse_link(value) for value in args.link] == [
        CrmEntity("Accounts", "1"),
        CrmEntity("Cases", "2"),
    ]


def test_parse_link_rejects_missing_id() -> None:
    with pytest.raises(SystemExit):
        _parse_link("Accounts:")


def test_archive_without_uid_exits() -> None:
    args = build_parser().parse_args(["archive"])

    with pytest.raises(SystemExit):
        execute(args, AppSettings())


def test_info_prints_configuration(capsys: pytest.CaptureFixture[str]) -> None:
    settings = AppSettings(
        archiving=ArchivingSettings(auto_archive_folders="a/INBOX,a/Sent")
    )

    execute(build_parser().parse_args(["info"]), settings)

    output = capsys.readouterr().out
    assert "Auto-archive folders: ['a/INBOX', 'a/Sent']" in output
    assert "Sweep age cutoff: 1 day(s)" in output
