"""Command-line entry point for the CRM email archiver."""

from __future__ import annotations

import argparse
import logging
from datetime import UTC, datetime
from pathlib import Path

from crm_archiver.archiving import (
    ArchiveOrchestrator,
    EligibilityPolicy,
    EventHook,
    RelationshipLinker,
    RepeatingProcess,
)
from crm_archiver.core import (
    AppSettings,
    ArchiveReason,
    CrmEntity,
    configure_logging,
    load_app_settings,
)
from crm_archiver.crm import CrmEmailArchiver, CrmError, SuiteCrmClient
from crm_archiver.mailstore import ImapClient, ImapError, ImapMailItem, ImapStore
from crm_archiver.storage import SqliteArchiveLedger

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Archive email into SuiteCRM")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "sweep", "run", "archive"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Stop the run command after this many sweeps (default: forever).",
    )
    parser.add_argument(
        "--folder",
        default="INBOX",
        help="IMAP folder holding the message for the archive command.",
    )
    parser.add_argument(
        "--uid",
        type=int,
        default=None,
        help="UID of the message for the archive command.",
    )
    parser.add_argument(
        "--reason",
        choices=[reason.value for reason in ArchiveReason],
        default=ArchiveReason.INBOUND.value,
        help="Archive reason for the archive command (default: inbound).",
    )
    parser.add_argument(
        "--exclude",
        default="",
        help="Comma separated addresses not to relate contacts for.",
    )
    parser.add_argument(
        "--link",
        action="append",
        default=[],
        metavar="MODULE:ID",
        help="Relate the archived email to this CRM record; may be repeated.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> None:
    """Execute the requested CLI command."""
    command = args.command
    if command == "info":
        archiving = settings.archiving
        print(f"IMAP host: {settings.imap.host}")
        print(f"Store id: {settings.imap.resolved_store_id()}")
        print(f"CRM URL: {settings.crm.base_url}")
        print(f"Auto-archive folders: {sorted(archiving.auto_archive_folders or ())}")
        print(f"Sweep age cutoff: {archiving.days_old_email_to_auto_archive} day(s)")
        print(f"Ledger path: {settings.storage.db_path}")
    elif command == "sweep":
        _run_sweeps(settings, iterations=1)
    elif command == "run":
        _run_sweeps(settings, iterations=args.iterations)
    elif command == "archive":
        if args.uid is None:
            raise SystemExit("The archive command requires --uid")
        _run_archive(
            settings,
            folder_name=args.folder,
            uid=args.uid,
            reason=ArchiveReason(args.reason),
            excluded_addresses=args.exclude,
            links=[_parse_link(value) for value in args.link],
        )


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    execute(args, settings)


def _parse_link(value: str) -> CrmEntity:
    module_name, separator, entity_id = value.partition(":")
    if not separator or not module_name or not entity_id:
        raise SystemExit(f"Invalid --link value '{value}', expected MODULE:ID")
    return CrmEntity(module_name=module_name, entity_id=entity_id)


def _ensure_crm_session(crm: SuiteCrmClient) -> bool:
    if crm.has_session:
        return True
    try:
        crm.login()
    except CrmError as exc:
        LOGGER.error("CRM login failed: %s", exc)
        return False
    return True


def _sweep_once(
    settings: AppSettings, crm: SuiteCrmClient, ledger: SqliteArchiveLedger
) -> None:
    """Open the mailbox, run one sweep, and close it again."""
    with ImapClient(settings.imap) as client:
        store = ImapStore(
            client,
            settings.imap.resolved_store_id(),
            CrmEmailArchiver(crm),
            ledger=ledger,
        )
        orchestrator = ArchiveOrchestrator(
            lambda: store.root_folders,
            settings.archiving,
            session_check=lambda: _ensure_crm_session(crm),
        )
        orchestrator.run_iteration(datetime.now(tz=UTC))
        report = orchestrator.last_report
        if report is not None:
            print(
                f"Archived {report.archived} of {report.attempted} message(s) "
                f"in {report.folders_scanned} folder(s); {report.failed} failed."
            )


def _run_sweeps(settings: AppSettings, *, iterations: int | None) -> None:
    """Run scheduled sweeps, once or on the configured interval."""
    with (
        SuiteCrmClient(settings.crm) as crm,
        SqliteArchiveLedger(settings.storage) as ledger,
    ):
        process = RepeatingProcess(
            "Email archiving",
            lambda: _sweep_once(settings, crm, ledger),
            settings.scheduler.interval_seconds,
        )
        try:
            process.run(iterations=iterations)
        except KeyboardInterrupt:
            process.stop()
            print("Interrupted; stopping.")


def _run_archive(
    settings: AppSettings,
    *,
    folder_name: str,
    uid: int,
    reason: ArchiveReason,
    excluded_addresses: str,
    links: list[CrmEntity],
) -> None:
    """Archive a single message, gated by policy unless links are requested."""
    try:
        with (
            ImapClient(settings.imap) as client,
            SuiteCrmClient(settings.crm) as crm,
            SqliteArchiveLedger(settings.storage) as ledger,
        ):
            store = ImapStore(
                client,
                settings.imap.resolved_store_id(),
                CrmEmailArchiver(crm),
                ledger=ledger,
            )
            folder = store.folder(folder_name)
            payload = client.fetch_message(folder_name, uid)
            envelope = store.parser.parse(uid, payload, folder_name)
            message = ImapMailItem(folder, envelope)

            if links:
                result = RelationshipLinker(crm).archive_with_relationships(
                    message, links, reason, excluded_addresses
                )
                if not result.is_success:
                    print(f"Archive failed: {result.error}")
                    return
                print(f"Archived as CRM email {result.email_id}")
                for problem in result.problems:
                    print(f"  problem: {problem}")
                return

            EventHook(EligibilityPolicy(settings.archiving)).on_new_message(
                message, reason, excluded_addresses
            )
            if message.crm_id is None:
                print("Message was not archived; see log for details.")
            else:
                print(f"Archived as CRM email {message.crm_id}")
    except (ImapError, CrmError) as exc:
        print(f"Archive failed: {exc}")


if __name__ == "__main__":
    main()
