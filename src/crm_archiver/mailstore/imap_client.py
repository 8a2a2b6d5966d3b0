"""IMAP transport adapter providing folder and message access."""

from __future__ import annotations

import imaplib
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import TracebackType

from ..core.config import ImapSettings
from ..core.datetime_utils import ensure_utc

LOGGER = logging.getLogger(__name__)

SEARCH_DAY_PAD = timedelta(days=1)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_LIST_PATTERN = re.compile(
    r'^\((?P<flags>[^)]*)\)\s+(?P<delimiter>"(?:[^"\\]|\\.)*"|NIL)\s*(?P<name>.*)$'
)
_UID_PATTERN = re.compile(rb"UID (\d+)")
_INTERNALDATE_PATTERN = re.compile(rb'INTERNALDATE "([^"]+)"')


class ImapError(RuntimeError):
    """Wrap low level IMAP errors with additional context."""


@dataclass(frozen=True, slots=True)
class FolderListing:
    """One entry of an IMAP ``LIST`` response."""

    name: str
    delimiter: str | None
    flags: frozenset[str]

    @property
    def selectable(self) -> bool:
        """Return ``False`` for ``\\Noselect`` and ``\\NonExistent`` folders."""
        lowered = {flag.lower() for flag in self.flags}
        return "\\noselect" not in lowered and "\\nonexistent" not in lowered


@dataclass(frozen=True, slots=True)
class MessageRef:
    """UID of a message together with the server's arrival time."""

    uid: int
    internal_date: datetime


class ImapClient:
    """Thin wrapper around ``imaplib`` offering typed folder and fetch helpers."""

    def __init__(self, settings: ImapSettings) -> None:
        """Initialise the client with configuration settings."""
        self._settings = settings
        self._connection: imaplib.IMAP4 | imaplib.IMAP4_SSL | None = None
        self._selected: str | None = None

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> ImapClient:
        """Connect on entering a context manager scope."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure resources are released on context exit."""
        self.close()

    # Public API ---------------------------------------------------------------
    def connect(self) -> None:
        """Establish the IMAP connection and log in."""
        if self._connection is not None:
            return

        username = self._settings.username
        password = self._settings.app_password
        if username is None or password is None:
            raise ImapError("IMAP credentials are not configured")

        try:
            LOGGER.debug(
                "Connecting to IMAP host %s:%s (ssl=%s)",
                self._settings.host,
                self._settings.port,
                self._settings.use_ssl,
            )
            if self._settings.use_ssl:
                connection: imaplib.IMAP4 | imaplib.IMAP4_SSL = imaplib.IMAP4_SSL(
                    self._settings.host, self._settings.port
                )
            else:
                connection = imaplib.IMAP4(self._settings.host, self._settings.port)
            LOGGER.debug("Authenticating as %s", username)
            connection.login(username, password)
            self._connection = connection
        except (imaplib.IMAP4.error, OSError) as exc:  # pragma: no cover - network dependent
            raise ImapError("Failed to connect to IMAP server") from exc

    def list_folders(self) -> list[FolderListing]:
        """Return every folder the server lists, in server order."""
        connection = self._require_connection()
        try:
            status, data = connection.list()
        except imaplib.IMAP4.error as exc:
            raise ImapError("IMAP error while listing folders") from exc
        if status != "OK":
            raise ImapError("Failed to list folders")

        listings: list[FolderListing] = []
        for entry in data or []:
            listing = _parse_list_entry(entry)
            if listing is None:
                LOGGER.debug("Ignoring unparseable LIST entry %r", entry)
                continue
            listings.append(listing)
        return listings

    def search_since(self, folder: str, since: datetime) -> list[MessageRef]:
        """Return messages in ``folder`` that arrived at or after ``since``."""
        connection = self._select(folder)
        since_utc = ensure_utc(since) or since
        # SINCE compares server-local dates; INTERNALDATE below makes the exact cut.
        search_day = since_utc - SEARCH_DAY_PAD
        criterion = (
            f"{search_day.day}-{_MONTHS[search_day.month - 1]}-{search_day.year}"
        )
        try:
            status, data = connection.uid("SEARCH", None, "SINCE", criterion)  # type: ignore[arg-type]
            if status != "OK":
                raise ImapError(f"Failed to search folder '{folder}'")
            raw_ids = data[0].split() if data and data[0] else []
            if not raw_ids:
                return []
            uid_set = b",".join(raw_ids).decode()
            status, fetch_data = connection.uid("FETCH", uid_set, "(INTERNALDATE)")
        except imaplib.IMAP4.error as exc:
            raise ImapError(f"IMAP error while searching folder '{folder}'") from exc
        if status != "OK":
            raise ImapError(f"Failed to fetch arrival times in folder '{folder}'")

        refs = [
            ref
            for ref in (_parse_internaldate(entry) for entry in fetch_data or [])
            if ref is not None and ref.internal_date >= since_utc
        ]
        refs.sort(key=lambda ref: ref.uid)
        return refs

    def fetch_message(self, folder: str, uid: int) -> bytes:
        """Return the RFC822 payload of message ``uid`` in ``folder``."""
        connection = self._select(folder)
        LOGGER.debug("Fetching RFC822 payload for UID %s in %s", uid, folder)
        try:
            status, fetch_data = connection.uid("FETCH", str(uid), "(BODY.PEEK[])")
        except imaplib.IMAP4.error as exc:
            raise ImapError(f"IMAP error while fetching UID {uid}") from exc
        if status != "OK":
            raise ImapError(f"Failed to fetch message UID {uid}")
        payload = _extract_rfc822(fetch_data)
        if payload is None:
            raise ImapError(f"No RFC822 payload returned for UID {uid}")
        return payload

    def close(self) -> None:
        """Terminate the IMAP session cleanly."""
        if self._connection is None:
            return
        try:
            if self._selected is not None:
                LOGGER.debug("Closing IMAP folder %s", self._selected)
                self._connection.close()
        except imaplib.IMAP4.error:  # pragma: no cover - depends on server state
            LOGGER.debug("IMAP close raised; continuing with logout")
        finally:
            try:
                self._connection.logout()
            except imaplib.IMAP4.error:  # pragma: no cover
                LOGGER.debug("IMAP logout raised; suppressing during shutdown")
            self._connection = None
            self._selected = None

    # Internal helpers ---------------------------------------------------------
    def _require_connection(self) -> imaplib.IMAP4 | imaplib.IMAP4_SSL:
        if self._connection is None:
            raise ImapError("IMAP connection has not been established")
        return self._connection

    def _select(self, folder: str) -> imaplib.IMAP4 | imaplib.IMAP4_SSL:
        connection = self._require_connection()
        if self._selected == folder:
            return connection
        try:
            status, _ = connection.select(_quote(folder), readonly=True)
        except imaplib.IMAP4.error as exc:
            raise ImapError(f"IMAP error while selecting '{folder}'") from exc
        if status != "OK":
            raise ImapError(f"Unable to select folder '{folder}'")
        self._selected = folder
        return connection


def _quote(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return re.sub(r"\\(.)", r"\1", value[1:-1])
    return value


def _parse_list_entry(entry: bytes | tuple[bytes, bytes] | None) -> FolderListing | None:
    """Parse one ``LIST`` response line; literal names arrive as tuples."""
    if entry is None:
        return None
    literal_name: str | None = None
    if isinstance(entry, tuple):
        line = entry[0].decode("utf-8", errors="replace")
        literal_name = entry[1].decode("utf-8", errors="replace")
        line = re.sub(r"\{\d+\}$", "", line)
    else:
        line = entry.decode("utf-8", errors="replace")
    match = _LIST_PATTERN.match(line.strip())
    if match is None:
        return None
    delimiter_raw = match.group("delimiter")
    delimiter = None if delimiter_raw == "NIL" else _unquote(delimiter_raw)
    name = literal_name if literal_name is not None else _unquote(match.group("name"))
    if not name:
        return None
    flags = frozenset(match.group("flags").split())
    return FolderListing(name=name, delimiter=delimiter or None, flags=flags)


def _parse_internaldate(entry: bytes | tuple[bytes, bytes]) -> MessageRef | None:
    line = entry[0] if isinstance(entry, tuple) else entry
    if not isinstance(line, bytes):
        return None
    uid_match = _UID_PATTERN.search(line)
    date_match = _INTERNALDATE_PATTERN.search(line)
    if uid_match is None or date_match is None:
        return None
    try:
        arrived = datetime.strptime(
            date_match.group(1).decode().strip(), "%d-%b-%Y %H:%M:%S %z"
        )
    except ValueError:
        LOGGER.debug("Unparseable INTERNALDATE in %r", line)
        return None
    return MessageRef(uid=int(uid_match.group(1)), internal_date=ensure_utc(arrived) or arrived)


def _extract_rfc822(fetch_data: list[tuple[bytes, bytes] | bytes] | None) -> bytes | None:
    """Extract the message payload from ``imaplib`` response chunks."""
    for entry in fetch_data or []:
        if isinstance(entry, tuple) and len(entry) == 2:
            return entry[1]
    return None


__all__ = ["FolderListing", "ImapClient", "ImapError", "MessageRef"]
