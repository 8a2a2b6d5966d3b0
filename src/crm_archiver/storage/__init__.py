"""Persistence for archive bookkeeping."""

from .ledger import SqliteArchiveLedger

__all__ = ["SqliteArchiveLedger"]
