"""IMAP backed mail store adapters."""

from .imap_client import FolderListing, ImapClient, ImapError, MessageRef
from .parser import EmailParser
from .tree import ImapFolder, ImapMailItem, ImapStore

__all__ = [
    "EmailParser",
    "FolderListing",
    "ImapClient",
    "ImapError",
    "ImapFolder",
    "ImapMailItem",
    "ImapStore",
    "MessageRef",
]
