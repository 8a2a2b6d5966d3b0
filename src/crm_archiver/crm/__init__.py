"""SuiteCRM integration."""

from .archiver import CrmEmailArchiver, parse_excluded_addresses
from .client import CrmError, SuiteCrmClient

__all__ = [
    "CrmEmailArchiver",
    "CrmError",
    "SuiteCrmClient",
    "parse_excluded_addresses",
]
