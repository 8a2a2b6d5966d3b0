"""Core utilities for configuration, logging, and shared models."""

from .config import AppSettings, ArchivingSettings, load_app_settings
from .fallible import Outcome, attempt
from .logging import configure_logging
from .models import ArchiveReason, ArchiveResult, CrmEntity

__all__ = [
    "AppSettings",
    "ArchiveReason",
    "ArchiveResult",
    "ArchivingSettings",
    "CrmEntity",
    "Outcome",
    "attempt",
    "configure_logging",
    "load_app_settings",
]
