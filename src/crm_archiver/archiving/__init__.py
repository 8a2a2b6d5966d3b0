"""Archiving policy, sweeps, and relationship linking."""

from .folders import flatten_folders
from .hook import EventHook
from .orchestrator import ArchiveOrchestrator
from .policy import EligibilityPolicy
from .relationships import RelationshipLinker
from .scheduler import RepeatingProcess

__all__ = [
    "ArchiveOrchestrator",
    "EligibilityPolicy",
    "EventHook",
    "RelationshipLinker",
    "RepeatingProcess",
    "flatten_folders",
]
