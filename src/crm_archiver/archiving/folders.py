"""Flatten a mail store folder tree into the list of folders to scan."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.interfaces import Folder

LOGGER = logging.getLogger(__name__)


def flatten_folders(roots: Iterable[Folder]) -> list[Folder]:
    """Return every folder reachable from ``roots``, parents before descendants.

    Siblings keep their native order. Children are read once per folder into a
    snapshot, so later changes to the live tree do not affect the walk. If a
    folder's children cannot be read, the failure is logged and only that
    subtree is skipped; the folder itself is still returned. Never raises.
    """
    try:
        pending: list[Folder] = list(roots)
    except Exception:  # pylint: disable=broad-except
        LOGGER.error("Failed to read root folders", exc_info=True)
        return []
    pending.reverse()

    result: list[Folder] = []
    seen: set[int] = set()
    while pending:
        folder = pending.pop()
        if id(folder) in seen:
            continue
        seen.add(id(folder))
        result.append(folder)
        try:
            children = list(folder.child_folders)
        except Exception:  # pylint: disable=broad-except
            LOGGER.error(
                "Failed to enumerate subfolders of %s", _describe(folder), exc_info=True
            )
            continue
        pending.extend(reversed(children))
    return result


def _describe(folder: Folder) -> str:
    try:
        return repr(folder.name)
    except Exception:  # pylint: disable=broad-except
        return "<unnamed folder>"


__all__ = ["flatten_folders"]
