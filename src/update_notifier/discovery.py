"""Directory entry classification for the manifest walk."""

from __future__ import annotations

from collections.abc import Collection
from enum import Enum


MANIFEST_NAME = "package.json"
EXCLUDES = frozenset({"node_modules"})


class EntryAction(Enum):
    """What the walker does with a single directory entry."""

    DESCEND = "descend"
    SKIP = "skip"
    CHECK_MANIFEST = "check_manifest"
    IGNORE = "ignore"


def classify(
    name: str,
    is_directory: bool,
    excludes: Collection[str] = EXCLUDES,
    manifest_name: str = MANIFEST_NAME,
) -> EntryAction:
    """Decide how to treat an entry from its name and kind alone.

    Exclusions are exact directory names, not patterns, and never apply to
    files.
    """
    if is_directory:
        if name in excludes:
            return EntryAction.SKIP
        return EntryAction.DESCEND

    if name == manifest_name:
        return EntryAction.CHECK_MANIFEST

    return EntryAction.IGNORE
