"""update-notifier core package.

Walks a directory tree for package.json manifests and reports how many
of their dependencies have newer versions published.
"""

from __future__ import annotations

from .config import Settings, load_settings
from .core import run
from .models import UpdateReport

__all__ = [
    "Settings",
    "UpdateReport",
    "load_settings",
    "run",
]
