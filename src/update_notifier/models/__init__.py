"""Data models for the manifest update scan."""

from __future__ import annotations

from .scan_stats import ScanStats
from .update_report import UpdateReport

__all__ = [
    "ScanStats",
    "UpdateReport",
]
