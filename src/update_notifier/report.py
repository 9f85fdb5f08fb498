"""Console reporting and schema-friendly aggregation of update reports."""

from __future__ import annotations

import sys
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, TextIO

from .models import ScanStats, UpdateReport

GREEN = "\033[32m"
YELLOW = "\033[33m"
RESET = "\033[0m"


def display_path(directory: Path, root: Path) -> str:
    """Render ``directory`` relative to ``root`` when it is a descendant."""
    if directory != root and directory.is_relative_to(root):
        return str(directory.relative_to(root))
    return str(directory)


def format_line(report: UpdateReport, root: Path, color: bool = False) -> str:
    count = f"{report.count:>2}"
    path = display_path(report.directory, root)
    if color:
        count = f"{YELLOW}{count}{RESET}"
        path = f"{GREEN}{path}{RESET}"
    return f"{count} updates available for {path}"


class ConsoleReporter:
    """Write one line per report; safe to call from several threads."""

    def __init__(self, root: Path, stream: TextIO | None = None, color: bool = False) -> None:
        self.root = root
        self.stream = stream or sys.stdout
        self.color = color
        self._lock = threading.Lock()

    def report(self, report: UpdateReport) -> None:
        line = format_line(report, self.root, self.color)
        with self._lock:
            self.stream.write(line + "\n")
            self.stream.flush()


class CollectingReporter:
    """Keep reports in memory for a single aggregated document."""

    def __init__(self) -> None:
        self.reports: list[UpdateReport] = []
        self._lock = threading.Lock()

    def report(self, report: UpdateReport) -> None:
        with self._lock:
            self.reports.append(report)


def aggregate(
    reports: Iterable[UpdateReport],
    stats: ScanStats,
    root: Path,
) -> dict[str, Any]:
    """Aggregate per-manifest reports into a single JSON-friendly document.

    Projects are listed in emission order; totals come from the walk's
    counters so failed manifests are accounted for too.
    """

    projects = [report.to_dict(root) for report in reports]

    document: dict[str, Any] = {
        "version": "1",
        "root": str(root),
        "hasUpdates": any(p["updates"] for p in projects),
        "projects": projects,
        "totals": stats.to_dict(),
    }

    return document
