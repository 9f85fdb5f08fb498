"""Human-readable end of run summary."""

from __future__ import annotations

from .models import ScanStats


def render_summary(stats: ScanStats) -> str:
    """Return a one-line summary of a finished (or cancelled) walk."""
    parts = [
        f"Checked {stats.manifests_reported} of {stats.manifests_found} manifests",
        f"{stats.outdated_total} updates available",
        f"{stats.directories_listed} directories scanned",
    ]
    if stats.failed_manifests:
        parts.append(f"{stats.failed_manifests} manifests failed")
    if stats.failed_listings:
        parts.append(f"{stats.failed_listings} directories unreadable")

    line = ", ".join(parts)
    if stats.cancelled:
        line += " (cancelled)"
    return line
