"""Counters collected while walking a tree."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ScanStats:
    """Running totals for a single walk."""

    directories_listed: int = 0
    manifests_found: int = 0
    manifests_reported: int = 0
    failed_manifests: int = 0
    failed_listings: int = 0
    outdated_total: int = 0
    cancelled: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "directories": self.directories_listed,
            "manifests": self.manifests_found,
            "reported": self.manifests_reported,
            "failedManifests": self.failed_manifests,
            "failedListings": self.failed_listings,
            "updates": self.outdated_total,
            "cancelled": self.cancelled,
        }
