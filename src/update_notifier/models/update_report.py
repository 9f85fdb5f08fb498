"""Update report model."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class UpdateReport:
    """Number of outdated dependencies declared by one manifest."""

    directory: Path
    count: int
    manifest: Path

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("count must be zero or greater")

    def to_dict(self, root: Path | None = None) -> dict[str, object]:
        path = self.directory
        if root is not None and path != root and path.is_relative_to(root):
            path = path.relative_to(root)
        return {
            "path": str(path),
            "updates": self.count,
        }
