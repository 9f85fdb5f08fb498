from __future__ import annotations

import threading
import time
from collections.abc import Iterable
from pathlib import Path

import pytest

from update_notifier.registry import ResolutionError


def make_tree(root: Path, files: Iterable[str], content: str = "{}") -> Path:
    """Create every relative file path below root and return root."""
    for relative in files:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


class StubChecker:
    """Deterministic update checker keyed by manifest directory relative to root."""

    def __init__(
        self,
        root: Path,
        counts: dict[str, int] | None = None,
        *,
        default: int = 0,
        fail: Iterable[str] = (),
        delay: float = 0.0,
    ) -> None:
        self.root = root
        self.counts = counts or {}
        self.default = default
        self.fail = set(fail)
        self.delay = delay
        self.calls: list[Path] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def key(self, manifest: Path) -> str:
        return manifest.parent.relative_to(self.root).as_posix()

    def __call__(self, manifest: Path) -> int:
        with self._lock:
            self.calls.append(manifest)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            key = self.key(manifest)
            if key in self.fail:
                raise ResolutionError(manifest, "invalid manifest")
            return self.counts.get(key, self.default)
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def scenario_tree(tmp_path: Path) -> Path:
    return make_tree(
        tmp_path,
        [
            "pkgA/package.json",
            "pkgB/node_modules/package.json",
            "pkgC/sub/package.json",
            "pkgC/README.md",
        ],
    )
