"""Depth-first manifest walk with a bounded pool of listing and check tasks."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Collection, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path

from .discovery import EXCLUDES, MANIFEST_NAME, EntryAction, classify
from .models import ScanStats, UpdateReport
from .registry import ResolutionError, UpdateChecker

logger = logging.getLogger(__name__)


class ListingError(RuntimeError):
    """Raised when a directory below the root cannot be listed."""

    def __init__(self, directory: Path, reason: str) -> None:
        super().__init__(f"cannot list {directory}: {reason}")
        self.directory = directory


class RootResolutionError(RuntimeError):
    """Raised when the scan root does not exist or cannot be read."""

    def __init__(self, root: Path, reason: str) -> None:
        super().__init__(f"cannot scan {root}: {reason}")
        self.root = root


class TreeWalker:
    """Find every manifest below a root and check it for updates."""

    def __init__(
        self,
        check: UpdateChecker,
        *,
        excludes: Collection[str] = EXCLUDES,
        manifest_name: str = MANIFEST_NAME,
        concurrency: int = 1,
        sort_entries: bool = False,
        follow_symlinks: bool = False,
        cancel: threading.Event | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._check = check
        self.excludes = frozenset(excludes)
        self.manifest_name = manifest_name
        self.concurrency = concurrency
        self.sort_entries = sort_entries
        self.follow_symlinks = follow_symlinks
        self.cancel = cancel or threading.Event()
        self.stats = ScanStats()

    def walk(self, root: Path) -> Iterator[UpdateReport]:
        """Yield one report per reachable manifest.

        Raises:
            RootResolutionError: before any report, if ``root`` is not a
                readable directory.
        """
        self.stats = ScanStats()
        root = Path(root)
        if not root.exists():
            raise RootResolutionError(root, "no such directory")
        if not root.is_dir():
            raise RootResolutionError(root, "not a directory")

        try:
            entries = self._list(root)
        except ListingError as exc:
            raise RootResolutionError(root, str(exc.__cause__ or exc)) from exc

        if self.concurrency == 1:
            return self._walk_sequential(root, entries)
        return self._walk_concurrent(root, entries)

    def _list(self, directory: Path) -> list[tuple[Path, EntryAction]]:
        """List ``directory`` once and classify every entry.

        Raises:
            ListingError
        """
        try:
            with os.scandir(directory) as it:
                entries = [
                    (
                        Path(entry.path),
                        classify(
                            entry.name,
                            self._is_directory(entry),
                            self.excludes,
                            self.manifest_name,
                        ),
                    )
                    for entry in it
                ]
        except OSError as exc:
            raise ListingError(directory, exc.strerror or str(exc)) from exc

        if self.sort_entries:
            entries.sort(key=lambda item: item[0].name)
        return entries

    def _is_directory(self, entry: os.DirEntry[str]) -> bool:
        try:
            return entry.is_dir(follow_symlinks=self.follow_symlinks)
        except OSError:
            # The entry vanished between listing and stat.
            return False

    def _record_listing(self, directory: Path, entries: list[tuple[Path, EntryAction]]) -> None:
        self.stats.directories_listed += 1
        logger.debug("Listed %s (%s entries)", directory, len(entries))
        for path, action in entries:
            if action is EntryAction.SKIP:
                logger.debug("Skipping excluded directory %s", path)
            elif action is EntryAction.CHECK_MANIFEST:
                self.stats.manifests_found += 1

    def _listing_failed(self, exc: ListingError) -> None:
        self.stats.failed_listings += 1
        logger.warning("Skipping %s", exc)

    def _check_failed(self, exc: ResolutionError) -> None:
        self.stats.failed_manifests += 1
        logger.error("Could not check %s: %s", exc.manifest, exc.reason)

    def _reported(self, manifest: Path, count: int) -> UpdateReport:
        self.stats.manifests_reported += 1
        self.stats.outdated_total += count
        return UpdateReport(directory=manifest.parent, count=count, manifest=manifest)

    def _cancelled(self) -> bool:
        if self.cancel.is_set():
            self.stats.cancelled = True
            return True
        return False

    def _walk_sequential(
        self,
        directory: Path,
        entries: list[tuple[Path, EntryAction]],
    ) -> Iterator[UpdateReport]:
        self._record_listing(directory, entries)

        for path, action in entries:
            if self._cancelled():
                return

            if action is EntryAction.DESCEND:
                try:
                    children = self._list(path)
                except ListingError as exc:
                    self._listing_failed(exc)
                    continue
                yield from self._walk_sequential(path, children)

            elif action is EntryAction.CHECK_MANIFEST:
                try:
                    count = self._check(path)
                except ResolutionError as exc:
                    self._check_failed(exc)
                    continue
                yield self._reported(path, count)

    def _walk_concurrent(
        self,
        root: Path,
        entries: list[tuple[Path, EntryAction]],
    ) -> Iterator[UpdateReport]:
        # Only this generator submits work, so the pool size bounds both
        # listings and checks in flight.
        executor = ThreadPoolExecutor(
            max_workers=self.concurrency,
            thread_name_prefix="update-notifier",
        )
        pending: dict[Future, tuple[EntryAction, Path]] = {}

        def schedule(directory: Path, listed: list[tuple[Path, EntryAction]]) -> None:
            self._record_listing(directory, listed)
            for path, action in listed:
                if action is EntryAction.DESCEND:
                    pending[executor.submit(self._list, path)] = (action, path)
                elif action is EntryAction.CHECK_MANIFEST:
                    pending[executor.submit(self._check, path)] = (action, path)

        try:
            if not self._cancelled():
                schedule(root, entries)

            while pending:
                if self._cancelled():
                    for future in list(pending):
                        if future.cancel():
                            del pending[future]
                    if not pending:
                        break

                done, _ = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
                for future in done:
                    action, path = pending.pop(future)

                    if action is EntryAction.DESCEND:
                        try:
                            listed = future.result()
                        except ListingError as exc:
                            self._listing_failed(exc)
                            continue
                        if not self._cancelled():
                            schedule(path, listed)

                    else:
                        try:
                            count = future.result()
                        except ResolutionError as exc:
                            self._check_failed(exc)
                            continue
                        yield self._reported(path, count)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
