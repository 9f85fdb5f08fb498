from __future__ import annotations

import os
import threading
from collections import Counter
from pathlib import Path

import pytest

from conftest import StubChecker, make_tree
from update_notifier.walker import ListingError, RootResolutionError, TreeWalker


def _pairs(reports) -> Counter:
    return Counter((report.directory, report.count) for report in reports)


@pytest.mark.parametrize("concurrency", (1, 4))
def test_scenario_skips_excluded_directories(scenario_tree: Path, concurrency: int) -> None:
    check = StubChecker(scenario_tree, {"pkgA": 3, "pkgC/sub": 0})
    walker = TreeWalker(check, excludes={"node_modules"}, concurrency=concurrency)

    reports = list(walker.walk(scenario_tree))

    assert _pairs(reports) == Counter(
        {
            (scenario_tree / "pkgA", 3): 1,
            (scenario_tree / "pkgC" / "sub", 0): 1,
        }
    )
    assert scenario_tree / "pkgB" / "node_modules" / "package.json" not in check.calls
    assert len(check.calls) == 2


@pytest.mark.parametrize("concurrency", (1, 3))
def test_every_reachable_manifest_reported_once(tmp_path: Path, concurrency: int) -> None:
    files = [
        "package.json",
        "a/package.json",
        "a/b/package.json",
        "a/b/c/d/package.json",
        "e/f/package.json",
        "e/node_modules/x/package.json",
        "g/h/i/notes.txt",
    ]
    make_tree(tmp_path, files)
    check = StubChecker(tmp_path, default=1)

    reports = list(TreeWalker(check, concurrency=concurrency).walk(tmp_path))

    directories = sorted(report.directory for report in reports)
    assert directories == sorted(
        {
            tmp_path,
            tmp_path / "a",
            tmp_path / "a" / "b",
            tmp_path / "a" / "b" / "c" / "d",
            tmp_path / "e" / "f",
        }
    )
    assert len(check.calls) == len(set(check.calls)) == 5


def test_exclusion_is_scoped_to_the_named_directory(tmp_path: Path) -> None:
    make_tree(tmp_path, ["vendor/package.json", "app/package.json", "app/vendor/lib/package.json"])
    check = StubChecker(tmp_path)

    reports = list(TreeWalker(check, excludes={"vendor"}).walk(tmp_path))

    assert [report.directory for report in reports] == [tmp_path / "app"]


def test_manifest_at_root_reports_root_directory(tmp_path: Path) -> None:
    make_tree(tmp_path, ["package.json"])

    reports = list(TreeWalker(StubChecker(tmp_path, {".": 7})).walk(tmp_path))

    assert len(reports) == 1
    assert reports[0].directory == tmp_path
    assert reports[0].manifest == tmp_path / "package.json"
    assert reports[0].count == 7


def test_empty_tree_yields_nothing(tmp_path: Path) -> None:
    make_tree(tmp_path, ["a/b/readme.md"])
    walker = TreeWalker(StubChecker(tmp_path))

    assert list(walker.walk(tmp_path)) == []
    assert walker.stats.directories_listed == 3
    assert walker.stats.manifests_found == 0


@pytest.mark.parametrize("concurrency", (1, 4))
def test_failed_manifest_does_not_stop_siblings(
    tmp_path: Path,
    concurrency: int,
    caplog: pytest.LogCaptureFixture,
) -> None:
    make_tree(tmp_path, ["good/package.json", "bad/package.json", "cousin/deep/package.json"])
    check = StubChecker(tmp_path, {"good": 2, "cousin/deep": 5}, fail={"bad"})
    walker = TreeWalker(check, concurrency=concurrency)

    reports = list(walker.walk(tmp_path))

    assert _pairs(reports) == Counter(
        {(tmp_path / "good", 2): 1, (tmp_path / "cousin" / "deep", 5): 1}
    )
    assert walker.stats.failed_manifests == 1
    assert walker.stats.manifests_reported == 2
    assert str(tmp_path / "bad" / "package.json") in caplog.text


def test_sequential_walk_follows_sorted_depth_first_order(tmp_path: Path) -> None:
    make_tree(tmp_path, ["a/package.json", "b/c/package.json", "b/package.json", "package.json"])

    walker = TreeWalker(StubChecker(tmp_path), sort_entries=True)
    order = [report.directory for report in walker.walk(tmp_path)]

    assert order == [tmp_path / "a", tmp_path / "b" / "c", tmp_path / "b", tmp_path]


def test_concurrent_bound_on_checks(tmp_path: Path) -> None:
    make_tree(tmp_path, [f"pkg{index:02}/package.json" for index in range(12)])
    check = StubChecker(tmp_path, default=1, delay=0.05)

    reports = list(TreeWalker(check, concurrency=3).walk(tmp_path))

    assert len(reports) == 12
    assert check.max_in_flight <= 3


def test_concurrent_and_sequential_walks_agree(tmp_path: Path) -> None:
    make_tree(
        tmp_path,
        [
            "package.json",
            "x/package.json",
            "x/y/package.json",
            "x/node_modules/package.json",
            "z/1/package.json",
            "z/2/package.json",
        ],
    )
    counts = {".": 1, "x": 2, "x/y": 3, "z/1": 4, "z/2": 5}

    sequential = _pairs(TreeWalker(StubChecker(tmp_path, counts)).walk(tmp_path))
    concurrent = _pairs(TreeWalker(StubChecker(tmp_path, counts), concurrency=4).walk(tmp_path))
    again = _pairs(TreeWalker(StubChecker(tmp_path, counts), concurrency=4).walk(tmp_path))

    assert sequential == concurrent == again
    assert sum(sequential.values()) == 5


def test_walk_restarts_from_scratch(tmp_path: Path) -> None:
    make_tree(tmp_path, ["a/package.json", "b/package.json"])
    walker = TreeWalker(StubChecker(tmp_path))

    first = list(walker.walk(tmp_path))
    second = list(walker.walk(tmp_path))

    assert len(first) == len(second) == 2
    assert walker.stats.manifests_reported == 2


def test_missing_root_raises(tmp_path: Path) -> None:
    walker = TreeWalker(StubChecker(tmp_path))

    with pytest.raises(RootResolutionError):
        walker.walk(tmp_path / "missing")


def test_file_root_raises(tmp_path: Path) -> None:
    make_tree(tmp_path, ["package.json"])
    walker = TreeWalker(StubChecker(tmp_path))

    with pytest.raises(RootResolutionError):
        walker.walk(tmp_path / "package.json")


def test_unlistable_root_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(self: TreeWalker, directory: Path) -> list:
        raise ListingError(directory, "Permission denied")

    monkeypatch.setattr(TreeWalker, "_list", refuse)

    with pytest.raises(RootResolutionError):
        TreeWalker(StubChecker(tmp_path)).walk(tmp_path)


@pytest.mark.parametrize("concurrency", (1, 2))
def test_unlistable_subdirectory_is_skipped(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    concurrency: int,
) -> None:
    make_tree(tmp_path, ["locked/package.json", "open/package.json"])
    original = TreeWalker._list

    def flaky(self: TreeWalker, directory: Path) -> list:
        if directory.name == "locked":
            raise ListingError(directory, "Permission denied")
        return original(self, directory)

    monkeypatch.setattr(TreeWalker, "_list", flaky)
    walker = TreeWalker(StubChecker(tmp_path), concurrency=concurrency)

    reports = list(walker.walk(tmp_path))

    assert [report.directory for report in reports] == [tmp_path / "open"]
    assert walker.stats.failed_listings == 1


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
def test_symlinked_directories_not_followed_by_default(tmp_path: Path) -> None:
    make_tree(tmp_path, ["real/package.json"])
    (tmp_path / "link").symlink_to(tmp_path / "real", target_is_directory=True)

    default = list(TreeWalker(StubChecker(tmp_path)).walk(tmp_path))
    followed = list(TreeWalker(StubChecker(tmp_path), follow_symlinks=True).walk(tmp_path))

    assert [report.directory for report in default] == [tmp_path / "real"]
    assert sorted(report.directory for report in followed) == [tmp_path / "link", tmp_path / "real"]


@pytest.mark.parametrize("concurrency", (1, 4))
def test_cancelled_before_walk_schedules_nothing(tmp_path: Path, concurrency: int) -> None:
    make_tree(tmp_path, ["a/package.json", "b/package.json", "package.json"])
    cancel = threading.Event()
    cancel.set()
    check = StubChecker(tmp_path)
    walker = TreeWalker(check, concurrency=concurrency, cancel=cancel)

    assert list(walker.walk(tmp_path)) == []
    assert check.calls == []
    assert walker.stats.cancelled is True


@pytest.mark.parametrize("concurrency", (1, 2))
def test_cancel_during_walk_stops_new_work(tmp_path: Path, concurrency: int) -> None:
    depth = 10
    chain = [f"d{level}" for level in range(1, depth + 1)]
    make_tree(tmp_path, ["/".join(chain[:n]) + "/package.json" for n in range(1, depth + 1)])
    cancel = threading.Event()

    class CancellingChecker(StubChecker):
        def __call__(self, manifest: Path) -> int:
            count = super().__call__(manifest)
            cancel.set()
            return count

    check = CancellingChecker(tmp_path)
    walker = TreeWalker(check, concurrency=concurrency, cancel=cancel)

    reports = list(walker.walk(tmp_path))

    assert len(check.calls) < depth
    assert len(reports) <= len(check.calls)
    assert walker.stats.cancelled is True


def test_rejects_zero_concurrency(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        TreeWalker(StubChecker(tmp_path), concurrency=0)
