"""Core scanning entrypoint.

This module owns a single run: it wires the registry client, the walker
and a reporter together and maps failures to exit statuses. It does no
argument parsing so it can be driven from the CLI or from tests.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from typing import Protocol, TextIO

from .config import Settings
from .models import UpdateReport
from .registry import RegistryClient, UpdateChecker
from .report import CollectingReporter, ConsoleReporter, aggregate
from .summary import render_summary
from .walker import RootResolutionError, TreeWalker

EXIT_OK = 0
EXIT_ROOT_UNREADABLE = 1
EXIT_INTERRUPTED = 130

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Anything that accepts completed update reports."""

    def report(self, report: UpdateReport) -> None: ...


def build_walker(
    settings: Settings,
    check: UpdateChecker,
    cancel: threading.Event | None = None,
) -> TreeWalker:
    return TreeWalker(
        check,
        excludes=settings.excludes,
        manifest_name=settings.manifest_name,
        concurrency=settings.concurrency,
        sort_entries=settings.sort_entries,
        follow_symlinks=settings.follow_symlinks,
        cancel=cancel,
    )


def run(
    settings: Settings,
    *,
    check: UpdateChecker | None = None,
    reporter: Reporter | None = None,
    cancel: threading.Event | None = None,
    stream: TextIO | None = None,
    json_output: bool = False,
    color: bool = False,
) -> int:
    """Scan ``settings.root`` and report every manifest with its update count.

    Params:
        settings: resolved scan settings
        check: optional update checker; a RegistryClient is created (and
            closed) when omitted
        reporter: optional sink for reports; defaults to a ConsoleReporter
            on ``stream``
        cancel: optional event that stops scheduling new work once set
        json_output: collect reports and write one aggregated JSON
            document to ``stream`` instead of one line per report

    Returns: process exit status. Per-manifest and per-directory failures
    are logged and still give EXIT_OK.
    """
    stream = stream or sys.stdout
    cancel = cancel or threading.Event()
    client: RegistryClient | None = None
    if check is None:
        client = RegistryClient(
            settings.registry_url,
            timeout=settings.timeout,
            upgrade_all=settings.upgrade_all,
            sections=settings.dependency_sections,
        )
        check = client.check_updates

    collector: CollectingReporter | None = None
    if reporter is None:
        if json_output:
            reporter = collector = CollectingReporter()
        else:
            reporter = ConsoleReporter(settings.root, stream=stream, color=color)
    walker = build_walker(settings, check, cancel)

    logger.info(
        "Scanning %s (concurrency=%s, excluding %s)",
        settings.root,
        settings.concurrency,
        ", ".join(sorted(settings.excludes)) or "nothing",
    )

    try:
        for update_report in walker.walk(settings.root):
            reporter.report(update_report)

    except RootResolutionError as exc:
        logger.error("%s", exc)
        return EXIT_ROOT_UNREADABLE

    except KeyboardInterrupt:
        cancel.set()
        walker.stats.cancelled = True
        logger.warning("Scan interrupted; %s", render_summary(walker.stats))
        return EXIT_INTERRUPTED

    finally:
        if client is not None:
            client.close()

    if collector is not None:
        document = aggregate(collector.reports, walker.stats, settings.root)
        stream.write(json.dumps(document, indent=2) + "\n")
        stream.flush()

    logger.info("%s", render_summary(walker.stats))
    return EXIT_OK
