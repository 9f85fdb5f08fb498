"""npm registry lookups that count outdated dependencies per manifest."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TypeAlias
from urllib.parse import quote

import requests
from packaging.version import InvalidVersion
from requests import Response
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from .parsers.package_json import DEFAULT_SECTIONS, ManifestParseError
from .parsers.package_json import parse as parse_package_json
from .parsers.semver import is_outdated, is_registry_spec

NPM_REGISTRY_URL = "https://registry.npmjs.org"

# Abbreviated metadata still carries dist-tags and is much smaller.
ACCEPT = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8"
USER_AGENT = "update-notifier (python-requests)"

logger = logging.getLogger(__name__)

UpdateChecker: TypeAlias = Callable[[Path], int]


class ResolutionError(RuntimeError):
    """Raised when the outdated dependencies of a manifest cannot be determined."""

    def __init__(self, manifest: Path, reason: str) -> None:
        super().__init__(f"{manifest}: {reason}")
        self.manifest = manifest
        self.reason = reason


class RegistryLookupError(RuntimeError):
    """Raised when the registry has no usable latest version for a package."""


@retry(
    reraise=True,
    stop=stop_after_attempt(3),
    wait=wait_fixed(2),
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
)
def _http_get(session: requests.Session, url: str, timeout: float) -> Response:
    return session.get(
        url,
        headers={"Accept": ACCEPT, "User-Agent": USER_AGENT},
        timeout=timeout,
    )


class RegistryClient:
    """Check manifests against the latest versions published to a registry.

    One client is shared by every worker of a scan: the HTTP session is
    reused and latest versions are cached in memory for the client's
    lifetime.
    """

    def __init__(
        self,
        registry_url: str = NPM_REGISTRY_URL,
        *,
        timeout: float = 30.0,
        upgrade_all: bool = True,
        sections: Iterable[str] = DEFAULT_SECTIONS,
        session: requests.Session | None = None,
    ) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self.upgrade_all = upgrade_all
        self.sections = tuple(sections)
        self._session = session or requests.Session()
        self._latest: dict[str, str] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> RegistryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def package_url(self, name: str) -> str:
        # Scoped packages are addressed as @scope%2Fname.
        return f"{self.registry_url}/{quote(name, safe='@')}"

    def latest_version(self, name: str) -> str:
        """Return the ``latest`` dist-tag of ``name``.

        Raises:
            RegistryLookupError: the registry could not be reached or has no
                latest version for the package.
        """
        with self._lock:
            cached = self._latest.get(name)
        if cached is not None:
            return cached

        url = self.package_url(name)
        try:
            response = _http_get(self._session, url, self.timeout)
        except requests.RequestException as exc:
            raise RegistryLookupError(f"failed to fetch {name}: {exc}") from exc

        if response.status_code != 200:
            raise RegistryLookupError(
                f"unexpected status code {response.status_code} fetching {name}"
            )

        try:
            document = response.json()
        except ValueError as exc:
            raise RegistryLookupError(f"invalid registry document for {name}") from exc

        tags = document.get("dist-tags") if isinstance(document, dict) else None
        if not isinstance(tags, dict):
            raise RegistryLookupError(f"no latest version published for {name}")

        latest = tags.get("latest")
        if not isinstance(latest, str) or not latest:
            raise RegistryLookupError(f"no latest version published for {name}")

        logger.debug("Latest version of %s is %s", name, latest)
        with self._lock:
            self._latest[name] = latest
        return latest

    def check_updates(self, manifest: Path) -> int:
        """Return how many distinct dependencies of ``manifest`` are outdated.

        Raises:
            ResolutionError: the manifest is malformed or a dependency could
                not be looked up.
        """
        try:
            dependencies = parse_package_json(manifest, self.sections)
        except ManifestParseError as exc:
            raise ResolutionError(manifest, str(exc)) from exc

        outdated: set[str] = set()
        for name, expr in dependencies:
            if not is_registry_spec(expr):
                logger.debug("Skipping %s@%s in %s: not a registry range", name, expr, manifest)
                continue

            try:
                latest = self.latest_version(name)
            except RegistryLookupError as exc:
                raise ResolutionError(manifest, str(exc)) from exc

            try:
                if is_outdated(expr, latest, upgrade_all=self.upgrade_all):
                    outdated.add(name)
            except InvalidVersion:
                logger.debug("Cannot compare %s@%s with %s in %s", name, expr, latest, manifest)

        return len(outdated)

    __call__ = check_updates
