"""Parse package.json and extract declared dependencies across sections."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path


DEFAULT_SECTIONS = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
)


class ManifestParseError(ValueError):
    """Raised when a package.json cannot be read as a dependency manifest."""


def parse(path: Path, sections: Iterable[str] = DEFAULT_SECTIONS) -> list[tuple[str, str]]:
    """Return list of (package, version_expr) from the requested sections.

    A name declared in more than one section is returned once, with the
    expression from the first section that declares it.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestParseError(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestParseError(f"invalid JSON in {path}: {exc.msg} (line {exc.lineno})") from exc

    if not isinstance(data, dict):
        raise ManifestParseError(f"{path} does not contain a JSON object")

    pairs: list[tuple[str, str]] = []
    seen: set[str] = set()
    for section in sections:
        deps = data.get(section) or {}
        if not isinstance(deps, dict):
            raise ManifestParseError(f"'{section}' in {path} must be an object")
        for name, version in deps.items():
            if name in seen:
                continue
            seen.add(name)
            pairs.append((name, str(version)))

    return pairs
