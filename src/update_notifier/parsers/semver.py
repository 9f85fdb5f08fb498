"""Minimal npm range handling built atop packaging.version.

Supported expressions:
- exact versions (e.g., "1.2.3", "v1.2.3", "=1.2.3")
- caret ranges ^x.y.z → >=x.y.z,<x+1.0.0 (or the 0.x equivalents)
- tilde ranges ~x.y.z → >=x.y.z,<x.y+1.0
- x-ranges such as "1.x", "1.2.*" and "*"
- hyphen ranges "1.0.0 - 2.0.0"
- basic comparator sets split by spaces, e.g., ">=1.0.0 <2.0.0"
- alternatives joined with "||"

Parsing failures surface as ``packaging.version.InvalidVersion``.
"""

from __future__ import annotations

import re

from packaging.version import Version

_WILDCARDS = {"x", "X", "*"}
_OPERATOR_PREFIXES = ("^", "~", ">", "<", "=", "v", "*")
_VERSION_START = re.compile(r"^[0-9xX*]")
_LOOSE_OPERATOR = re.compile(r"(<=|>=|<|>|=|\^|~>|~)\s+")


def _parse_version(v: str) -> Version:
    v = v.strip().lstrip("=").lstrip("v")
    return Version(v)


def _split_partial(v: str) -> list[str]:
    """Return the concrete leading parts of a possibly partial version."""
    v = v.strip().lstrip("=").lstrip("v")
    parts: list[str] = []
    for part in v.split(".")[:3]:
        if part in _WILDCARDS or not part:
            break
        parts.append(part)
    return parts


def _next_major(v: Version) -> Version:
    return Version(f"{v.major + 1}.0.0")


def _next_minor(v: Version) -> Version:
    return Version(f"{v.major}.{v.minor + 1}.0")


def _next_patch(v: Version) -> Version:
    return Version(f"{v.major}.{v.minor}.{v.micro + 1}")


def _caret_upper(base: Version) -> Version:
    if base.major > 0:
        return _next_major(base)
    if base.minor > 0:
        return _next_minor(base)
    return _next_patch(base)


def _is_partial(v: str) -> bool:
    return len(_split_partial(v)) < 3


def _partial_bounds(v: str) -> tuple[Version | None, Version | None]:
    """Return [lower, upper) bounds for an x-range like "1", "1.x" or "1.2.*"."""
    parts = _split_partial(v)
    if not parts:
        return None, None
    lower = Version(".".join(parts + ["0"] * (3 - len(parts))))
    if len(parts) == 1:
        return lower, _next_major(lower)
    if len(parts) == 2:
        return lower, _next_minor(lower)
    return lower, None


def _alternatives(expr: str) -> list[str]:
    # Loose ranges allow a space after the operator (">= 1.0.0 < 2.0.0").
    expr = _LOOSE_OPERATOR.sub(r"\1", expr)
    return [part.strip() for part in expr.split("||")]


def _satisfies_simple(v: Version, expr: str) -> bool:
    expr = expr.strip()

    if not expr or expr in _WILDCARDS:
        return True

    # hyphen range "a - b"
    if " - " in expr:
        low, high = (p.strip() for p in expr.split(" - ", 1))
        return (v >= _parse_version(low)) and (v <= _parse_version(high))

    # caret ^x.y.z
    if expr.startswith("^"):
        if _is_partial(expr[1:]):
            lower, upper = _partial_bounds(expr[1:])
            if lower is None:
                return True
            upper = _caret_upper(lower) if lower.major > 0 or upper is None else upper
            return (v >= lower) and (v < upper)
        base = _parse_version(expr[1:])
        return (v >= base) and (v < _caret_upper(base))

    # tilde ~x.y.z
    if expr.startswith("~"):
        body = expr[1:].lstrip(">")
        if _is_partial(body):
            lower, upper = _partial_bounds(body)
            if lower is None:
                return True
            return (v >= lower) and (upper is None or v < upper)
        base = _parse_version(body)
        return (v >= base) and (v < _next_minor(base))

    # composite comparators like ">=1.0.0 <2.0.0" (space separated)
    tokens: list[str] = expr.split()
    if len(tokens) > 1 or tokens[0][0] in "<>":
        ok = True
        for t in tokens:
            if t.startswith(">="):
                ok = ok and (v >= _parse_version(t[2:]))
            elif t.startswith(">"):
                ok = ok and (v > _parse_version(t[1:]))
            elif t.startswith("<="):
                ok = ok and (v <= _parse_version(t[2:]))
            elif t.startswith("<"):
                ok = ok and (v < _parse_version(t[1:]))
            else:
                ok = ok and _satisfies_simple(v, t)
        return ok

    # x-range "1.x" / "1.2.*" / "1"
    if _is_partial(expr):
        lower, upper = _partial_bounds(expr)
        if lower is None:
            return True
        return (v >= lower) and (upper is None or v < upper)

    return v == _parse_version(expr)


def satisfies(installed: str, expr: str) -> bool:
    v = _parse_version(installed)
    return any(_satisfies_simple(v, alternative) for alternative in _alternatives(expr))


def _floor_simple(expr: str) -> Version | None:
    expr = expr.strip()

    if not expr or expr in _WILDCARDS:
        return None

    if " - " in expr:
        low = expr.split(" - ", 1)[0]
        return _partial_bounds(low)[0] if _is_partial(low) else _parse_version(low)

    if expr[0] in "^~":
        body = expr[1:].lstrip(">")
        return _partial_bounds(body)[0] if _is_partial(body) else _parse_version(body)

    floors: list[Version] = []
    for t in expr.split():
        if t.startswith("<"):
            continue
        body = t.lstrip(">=")
        if _is_partial(body):
            lower = _partial_bounds(body)[0]
            if lower is not None:
                floors.append(lower)
        else:
            floors.append(_parse_version(body))

    return max(floors) if floors else None


def range_floor(expr: str) -> Version | None:
    """Return the lowest version a range was written against.

    For alternatives the highest floor wins; ``None`` means the range has
    no lower bound (``*``, ``<2.0.0``).
    """
    floors = [f for f in (_floor_simple(a) for a in _alternatives(expr)) if f is not None]
    return max(floors) if floors else None


def is_registry_spec(expr: str) -> bool:
    """True if ``expr`` is a version range resolvable against the registry.

    URLs, ``file:``/``git+``/``workspace:``/``npm:`` specs, GitHub
    shorthands and dist-tags such as ``latest`` are not.
    """
    expr = expr.strip()
    if not expr:
        return True
    if ":" in expr or "/" in expr:
        return False
    return expr.startswith(_OPERATOR_PREFIXES) or bool(_VERSION_START.match(expr))


def is_outdated(expr: str, latest: str, upgrade_all: bool = True) -> bool:
    """True if ``latest`` is newer than what ``expr`` declares.

    With ``upgrade_all`` any latest version above the range floor counts,
    even when the range already admits it.
    """
    floor = range_floor(expr)
    if floor is None:
        return False

    newest = _parse_version(latest)
    if newest <= floor:
        return False

    if upgrade_all:
        return True

    return not satisfies(latest, expr)
