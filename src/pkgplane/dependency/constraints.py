"""
Version constraint evaluation.

Constraints follow the semantic-version range syntax packages use in
``dependsOn`` and ``crossplane.version``:

  "*", ">=v1.0.0", ">=1.0, <2.0", "^1.2", "~1.2.3", "1.x", "1.2.*",
  "v1.2.3" (exact), "a || b" (either), or "sha256:<hex>" (exact digest)

Comparators joined by commas or spaces must all hold; ``||`` separates
alternatives. Pre-release versions only match constraints that mention a
pre-release themselves.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable

from packaging.version import InvalidVersion, Version

from pkgplane.core.errors import ValidationError
from pkgplane.xpkg.identity import DIGEST_PREFIX


class InvalidConstraintError(ValidationError):
    """Raised when a constraint string cannot be parsed."""


_OPERATOR_SPACE = re.compile(r"(>=|<=|!=|==|>|<|=|\^|~)\s+")
_WILDCARDS = {"*", "x", "X"}

Check = Callable[[Version], bool]


def parse_version(text: str) -> Version | None:
    """Parse a tag such as ``v1.2.3``; ``None`` when it is not a version."""
    try:
        return Version(text.strip().lstrip("vV"))
    except InvalidVersion:
        return None


def _require_version(text: str, constraint: str) -> Version:
    version = parse_version(text)
    if version is None:
        raise InvalidConstraintError(
            f"Invalid version '{text}' in constraint", details={"constraint": constraint}
        )
    return version


def _bump(parts: list[int], index: int) -> Version:
    """Smallest version above every version sharing ``parts[:index + 1]``."""
    bumped = parts[: index + 1]
    bumped[index] += 1
    return Version(".".join(str(p) for p in bumped))


def _release_parts(text: str) -> list[str]:
    return text.strip().lstrip("vV").split("-", 1)[0].split("+", 1)[0].split(".")


def _range(low: Version, high: Version) -> Check:
    return lambda v: low <= v < high


def _wildcard(term: str, constraint: str) -> Check:
    fixed: list[int] = []
    for part in _release_parts(term):
        if part in _WILDCARDS:
            break
        if not part.isdigit():
            raise InvalidConstraintError(
                f"Invalid wildcard '{term}'", details={"constraint": constraint}
            )
        fixed.append(int(part))
    if not fixed:
        return lambda v: True
    low = Version(".".join(str(p) for p in fixed))
    return _range(low, _bump(fixed, len(fixed) - 1))


def _caret(term: str, constraint: str) -> Check:
    low = _require_version(term, constraint)
    given = len(_release_parts(term))
    parts = list(low.release) + [0] * (3 - len(low.release))
    # First non-zero component is the one that may not change.
    index = next((i for i, p in enumerate(parts[:given]) if p != 0), min(given, 3) - 1)
    return _range(low, _bump(parts, index))


def _tilde(term: str, constraint: str) -> Check:
    low = _require_version(term, constraint)
    given = len(_release_parts(term))
    parts = list(low.release) + [0] * (3 - len(low.release))
    return _range(low, _bump(parts, 0 if given == 1 else 1))


def _comparator(term: str, constraint: str) -> Check:
    for op in (">=", "<=", "!=", "==", ">", "<", "="):
        if term.startswith(op):
            operand = term[len(op) :]
            if any(part in _WILDCARDS for part in _release_parts(operand)):
                if op in ("=", "=="):
                    return _wildcard(operand, constraint)
                raise InvalidConstraintError(
                    f"Wildcard not allowed with '{op}'", details={"constraint": constraint}
                )
            target = _require_version(operand, constraint)
            return {
                ">=": lambda v: v >= target,
                "<=": lambda v: v <= target,
                "!=": lambda v: v != target,
                ">": lambda v: v > target,
                "<": lambda v: v < target,
            }.get(op, lambda v: v == target)
    if term.startswith("^"):
        return _caret(term[1:], constraint)
    if term.startswith("~"):
        return _tilde(term[1:], constraint)
    if any(part in _WILDCARDS for part in _release_parts(term)):
        return _wildcard(term, constraint)
    target = _require_version(term, constraint)
    return lambda v: v == target


def _compile(constraint: str) -> list[list[Check]]:
    alternatives = []
    for alternative in constraint.split("||"):
        text = _OPERATOR_SPACE.sub(r"\1", alternative.strip())
        terms = [t for t in re.split(r"[,\s]+", text) if t]
        if not terms:
            raise InvalidConstraintError(
                "Empty alternative in constraint", details={"constraint": constraint}
            )
        alternatives.append([_comparator(term, constraint) for term in terms])
    return alternatives


def validate_constraint(constraint: str) -> None:
    """Raise :class:`InvalidConstraintError` if ``constraint`` is malformed."""
    if constraint.strip() and not constraint.strip().startswith(DIGEST_PREFIX):
        _compile(constraint)


def satisfies(version: str, constraint: str) -> bool:
    """Whether ``version`` (a tag or digest) meets ``constraint``.

    Raises:
        InvalidConstraintError: if ``constraint`` is malformed.
    """
    constraint = constraint.strip()
    if not constraint or constraint in _WILDCARDS:
        return True
    if constraint.startswith(DIGEST_PREFIX):
        return version == constraint

    alternatives = _compile(constraint)
    parsed = parse_version(version)
    if parsed is None:
        return False
    if parsed.is_prerelease and "-" not in constraint:
        return False
    return any(all(check(parsed) for check in checks) for checks in alternatives)


def highest_satisfying(tags: Iterable[str], constraint: str) -> str | None:
    """The tag with the highest version meeting ``constraint``."""
    best: tuple[Version, str] | None = None
    for tag in tags:
        version = parse_version(tag)
        if version is None or not satisfies(tag, constraint):
            continue
        if best is None or version > best[0]:
            best = (version, tag)
    return best[1] if best else None
