"""Version parsing and ordering.

Versions follow Semantic Versioning 2.0.0:
    {major}.{minor}.{patch}[-{pre-release}][+{build}]

Example:
    1.4.0-rc.1+build.20260125

Strings that are not valid semver (build hashes, "latest", "v1.0") are still
accepted as version identifiers; they are ordered by plain byte comparison.
Mixing the two schemes is not monotonic (e.g. "bad-version" vs "1.0.0" is decided
byte-wise), which is accepted in exchange for tolerating arbitrary identifiers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
SEMVER_PATTERN = re.compile(
    r"^"
    r"(?P<major>0|[1-9]\d*)\."
    r"(?P<minor>0|[1-9]\d*)\."
    r"(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>"
    r"(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*"
    r"))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?"
    r"$"
)


@dataclass(frozen=True)
class SemVer:
    """Parsed semantic version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease: Dot-separated pre-release identifiers (empty for a release).
        build: Dot-separated build metadata identifiers (ignored for precedence).
        raw: Original version string.
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...]
    build: tuple[str, ...]
    raw: str

    def __str__(self) -> str:
        """Return the raw version string."""
        return self.raw

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)


def parse_semver(version_str: str) -> SemVer:
    """Parse a semantic version string.

    Args:
        version_str: Version string, e.g. "1.2.3-beta.1+sha.abc".

    Returns:
        SemVer with parsed components.

    Raises:
        ValueError: If the string is not a valid semantic version.
    """
    match = SEMVER_PATTERN.match(version_str)
    if not match:
        msg = f"Invalid semantic version: {version_str!r}"
        raise ValueError(msg)

    prerelease = match.group("prerelease")
    build = match.group("build")
    return SemVer(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
        build=tuple(build.split(".")) if build else (),
        raw=version_str,
    )


def _cmp(a: object, b: object) -> int:
    return (a > b) - (a < b)  # type: ignore[operator]


def _compare_identifier(a: str, b: str) -> int:
    """Compare two pre-release identifiers.

    Numeric identifiers compare numerically and always sort before
    alphanumeric ones; alphanumeric identifiers compare in ASCII order.
    """
    a_num, b_num = a.isdigit(), b.isdigit()
    if a_num and b_num:
        return _cmp(int(a), int(b))
    if a_num:
        return -1
    if b_num:
        return 1
    return _cmp(a, b)


def _compare_prerelease(a: tuple[str, ...], b: tuple[str, ...]) -> int:
    # A release has higher precedence than any of its pre-releases.
    if not a and not b:
        return 0
    if not a:
        return 1
    if not b:
        return -1
    for left, right in zip(a, b):
        result = _compare_identifier(left, right)
        if result:
            return result
    return _cmp(len(a), len(b))


def semver_precedence(a: SemVer, b: SemVer) -> int:
    """Compare two parsed versions by semver precedence (build metadata ignored)."""
    core = _cmp((a.major, a.minor, a.patch), (b.major, b.minor, b.patch))
    if core:
        return core
    return _compare_prerelease(a.prerelease, b.prerelease)


def _compare_bytes(a: str, b: str) -> int:
    return _cmp(a.encode("utf-8"), b.encode("utf-8"))


def compare_versions(a: str, b: str) -> int:
    """Total order over version strings.

    Semver precedence when both strings parse, byte-wise comparison otherwise.
    Two versions with equal precedence but different text (e.g. differing build
    metadata) are tie-broken byte-wise, so 0 is returned only for identical strings.

    Returns:
        Negative if a < b, zero if a == b, positive if a > b.
    """
    if a == b:
        return 0
    try:
        va, vb = parse_semver(a), parse_semver(b)
    except ValueError:
        return _compare_bytes(a, b)
    return semver_precedence(va, vb) or _compare_bytes(a, b)


def is_newer(candidate: str, current: str) -> bool:
    """Whether candidate orders strictly after current."""
    return compare_versions(candidate, current) > 0


def latest_of(versions: list[str]) -> str:
    """Return the greatest version in a non-empty list."""
    if not versions:
        raise ValueError("latest_of() requires at least one version")
    best = versions[0]
    for version in versions[1:]:
        if is_newer(version, best):
            best = version
    return best
