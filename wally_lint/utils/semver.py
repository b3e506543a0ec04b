"""Semantic version helpers — parsing, coercion and range compatibility.

Version requirements follow Wally's (Cargo-style) rules: a bare version is a
caret requirement, so ``1.2.0`` accepts anything from ``1.2.0`` up to, but not
including, ``2.0.0``, and ``0.3.1`` accepts ``0.3.x`` from ``0.3.1`` upwards.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass


_STRICT_SEMVER_RE = re.compile(
    r"(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
)

# Longest operators first so ">=" is not read as ">"
_OPERATORS = (">=", "<=", ">", "<", "^", "~", "=")


@dataclass(frozen=True)
class Version:
    """A parsed version. Build metadata never affects ordering."""

    major: int
    minor: int
    patch: int
    prerelease: str = ""
    build: str = ""

    @property
    def triple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text


def _read_number(text: str, index: int) -> tuple[int | None, int]:
    end = index
    while end < len(text) and text[end].isdigit() and text[end].isascii():
        end += 1
    if end == index:
        return None, index
    return int(text[index:end]), end


def parse_version(text: str) -> Version | None:
    """Leniently parse ``text`` as a version.

    Missing minor/patch components default to zero and a leading ``v`` is
    ignored. Returns None when the text does not start with a number.
    """
    text = text.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]

    parts: list[int] = []
    index = 0
    while len(parts) < 3:
        number, index = _read_number(text, index)
        if number is None:
            break
        parts.append(number)
        if index < len(text) and text[index] == "." and len(parts) < 3:
            index += 1
        else:
            break
    if not parts:
        return None
    while len(parts) < 3:
        parts.append(0)

    rest = text[index:]
    prerelease, build = "", ""
    if rest.startswith("-"):
        rest = rest[1:]
        prerelease, _, build = rest.partition("+")
    elif rest.startswith("+"):
        build = rest[1:]

    return Version(parts[0], parts[1], parts[2], prerelease=prerelease, build=build)


def is_valid_semver(text: str) -> bool:
    """Strict ``MAJOR.MINOR.PATCH[-pre][+build]`` check."""
    return _STRICT_SEMVER_RE.fullmatch(text) is not None


def coerce(text: str) -> str | None:
    """Pull the most plausible ``X.Y.Z`` out of loosely formatted text.

    ``"^1.2"`` becomes ``"1.2.0"``, ``"v3"`` becomes ``"3.0.0"`` and text with
    no digits at all yields None.
    """
    index = 0
    while index < len(text) and not (text[index].isdigit() and text[index].isascii()):
        index += 1
    if index >= len(text):
        return None

    parts: list[int] = []
    while len(parts) < 3:
        number, end = _read_number(text, index)
        if number is None:
            break
        parts.append(number)
        index = end
        if index < len(text) - 1 and text[index] == "." and text[index + 1].isdigit():
            index += 1
        else:
            break
    while len(parts) < 3:
        parts.append(0)
    return ".".join(str(p) for p in parts)


def _compare_prerelease(a: str, b: str) -> int:
    if a == b:
        return 0
    # A release sorts above any of its pre-releases
    if not a:
        return 1
    if not b:
        return -1
    a_ids, b_ids = a.split("."), b.split(".")
    for a_id, b_id in zip(a_ids, b_ids):
        if a_id == b_id:
            continue
        a_num, b_num = a_id.isdigit(), b_id.isdigit()
        if a_num and b_num:
            return -1 if int(a_id) < int(b_id) else 1
        if a_num != b_num:
            return -1 if a_num else 1
        return -1 if a_id < b_id else 1
    return (len(a_ids) > len(b_ids)) - (len(a_ids) < len(b_ids))


def compare_versions(a: str | Version, b: str | Version) -> int:
    """Return -1, 0 or 1 by semver precedence. Unparsable text sorts lowest."""
    va = parse_version(a) if isinstance(a, str) else a
    vb = parse_version(b) if isinstance(b, str) else b
    if va is None or vb is None:
        return (va is not None) - (vb is not None)
    if va.triple != vb.triple:
        return -1 if va.triple < vb.triple else 1
    return _compare_prerelease(va.prerelease, vb.prerelease)


def sort_versions(versions: list[str], newest_first: bool = True) -> list[str]:
    """Sort version strings by precedence. The sort is stable."""
    return sorted(versions, key=functools.cmp_to_key(compare_versions), reverse=newest_first)


def _split_operator(requirement: str) -> tuple[str, str]:
    requirement = requirement.strip()
    for op in _OPERATORS:
        if requirement.startswith(op):
            return op, requirement[len(op):].strip()
    return "", requirement


def requirement_version(requirement: str) -> Version | None:
    """The version a requirement is anchored on, pre-release tag included.

    ``"^4.0.0-rc.1"`` gives ``4.0.0-rc.1``, where :func:`coerce` would drop
    the tag.
    """
    return parse_version(_split_operator(requirement)[1])


def is_compatible(desired: str, available: str | list[str]) -> bool:
    """Check whether ``available`` satisfies the requirement ``desired``.

    With a list, any satisfying element is enough. Exact text equality is
    always compatible, which covers pinned pre-release and build versions.
    """
    if isinstance(available, (list, tuple)):
        return any(is_compatible(desired, other) for other in available)

    if desired.strip() == available.strip():
        return True

    op, _ = _split_operator(desired)
    wanted = requirement_version(desired)
    offered = parse_version(available)
    if wanted is None or offered is None:
        return False

    # Pre-releases only match requirements that target the same release
    if offered.prerelease and not (wanted.prerelease and wanted.triple == offered.triple):
        return False

    order = compare_versions(offered, wanted)
    if op in ("", "^"):
        if offered.major != wanted.major:
            return False
        if wanted.major == 0 and offered.minor != wanted.minor:
            return False
        return order >= 0
    if op == "~":
        return offered.major == wanted.major and offered.minor == wanted.minor and order >= 0
    if op == "=":
        return order == 0
    if op == ">=":
        return order >= 0
    if op == ">":
        return order > 0
    if op == "<=":
        return order <= 0
    return order < 0


def latest_compatible(desired: str, versions: list[str]) -> str | None:
    """Return the highest version in ``versions`` that satisfies ``desired``."""
    matching = [v for v in versions if is_compatible(desired, v)]
    if not matching:
        return None
    return sort_versions(matching)[0]
