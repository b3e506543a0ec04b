"""Dependency specifier matching.

Splits ``author/name@version`` into its parts without ever guessing: each
part is only reported as complete once the separator that ends it has been
typed. This keeps half-written manifest lines usable for completion and
validation.
"""

from __future__ import annotations

import string
from dataclasses import dataclass

from wally_lint.utils.semver import coerce

AUTHOR_SEPARATOR = "/"
VERSION_SEPARATOR = "@"

_WORD_START = frozenset(string.ascii_letters)
_WORD_CHARS = frozenset(string.ascii_letters + string.digits + "-")


@dataclass(frozen=True)
class DependencyParts:
    """The pieces of a (possibly incomplete) dependency specifier."""

    author: str = ""
    name: str = ""
    version_text: str = ""
    coerced_version: str = ""
    has_full_author: bool = False
    has_full_name: bool = False


def scan_word(text: str, start: int = 0) -> int:
    """Return the end offset of the word starting at ``start``.

    A word is an ASCII letter followed by letters, digits or hyphens. When no
    word starts at ``start`` the returned offset equals ``start``.
    """
    if start >= len(text) or text[start] not in _WORD_START:
        return start
    end = start + 1
    while end < len(text) and text[end] in _WORD_CHARS:
        end += 1
    return end


def match_dependency(text: str) -> DependencyParts:
    """Decompose a dependency specifier such as ``sleitnick/knit@1.4.7``."""
    author_end = scan_word(text)
    if author_end == 0:
        return DependencyParts()
    author = text[:author_end]

    if text[author_end:author_end + 1] != AUTHOR_SEPARATOR:
        return DependencyParts(author=author)

    name_start = author_end + 1
    name_end = scan_word(text, name_start)
    if name_end == name_start:
        return DependencyParts(author=author, has_full_author=True)
    name = text[name_start:name_end]

    if text[name_end:name_end + 1] != VERSION_SEPARATOR:
        return DependencyParts(author=author, name=name, has_full_author=True)

    version_text = text[name_end + 1:]
    return DependencyParts(
        author=author,
        name=name,
        version_text=version_text,
        coerced_version=coerce(version_text) or "",
        has_full_author=True,
        has_full_name=True,
    )

