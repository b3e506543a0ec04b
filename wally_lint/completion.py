"""Completion candidates for the dependency under the cursor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from wally_lint.manifest.models import Manifest
from wally_lint.manifest.parser import find_dependency_at
from wally_lint.manifest.tokens import Position
from wally_lint.registry.store import RegistryStore

logger = logging.getLogger(__name__)


class CandidateKind(Enum):
    AUTHOR = "author"
    PACKAGE = "package"
    VERSION = "version"


@dataclass
class CompletionCandidate:
    label: str
    kind: CandidateKind
    insert_text: str | None = None
    sort_text: str | None = None

    def __post_init__(self):
        if self.insert_text is None:
            self.insert_text = self.label
        if self.sort_text is None:
            self.sort_text = self.label


def _log_matches(what: str, total: int, matched: list[str]) -> None:
    if len(matched) > 8:
        logger.debug("Found %d %s (filtered from %d)", len(matched), what, total)
    else:
        logger.debug("Found %s: %s", what, ", ".join(matched) or "none")


async def complete_at(
    store: RegistryStore, manifest: Manifest, position: Position
) -> list[CompletionCandidate]:
    """Candidates for whichever part of the dependency specifier is being typed.

    The author is completed until its ``/`` is typed, then the package name
    until ``@``, then the version. Versions come newest first and insert
    only the part not yet typed.
    """
    found = find_dependency_at(manifest, position)
    if found is None:
        return []
    _, dependency = found

    client = store.get(manifest.registry_url)
    if client is None:
        logger.debug("No registry client for %s", manifest.registry_url)
        return []

    if not dependency.has_full_author:
        authors = await client.get_author_names() or []
        matched = [a for a in authors if a.startswith(dependency.author)]
        _log_matches("package authors", len(authors), matched)
        return [CompletionCandidate(a, CandidateKind.AUTHOR) for a in matched]

    if not dependency.has_full_name:
        names = await client.get_package_names(dependency.author) or []
        matched = [n for n in names if n.startswith(dependency.name)]
        _log_matches(f"packages by '{dependency.author}'", len(names), matched)
        return [CompletionCandidate(n, CandidateKind.PACKAGE) for n in matched]

    typed = dependency.version_text
    versions = await client.get_package_versions(dependency.author, dependency.name) or []
    matched = [v for v in versions if v.startswith(typed)]
    _log_matches(f"versions of '{dependency.author}/{dependency.name}'", len(versions), matched)
    return [
        CompletionCandidate(
            v,
            CandidateKind.VERSION,
            insert_text=v[len(typed):],
            sort_text=str(index).zfill(5),
        )
        for index, v in enumerate(matched)
    ]
