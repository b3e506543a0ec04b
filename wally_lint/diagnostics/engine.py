"""Diagnostics orchestrator — keeps findings current for tracked manifests.

A document moves through these states::

    untracked --init--> tracked (idle) --refresh--> tracked (validating)
        ^                    |                              |
        +------delete--------+<------- results published ---+

Results of a refresh are only published if, when they arrive, the document
is still tracked, diagnostics are still enabled and no newer refresh for
the same document has started since.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from wally_lint.diagnostics.codes import Finding, FindingSummary, summarize
from wally_lint.diagnostics.rules import (
    diagnose_dependency,
    diagnose_missing_fields,
    diagnose_package_realm,
    diagnose_package_registry,
    diagnose_package_version,
)
from wally_lint.manifest.models import ParseFailure
from wally_lint.manifest.parser import parse_manifest
from wally_lint.registry.store import RegistryStore

logger = logging.getLogger(__name__)

Listener = Callable[[str, list[Finding]], None]


@dataclass
class ManifestDocument:
    uri: str
    text: str

    @classmethod
    def from_path(cls, path: str | Path) -> ManifestDocument:
        path = Path(path)
        return cls(uri=path.resolve().as_uri(), text=path.read_text(encoding="utf-8"))


class ManifestDiagnostics:
    """Validates tracked manifests and publishes their findings to listeners."""

    def __init__(self, store: RegistryStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled
        self._documents: dict[str, ManifestDocument] = {}
        self._findings: dict[str, list[Finding]] = {}
        self._generations: dict[str, int] = {}
        self._counter = 0
        self._listeners: list[Listener] = []

    # ── Listeners ───────────────────────────────────────────────────────

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, uri: str, findings: list[Finding]) -> None:
        if findings:
            self._findings[uri] = findings
        else:
            self._findings.pop(uri, None)
        for listener in list(self._listeners):
            listener(uri, list(findings))

    # ── Document lifecycle ──────────────────────────────────────────────

    def is_tracked(self, uri: str) -> bool:
        return uri in self._documents

    def _next_generation(self, uri: str) -> int:
        self._counter += 1
        self._generations[uri] = self._counter
        return self._counter

    def _is_current(self, uri: str, generation: int) -> bool:
        return (
            self.enabled
            and uri in self._documents
            and self._generations.get(uri) == generation
        )

    async def init(self, uri: str, document: ManifestDocument) -> list[Finding] | None:
        """Start tracking ``uri``. Already tracked documents are left alone."""
        if uri in self._documents:
            return None
        self._documents[uri] = document
        return await self.refresh(uri, document)

    async def refresh(self, uri: str, document: ManifestDocument) -> list[Finding] | None:
        """Revalidate a tracked document.

        Returns the published findings, or None when the document is not
        tracked or the result was superseded before it could be published.
        """
        if uri not in self._documents:
            return None
        self._documents[uri] = document
        generation = self._next_generation(uri)

        if not self.enabled:
            self._publish(uri, [])
            return []

        findings = await self._diagnose(document)
        if not self._is_current(uri, generation):
            logger.debug("Discarding stale diagnostics for %s", uri)
            return None

        self._publish(uri, findings)
        return findings

    def delete(self, uri: str) -> None:
        if self._documents.pop(uri, None) is None:
            return
        self._generations.pop(uri, None)
        self._publish(uri, [])

    async def set_enabled(self, enabled: bool) -> None:
        """Turn diagnostics on or off. Disabling clears every published finding."""
        self.enabled = enabled
        if enabled:
            await self.refresh_all()
            return
        for uri in list(self._documents):
            self._next_generation(uri)
            self._publish(uri, [])

    async def refresh_all(self) -> None:
        await asyncio.gather(
            *(self.refresh(uri, document) for uri, document in list(self._documents.items()))
        )

    # ── Results ─────────────────────────────────────────────────────────

    def get_findings(self, uri: str) -> list[Finding]:
        return list(self._findings.get(uri, []))

    def summary(self, uri: str | None = None) -> FindingSummary:
        """Counts for one document, or for every tracked document."""
        if uri is not None:
            return summarize(self.get_findings(uri))
        total = FindingSummary()
        for findings in self._findings.values():
            total = total + summarize(findings)
        return total

    async def _diagnose(self, document: ManifestDocument) -> list[Finding]:
        parsed = parse_manifest(document.text)
        if isinstance(parsed, ParseFailure):
            logger.debug("Skipping diagnostics for %s: %s", document.uri, parsed.reason)
            return []

        manifest = parsed
        checks = [
            diagnose_package_realm(manifest),
            diagnose_package_registry(manifest, self.store),
            diagnose_package_version(manifest),
        ]
        client = self.store.get(manifest.registry_url)
        if client is not None:
            checks.extend(
                diagnose_dependency(client, dependency, realm)
                for realm, dependency in manifest.dependencies.items()
            )

        results = await asyncio.gather(*checks)
        findings = diagnose_missing_fields(manifest)
        findings.extend(r for r in results if r is not None)
        findings.sort(key=lambda f: f.range.start)
        logger.info("%s: %d finding(s)", document.uri, len(findings))
        return findings
