"""Data models for a package index: tree, authors, version history and config."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from wally_lint import PUBLIC_REGISTRY_URL
from wally_lint.manifest.models import Realm
from wally_lint.utils.semver import latest_compatible, sort_versions

logger = logging.getLogger(__name__)

OWNERS_FILE = "owners.json"


class Validity(Enum):
    """Outcome of a registry existence check.

    INDETERMINATE means the registry could not be asked (network failure,
    rate limiting). Callers should skip dependent checks rather than report
    a problem that might not exist.
    """

    VALID = "valid"
    INVALID = "invalid"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class TreeEntry:
    """A named child in the index tree and the content id it points to."""

    name: str
    content_id: str


@dataclass
class RegistryTree:
    """Root listing of an index: one subtree per author plus the config blob."""

    authors: list[TreeEntry] = field(default_factory=list)
    config: TreeEntry | None = None

    @property
    def author_names(self) -> list[str]:
        return [a.name for a in self.authors]

    def author_id(self, name: str) -> str | None:
        for author in self.authors:
            if author.name == name:
                return author.content_id
        return None


@dataclass
class RegistryAuthor:
    """An author subtree. Names are stored lower-cased."""

    name: str
    content_id: str
    packages: list[TreeEntry] = field(default_factory=list)

    @property
    def package_names(self) -> list[str]:
        return [p.name for p in self.packages]

    def package_id(self, name: str) -> str | None:
        for package in self.packages:
            if package.name == name:
                return package.content_id
        return None


@dataclass
class PackageVersionRecord:
    """One published version of a package, as stored in the index."""

    name: str
    version: str
    registry: str = ""
    realm: str = Realm.SHARED.value
    description: str = ""
    license: str = ""
    authors: list[str] = field(default_factory=list)
    dependencies: dict[str, dict[str, str]] = field(default_factory=dict)  # section -> alias -> specifier

    @property
    def realm_kind(self) -> Realm | None:
        return Realm.parse(self.realm)

    @property
    def scope(self) -> str:
        return self.name.partition("/")[0] if "/" in self.name else ""

    @property
    def short_name(self) -> str:
        return self.name.partition("/")[2] if "/" in self.name else self.name

    def display_author(self) -> str:
        """Human readable author line, e.g. ``Jane Doe (jdoe)``."""
        scope = self.scope
        names = [_author_display_name(a) for a in self.authors if a]
        if not names:
            return scope
        if len(names) == 1:
            if names[0].lower() == scope:
                return names[0]
            return f"{names[0]} ({scope})"
        return f"{', '.join(names[:-1])} and {names[-1]} ({scope})"


def _author_display_name(author: str) -> str:
    # Authors look like "Name <email>" or "Name (handle)"
    cut = len(author)
    for marker in ("<", "("):
        index = author.find(marker)
        if index >= 0:
            cut = min(cut, index)
    return author[:cut].strip()


@dataclass
class RegistryPackage:
    """Full version history of one package, stored oldest first."""

    author: str
    name: str
    versions: list[PackageVersionRecord] = field(default_factory=list)

    @property
    def version_strings(self) -> list[str]:
        """All published versions, newest first."""
        return sort_versions([v.version for v in self.versions])

    def find_compatible(self, version_text: str) -> PackageVersionRecord | None:
        """Return the newest record whose version satisfies ``version_text``."""
        version = latest_compatible(version_text, self.version_strings)
        return self.get(version) if version else None

    def get(self, version: str) -> PackageVersionRecord | None:
        # Later entries win if a version was ever republished
        for record in reversed(self.versions):
            if record.version == version:
                return record
        return None


@dataclass
class RegistryConfig:
    """The index's ``config.json``."""

    api_base_url: str = ""
    github_oauth_id: str = ""
    fallback_registries: list[str] = field(default_factory=list)


@dataclass
class PackageInfo:
    """What a hover or ``info`` view shows about a dependency."""

    record: PackageVersionRecord
    latest_version: str = ""
    latest_compatible_version: str = ""
    registry_url: str = ""

    @property
    def is_outdated(self) -> bool:
        return bool(self.latest_version) and self.latest_version != self.record.version

    @property
    def web_url(self) -> str:
        if self.registry_url.lower().rstrip("/") == PUBLIC_REGISTRY_URL.lower():
            return f"https://wally.run/package/{self.record.name}"
        return ""


def record_from_dict(data: dict) -> PackageVersionRecord:
    """Build a version record from one decoded line of a version history blob."""
    package = data.get("package", {})
    if not isinstance(package, dict):
        raise ValueError("'package' must be a table")
    dependencies = {}
    for realm in Realm:
        section = data.get(realm.section, {})
        if isinstance(section, dict):
            dependencies[realm.section] = {str(k): str(v) for k, v in section.items()}
    return PackageVersionRecord(
        name=str(package.get("name", "")),
        version=str(package.get("version", "")),
        registry=str(package.get("registry", "")),
        realm=str(package.get("realm", Realm.SHARED.value)),
        description=str(package.get("description") or ""),
        license=str(package.get("license") or ""),
        authors=[str(a) for a in package.get("authors", []) or []],
        dependencies=dependencies,
    )


def parse_version_history(text: str) -> list[PackageVersionRecord]:
    """Parse a newline-delimited JSON version history, oldest first.

    Every line is decoded on its own; a malformed line is logged and skipped
    so it cannot hide the rest of the history.
    """
    records: list[PackageVersionRecord] = []
    for number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            continue
        if not (stripped.startswith("{") and stripped.endswith("}")):
            logger.debug("Skipping non-object line %d in version history", number)
            continue
        try:
            records.append(record_from_dict(json.loads(stripped)))
        except (json.JSONDecodeError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Skipping malformed version record on line %d: %s", number, e)
    return records


def config_from_dict(data: dict) -> RegistryConfig:
    fallbacks = data.get("fallback_registries") or []
    return RegistryConfig(
        api_base_url=str(data.get("api", "")),
        github_oauth_id=str(data.get("github_oauth_id", "")),
        fallback_registries=[str(f) for f in fallbacks if isinstance(f, str)],
    )
