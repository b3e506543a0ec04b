"""Positioned fields, dependency specs and realms read from a wally.toml."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from wally_lint import PUBLIC_REGISTRY_URL
from wally_lint.manifest.tokens import EMPTY_RANGE, Range, TokenizeError


class Realm(Enum):
    """Where a package is meant to run."""

    SHARED = "shared"
    SERVER = "server"
    DEV = "dev"

    @property
    def section(self) -> str:
        """The manifest table that lists dependencies of this realm."""
        return _SECTIONS[self]

    @classmethod
    def from_section(cls, section: str) -> Realm | None:
        for realm, name in _SECTIONS.items():
            if name == section:
                return realm
        return None

    @classmethod
    def parse(cls, value: str) -> Realm | None:
        try:
            return cls(value)
        except ValueError:
            return None


_SECTIONS = {
    Realm.SHARED: "dependencies",
    Realm.SERVER: "server-dependencies",
    Realm.DEV: "dev-dependencies",
}

VALID_REALMS = [r.value for r in Realm]


@dataclass
class PositionedField:
    """A ``key = "value"`` assignment and where it sits in the document.

    ``field_range`` spans key through value, ``value_range`` only the value
    literal (quotes included). Placeholder fields stand in for keys the
    manifest never declared, or declared with a template value such as
    ``"<REALM>"``.
    """

    key_name: str = ""
    raw_text: str = ""
    cleaned_text: str = ""
    field_range: Range = EMPTY_RANGE
    value_range: Range = EMPTY_RANGE
    is_placeholder: bool = False


@dataclass
class DependencySpec(PositionedField):
    """A dependency assignment split into author, name and version."""

    author: str = ""
    name: str = ""
    version_text: str = ""
    coerced_version: str = ""
    has_full_author: bool = False
    has_full_name: bool = False

    @property
    def specifier(self) -> str:
        return self.cleaned_text


def placeholder_field(key_name: str, default: str = "") -> PositionedField:
    return PositionedField(key_name=key_name, cleaned_text=default, is_placeholder=True)


def is_template_value(text: str) -> bool:
    """Template values like ``<REGISTRY>`` mark a field the author has not filled in."""
    return len(text) > 2 and text.startswith("<") and text.endswith(">")


@dataclass
class PackageFields:
    """The ``[package]`` fields the validator cares about."""

    name: PositionedField = field(default_factory=lambda: placeholder_field("name"))
    version: PositionedField = field(default_factory=lambda: placeholder_field("version"))
    realm: PositionedField = field(
        default_factory=lambda: placeholder_field("realm", Realm.SHARED.value)
    )
    registry: PositionedField = field(
        default_factory=lambda: placeholder_field("registry", PUBLIC_REGISTRY_URL)
    )

    KEYS = ("name", "version", "realm", "registry")


@dataclass
class DependencyLists:
    shared: list[DependencySpec] = field(default_factory=list)
    server: list[DependencySpec] = field(default_factory=list)
    dev: list[DependencySpec] = field(default_factory=list)

    def for_realm(self, realm: Realm) -> list[DependencySpec]:
        return getattr(self, realm.value)

    def items(self) -> Iterator[tuple[Realm, DependencySpec]]:
        """Yield every dependency with its realm, shared first, then server, then dev."""
        for realm in Realm:
            for dependency in self.for_realm(realm):
                yield realm, dependency

    def __len__(self) -> int:
        return len(self.shared) + len(self.server) + len(self.dev)


@dataclass
class Manifest:
    """Semantic view of a ``wally.toml`` file."""

    package: PackageFields = field(default_factory=PackageFields)
    dependencies: DependencyLists = field(default_factory=DependencyLists)
    tables: dict[str, Range] = field(default_factory=dict)  # header name -> name token range

    @property
    def registry_url(self) -> str:
        return self.package.registry.cleaned_text


@dataclass
class ParseFailure:
    """Why a document could not be turned into a manifest."""

    reason: str
    errors: list[TokenizeError] = field(default_factory=list)
