"""Validation rules for package fields and dependencies.

Each ``diagnose_*`` coroutine returns at most one :class:`Finding`. A
dependency is checked in a fixed order and the first problem wins, so a
misspelt author is reported as such instead of as an unknown package.
"""

from __future__ import annotations

import logging

from wally_lint import PUBLIC_REGISTRY_URL
from wally_lint.diagnostics.codes import Finding, make_finding
from wally_lint.manifest.models import VALID_REALMS, DependencySpec, Manifest, Realm
from wally_lint.registry.client import RegistryClient
from wally_lint.registry.models import Validity
from wally_lint.registry.store import RegistryStore
from wally_lint.utils.semver import compare_versions, is_valid_semver, requirement_version
from wally_lint.utils.suggest import closest, distance

logger = logging.getLogger(__name__)

REGISTRY_MATCH_THRESHOLD = 0.25


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------

def get_realm_correction(current: Realm, actual: Realm | None) -> Realm | None:
    """Where a dependency of realm ``actual`` should go if ``current`` is wrong.

    Shared packages may be listed anywhere. Server packages must not be
    listed as shared dependencies, and dev packages must not be listed as
    server dependencies.
    """
    if actual is Realm.SERVER and current is Realm.SHARED:
        return Realm.SERVER
    if actual is Realm.DEV and current is Realm.SERVER:
        return Realm.DEV
    return None


def closest_realm_name(value: str) -> str:
    return closest(value, VALID_REALMS, Realm.SHARED.value)


def closest_registry_name(value: str) -> str | None:
    """Suggest the public index when ``value`` looks like a partial or misspelt copy of it."""
    if (
        not value
        or PUBLIC_REGISTRY_URL.startswith(value)
        or distance(value, PUBLIC_REGISTRY_URL[:len(value)]) <= REGISTRY_MATCH_THRESHOLD
    ):
        return PUBLIC_REGISTRY_URL
    return None


def _changed(value: str, suggestion: str) -> str | None:
    return suggestion if suggestion != value else None


async def closest_author(client: RegistryClient, author: str) -> str | None:
    names = await client.get_author_names()
    if not names:
        return None
    return _changed(author, closest(author, names, author))


async def closest_package_name(client: RegistryClient, author: str, name: str) -> str | None:
    names = await client.get_package_names(author)
    if not names:
        return None
    return _changed(name, closest(name, names, name))


async def closest_version(client: RegistryClient, author: str, name: str, version: str) -> str | None:
    versions = await client.get_package_versions(author, name)
    if not versions:
        return None
    return _changed(version, closest(version, versions, version))


# ---------------------------------------------------------------------------
# Package fields
# ---------------------------------------------------------------------------

async def diagnose_package_realm(manifest: Manifest) -> Finding | None:
    realm = manifest.package.realm
    if realm.is_placeholder or realm.cleaned_text in VALID_REALMS:
        return None
    return make_finding(
        "W-104", realm.value_range, {"REALM_NAME": closest_realm_name(realm.cleaned_text)}
    )


async def diagnose_package_registry(manifest: Manifest, store: RegistryStore) -> Finding | None:
    registry = manifest.package.registry
    if registry.is_placeholder:
        return None
    client = store.get(registry.cleaned_text)
    if client is not None:
        reachable = await client.check_reachable()
        if reachable is not Validity.INVALID:
            return None
    return make_finding(
        "W-105", registry.value_range, {"REGISTRY_NAME": closest_registry_name(registry.cleaned_text)}
    )


async def diagnose_package_version(manifest: Manifest) -> Finding | None:
    version = manifest.package.version
    if version.is_placeholder or is_valid_semver(version.cleaned_text):
        return None
    return make_finding("W-103", version.value_range)


def diagnose_missing_fields(manifest: Manifest) -> list[Finding]:
    """Name and version are required once a ``[package]`` table exists."""
    header = manifest.tables.get("package")
    if header is None:
        return []
    findings = []
    if manifest.package.name.is_placeholder:
        findings.append(make_finding("W-202", header))
    if manifest.package.version.is_placeholder:
        findings.append(make_finding("W-203", header))
    return findings


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

async def diagnose_dependency(
    client: RegistryClient, dependency: DependencySpec, realm: Realm
) -> Finding | None:
    """Check one dependency against the registry.

    Order: author, name, version, realm placement, upgrades. An
    indeterminate lookup at any step ends the check without a finding.
    """
    anchor = dependency.value_range
    author, name, version_text = dependency.author, dependency.name, dependency.version_text

    validity = await client.is_valid_author(author)
    if validity is Validity.INDETERMINATE:
        return None
    if validity is Validity.INVALID:
        if not dependency.has_full_author:
            return make_finding("W-201", anchor)
        suggestion = await closest_author(client, author)
        return make_finding("W-101", anchor, {"PACKAGE_AUTHOR": suggestion})

    validity = await client.is_valid_package(author, name)
    if validity is Validity.INDETERMINATE:
        return None
    if validity is Validity.INVALID:
        if not dependency.has_full_name:
            return make_finding("W-202", anchor)
        suggestion = await closest_package_name(client, author, name)
        return make_finding("W-102", anchor, {"PACKAGE_NAME": suggestion})

    if not version_text:
        return make_finding("W-203", anchor)

    validity = await client.is_valid_version(author, name, version_text)
    if validity is Validity.INDETERMINATE:
        return None
    if validity is Validity.INVALID:
        suggestion = await closest_version(client, author, name, version_text)
        return make_finding("W-103", anchor, {"VERSION_IDENTIFIER": suggestion})

    record = await client.get_full_package_info(author, name, version_text)
    if record is not None:
        correction = get_realm_correction(realm, record.realm_kind)
        if correction is not None:
            return make_finding(
                "W-302",
                anchor,
                {
                    "REALM_NAME": record.realm,
                    "REALM_CURRENT": realm.section,
                    "REALM_SECTION": correction.section,
                },
            )

    latest = await client.get_latest_version(author, name)
    desired = requirement_version(version_text) or dependency.coerced_version
    if latest and desired and compare_versions(latest, desired) > 0:
        return make_finding("W-301", anchor, {"PACKAGE_VERSION": latest})

    return None
