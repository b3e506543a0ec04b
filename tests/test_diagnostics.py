"""Tests for finding codes, validation rules and the diagnostics orchestrator."""

import asyncio

from index_fakes import PUBLIC, FakeFetcher, public_index

from wally_lint.diagnostics.codes import (
    FindingSummary,
    Severity,
    make_finding,
    render_message,
    severity_for,
    summarize,
)
from wally_lint.diagnostics.engine import ManifestDiagnostics, ManifestDocument
from wally_lint.diagnostics.rules import (
    closest_realm_name,
    closest_registry_name,
    get_realm_correction,
)
from wally_lint.manifest.models import Realm
from wally_lint.manifest.tokens import EMPTY_RANGE, Position, Range
from wally_lint.registry.notifier import FailureNotifier
from wally_lint.registry.store import RegistryStore

URI = "file:///project/wally.toml"

HEADER = """\
[package]
name = "me/game"
version = "0.1.0"
registry = "https://github.com/UpliftGames/wally-index"
realm = "shared"

"""


def _diagnose(text: str, fetcher: FakeFetcher | None = None):
    fetcher = fetcher or public_index()
    store = RegistryStore(fetcher=fetcher, notifier=FailureNotifier())
    engine = ManifestDiagnostics(store)
    findings = asyncio.run(engine.init(URI, ManifestDocument(URI, text)))
    return findings, engine


def _single(text: str, fetcher: FakeFetcher | None = None):
    findings, _ = _diagnose(text, fetcher)
    assert len(findings) == 1, [f.message for f in findings]
    return findings[0]


def _dependency(specifier: str, section: str = "dependencies") -> str:
    return HEADER + f'[{section}]\nDep = "{specifier}"\n'


# ── Codes ────────────────────────────────────────────────────────────


def test_severity_by_category():
    assert severity_for("W-101") is Severity.ERROR
    assert severity_for("W-205") is Severity.WARNING
    assert severity_for("W-301") is Severity.INFO
    assert severity_for("W-401") is Severity.HINT


def test_render_message():
    assert render_message("W-101", {"PACKAGE_AUTHOR": "sleitnick"}) == (
        "Invalid package author.\nDid you mean `sleitnick`?"
    )
    assert render_message("W-101", {"PACKAGE_AUTHOR": ""}) == "Invalid package author."
    assert render_message("W-101") == "Invalid package author."
    assert render_message("W-203") == "Missing package version."


def test_make_finding():
    finding = make_finding("W-301", EMPTY_RANGE, {"PACKAGE_VERSION": None})
    assert finding.severity is Severity.INFO
    assert finding.message == "A newer package version is available."
    assert finding.substitutions == {"PACKAGE_VERSION": ""}


def test_summarize():
    findings = [
        make_finding("W-101", EMPTY_RANGE),
        make_finding("W-201", EMPTY_RANGE),
        make_finding("W-301", EMPTY_RANGE),
        make_finding("W-302", EMPTY_RANGE),
    ]
    summary = summarize(findings)
    assert summary == FindingSummary(errors=1, warnings=1, upgrades=1, total=4)
    assert summary.describe() == "[FAIL] 1 error(s), 1 warning(s), 1 upgrade(s)"


# ── Rules ────────────────────────────────────────────────────────────


def test_realm_correction():
    assert get_realm_correction(Realm.SHARED, Realm.SERVER) is Realm.SERVER
    assert get_realm_correction(Realm.SERVER, Realm.DEV) is Realm.DEV
    assert get_realm_correction(Realm.SERVER, Realm.SHARED) is None
    assert get_realm_correction(Realm.DEV, Realm.SERVER) is None
    assert get_realm_correction(Realm.SHARED, Realm.DEV) is None
    assert get_realm_correction(Realm.SHARED, None) is None


def test_closest_realm_name():
    assert closest_realm_name("servr") == "server"
    assert closest_realm_name("d") == "dev"
    assert closest_realm_name("") == "shared"


def test_closest_registry_name():
    assert closest_registry_name("") == PUBLIC
    assert closest_registry_name("https://github.com/Uplift") == PUBLIC
    assert closest_registry_name("https://github.com/UpliftGmaes/wally-index") == PUBLIC
    assert closest_registry_name("ftp://somewhere-else.example/index") is None


# ── Dependencies ─────────────────────────────────────────────────────


def test_clean_manifest_has_no_findings():
    text = HEADER + (
        '[dependencies]\nKnit = "sleitnick/knit@1.5.1"\n'
        '[server-dependencies]\nData = "roblox/datastore@1.0.0"\n'
        '[dev-dependencies]\nTestEZ = "roblox/testez@0.4.1"\n'
    )
    findings, engine = _diagnose(text)
    assert findings == []
    assert engine.summary(URI) == FindingSummary()


def test_invalid_author_suggests_closest():
    finding = _single(_dependency("sleitnik/knit@1.5.1"))
    assert finding.code == "W-101"
    assert finding.severity is Severity.ERROR
    assert finding.message == "Invalid package author.\nDid you mean `sleitnick`?"
    # Anchored to the quoted value on line 7
    assert finding.range == Range(Position(7, 6), Position(7, 27))


def test_incomplete_author():
    finding = _single(_dependency("sleit"))
    assert finding.code == "W-201"
    assert finding.message == "Missing package author."


def test_invalid_name_suggests_closest():
    finding = _single(_dependency("sleitnick/knot@1.0.0"))
    assert finding.code == "W-102"
    assert finding.message == "Invalid package name.\nDid you mean `knit`?"


def test_incomplete_name():
    finding = _single(_dependency("sleitnick/kn"))
    assert finding.code == "W-202"


def test_missing_version():
    finding = _single(_dependency("sleitnick/knit@"))
    assert finding.code == "W-203"


def test_invalid_version_suggests_closest():
    finding = _single(_dependency("sleitnick/knit@1.5.2"))
    assert finding.code == "W-103"
    assert finding.message == "Invalid package version.\nDid you mean `1.5.1`?"


def test_server_package_listed_as_shared():
    finding = _single(_dependency("roblox/datastore@1.0.0"))
    assert finding.code == "W-302"
    assert finding.severity is Severity.INFO
    assert finding.message == (
        "Package is a `server` dependency but was listed in `dependencies`.\n"
        "Did you mean to list it under `server-dependencies`?"
    )


def test_dev_package_listed_as_server():
    finding = _single(_dependency("roblox/testez@0.4.1", "server-dependencies"))
    assert finding.code == "W-302"
    assert "`dev-dependencies`" in finding.message


def test_outdated_version():
    finding = _single(_dependency("sleitnick/knit@1.4.0"))
    assert finding.code == "W-301"
    assert finding.message == "A newer package version is available.\nThe latest version is `1.5.1`."


def test_prerelease_pin_is_told_about_final_release():
    finding = _single(_dependency("evaera/promise@4.0.0-rc.1"))
    assert finding.code == "W-301"
    assert "`4.0.0`" in finding.message


def test_unreachable_registry_suppresses_dependency_findings():
    fetcher = public_index()
    fetcher.fail(PUBLIC, 503)
    findings, _ = _diagnose(_dependency("sleitnik/knit@9.9.9"), fetcher)
    assert findings == []


# ── Package fields ───────────────────────────────────────────────────


def test_invalid_realm():
    text = HEADER.replace('realm = "shared"', 'realm = "servr"')
    finding = _single(text)
    assert finding.code == "W-104"
    assert finding.message == "Invalid package realm.\nDid you mean `server`?"
    assert finding.range == Range(Position(4, 8), Position(4, 15))


def test_template_realm_and_registry_take_defaults():
    text = (
        HEADER.replace('realm = "shared"', 'realm = "<REALM>"')
        .replace(PUBLIC, "<REGISTRY>")
        + '[dependencies]\nKnit = "sleitnick/knit@1.5.1"\n'
    )
    findings, _ = _diagnose(text)
    assert findings == []


def test_invalid_package_version():
    text = HEADER.replace('version = "0.1.0"', 'version = "0.1"')
    finding = _single(text)
    assert finding.code == "W-103"
    assert finding.message == "Invalid package version."


def test_unsupported_registry():
    text = HEADER.replace(
        "https://github.com/UpliftGames/wally-index",
        "https://github.com/UpliftGames",
    ) + '[dependencies]\nKnit = "nobody/nothing@1.0.0"\n'
    finding = _single(text)
    assert finding.code == "W-105"
    assert finding.message == f"Invalid package registry.\nDid you mean `{PUBLIC}`?"


def test_missing_registry_index():
    text = HEADER.replace("UpliftGames/wally-index", "someone/missing-index")
    finding = _single(text)
    assert finding.code == "W-105"
    assert finding.message == "Invalid package registry."


def test_missing_name_and_version_anchor_to_header():
    findings, _ = _diagnose('[package]\nrealm = "shared"\n')
    assert [f.code for f in findings] == ["W-202", "W-203"]
    assert all(f.range == Range(Position(0, 1), Position(0, 8)) for f in findings)


def test_no_package_table_means_no_package_findings():
    findings, _ = _diagnose('[dependencies]\nKnit = "sleitnick/knit@1.5.1"\n')
    assert findings == []


def test_parse_failure_yields_no_findings():
    findings, engine = _diagnose('[dependencies]\nKnit = "sleitnick/knit\n')
    assert findings == []
    assert engine.get_findings(URI) == []


# ── Orchestration ────────────────────────────────────────────────────


def _engine(fetcher: FakeFetcher | None = None):
    store = RegistryStore(fetcher=fetcher or public_index(), notifier=FailureNotifier())
    engine = ManifestDiagnostics(store)
    published = []
    engine.add_listener(lambda uri, findings: published.append((uri, [f.code for f in findings])))
    return engine, published


def test_refresh_requires_tracking():
    engine, published = _engine()
    document = ManifestDocument(URI, _dependency("sleitnik/knit@1.0.0"))

    assert asyncio.run(engine.refresh(URI, document)) is None
    assert published == []
    assert not engine.is_tracked(URI)


def test_init_refresh_and_delete():
    engine, published = _engine()
    bad = ManifestDocument(URI, _dependency("sleitnik/knit@1.0.0"))
    good = ManifestDocument(URI, _dependency("sleitnick/knit@1.5.1"))

    async def scenario():
        await engine.init(URI, bad)
        await engine.init(URI, good)  # already tracked, ignored
        first = engine.get_findings(URI)
        await engine.refresh(URI, good)
        second = engine.get_findings(URI)
        engine.delete(URI)
        return first, second

    first, second = asyncio.run(scenario())
    assert [f.code for f in first] == ["W-101"]
    assert second == []
    assert published == [(URI, ["W-101"]), (URI, []), (URI, [])]
    assert not engine.is_tracked(URI)


def test_disable_clears_and_enable_revalidates():
    engine, published = _engine()
    document = ManifestDocument(URI, _dependency("sleitnik/knit@1.0.0"))

    async def scenario():
        await engine.init(URI, document)
        await engine.set_enabled(False)
        disabled = engine.get_findings(URI)
        refreshed = await engine.refresh(URI, document)
        await engine.set_enabled(True)
        return disabled, refreshed

    disabled, refreshed = asyncio.run(scenario())
    assert disabled == []
    assert refreshed == []
    assert [f.code for f in engine.get_findings(URI)] == ["W-101"]
    assert engine.summary().errors == 1


def test_results_for_deleted_document_are_discarded():
    fetcher = public_index()
    fetcher.gate = asyncio.Event()
    engine, published = _engine(fetcher)
    document = ManifestDocument(URI, _dependency("sleitnik/knit@1.0.0"))

    async def scenario():
        task = asyncio.create_task(engine.init(URI, document))
        await asyncio.sleep(0)
        engine.delete(URI)
        fetcher.gate.set()
        return await task

    assert asyncio.run(scenario()) is None
    assert engine.get_findings(URI) == []
    assert published == [(URI, [])]


def test_superseded_refresh_is_discarded():
    fetcher = public_index()
    fetcher.gate = asyncio.Event()
    engine, published = _engine(fetcher)
    old = ManifestDocument(URI, _dependency("sleitnik/knit@1.0.0"))
    new = ManifestDocument(URI, _dependency("sleitnick/knot@1.0.0"))

    async def scenario():
        first = asyncio.create_task(engine.init(URI, old))
        await asyncio.sleep(0)
        second = asyncio.create_task(engine.refresh(URI, new))
        await asyncio.sleep(0)
        fetcher.gate.set()
        return await first, await second

    first, second = asyncio.run(scenario())
    assert first is None
    assert [f.code for f in second] == ["W-102"]
    assert published == [(URI, ["W-102"])]


def test_summary_across_documents():
    engine, _ = _engine()
    other = "file:///other/wally.toml"

    async def scenario():
        await engine.init(URI, ManifestDocument(URI, _dependency("sleitnik/knit@1.0.0")))
        await engine.init(other, ManifestDocument(other, _dependency("sleitnick/knit@1.4.0")))

    asyncio.run(scenario())
    assert engine.summary() == FindingSummary(errors=1, warnings=0, upgrades=1, total=2)
