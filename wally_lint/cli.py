"""wally-lint CLI — validate Wally manifests and query package indexes."""

import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from wally_lint import __version__

console = Console()

_SEVERITY_STYLES = {
    "error": "red",
    "warning": "yellow",
    "info": "blue",
    "hint": "dim",
}


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default=None, help="Settings file (default: ./.wally-lint.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only show warnings and errors")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool, quiet: bool):
    """wally-lint — dependency validation for Wally manifests.

    Checks every dependency in a wally.toml against its package index,
    suggests corrections for typos and reports available upgrades.
    """
    from wally_lint.config import load_settings
    from wally_lint.errors import ConfigError
    from wally_lint.utils.log import configure_logging

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/] {escape(str(e))}")
        sys.exit(1)

    if verbose:
        settings.log_level = "verbose"
    elif quiet:
        settings.log_level = "quiet"
    configure_logging(settings.log_level)
    ctx.obj = settings


def _split_specifier(specifier: str) -> tuple[str, str, str]:
    from wally_lint.manifest.matching import match_dependency

    parts = match_dependency(specifier)
    if not (parts.has_full_author and parts.name):
        console.print(f"[red]{escape('Expected AUTHOR/NAME[@VERSION], got:')}[/] {escape(specifier)}")
        sys.exit(1)
    return parts.author, parts.name, parts.version_text


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@click.argument("manifest_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--strict", is_flag=True, help="Treat warnings as errors")
@click.pass_obj
def check(settings, manifest_path: str, strict: bool):
    """Validate the dependencies declared in a wally.toml."""
    from wally_lint.diagnostics.engine import ManifestDiagnostics, ManifestDocument
    from wally_lint.manifest.models import ParseFailure
    from wally_lint.manifest.parser import parse_manifest
    from wally_lint.registry.store import RegistryStore

    console.print(f"\n[bold blue]wally-lint[/] — Checking: {escape(manifest_path)}\n")

    document = ManifestDocument.from_path(manifest_path)
    parsed = parse_manifest(document.text)
    if isinstance(parsed, ParseFailure):
        console.print(f"  [red]Failed to parse:[/] {escape(parsed.reason)}")
        sys.exit(1)

    if not settings.diagnostics_enabled:
        console.print("[yellow]Diagnostics are disabled in the settings.[/]")
        return

    async def run():
        async with RegistryStore.from_settings(settings) as store:
            engine = ManifestDiagnostics(store)
            await engine.init(document.uri, document)
            return engine.get_findings(document.uri), engine.summary(document.uri)

    findings, summary = asyncio.run(run())

    if findings:
        table = Table(title=f"Findings ({summary.total})")
        table.add_column("Line", justify="right", style="dim")
        table.add_column("Code", style="cyan")
        table.add_column("Severity")
        table.add_column("Message")
        for finding in findings:
            style = _SEVERITY_STYLES[finding.severity.value]
            start = finding.range.start
            table.add_row(
                f"{start.line + 1}:{start.character + 1}",
                finding.code,
                f"[{style}]{finding.severity.value}[/]",
                escape(finding.message),
            )
        console.print(table)

    console.print(Panel(escape(summary.describe()), title="Summary"))

    if summary.errors:
        sys.exit(1)
    if strict and summary.warnings:
        console.print("\n[red]FAIL[/] (strict mode: warnings treated as errors)")
        sys.exit(1)
    if not summary.total:
        console.print("\n[green]All dependencies look good![/]")


# ── Info ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("specifier")
@click.option("--registry", "-r", "registry_url", default=None, help="Package index URL")
@click.pass_obj
def info(settings, specifier: str, registry_url: str | None):
    """Show details for AUTHOR/NAME[@VERSION].

    Without a version the newest published release is shown.
    """
    from wally_lint.errors import UnsupportedRegistryError
    from wally_lint.registry.store import RegistryStore

    author, name, version_text = _split_specifier(specifier)
    url = registry_url or settings.default_registry

    async def run():
        async with RegistryStore.from_settings(settings) as store:
            client = store.require(url)
            wanted = version_text or await client.get_latest_version(author, name)
            if not wanted:
                return None
            return await client.describe_package(author, name, wanted)

    try:
        package = asyncio.run(run())
    except UnsupportedRegistryError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        sys.exit(1)

    if package is None:
        console.print(f"[yellow]No matching package found for {escape(specifier)}.[/]")
        sys.exit(1)

    record = package.record
    lines = [
        f"[bold cyan]{escape(record.name)}[/] {escape(record.version)}",
        "",
        escape(record.description) if record.description else "[dim]No description[/]",
        "",
        f"Author:  {escape(record.display_author())}",
        f"Realm:   {escape(record.realm)}",
    ]
    if record.license:
        lines.append(f"License: {escape(record.license)}")
    if package.is_outdated:
        lines.append(f"Latest:  [yellow]{escape(package.latest_version)}[/]")
    if package.web_url:
        lines.append(f"Page:    {package.web_url}")
    console.print(Panel("\n".join(lines), title="Package"))


# ── Versions ─────────────────────────────────────────────────────────


@main.command()
@click.argument("specifier")
@click.option("--registry", "-r", "registry_url", default=None, help="Package index URL")
@click.pass_obj
def versions(settings, specifier: str, registry_url: str | None):
    """List published versions of AUTHOR/NAME, newest first.

    With AUTHOR/NAME@VERSION the versions that satisfy it are highlighted.
    """
    from wally_lint.errors import UnsupportedRegistryError
    from wally_lint.registry.store import RegistryStore
    from wally_lint.utils.semver import is_compatible

    author, name, version_text = _split_specifier(specifier)
    url = registry_url or settings.default_registry

    async def run():
        async with RegistryStore.from_settings(settings) as store:
            return await store.require(url).get_package_versions(author, name)

    try:
        available = asyncio.run(run())
    except UnsupportedRegistryError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        sys.exit(1)

    if not available:
        console.print(f"[yellow]No versions found for {escape(author)}/{escape(name)}.[/]")
        sys.exit(1)

    table = Table(title=f"{author}/{name} ({len(available)} versions)")
    table.add_column("Version", style="cyan")
    if version_text:
        table.add_column(f"Matches {version_text}", justify="center")
    for version in available:
        if version_text:
            match = "[green]Y[/]" if is_compatible(version_text, version) else ""
            table.add_row(escape(version), match)
        else:
            table.add_row(escape(version))
    console.print(table)


# ── Complete ─────────────────────────────────────────────────────────


@main.command()
@click.argument("manifest_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("line", type=int)
@click.argument("character", type=int)
@click.pass_obj
def complete(settings, manifest_path: str, line: int, character: int):
    """Print completion candidates at LINE:CHARACTER (both zero-based)."""
    from wally_lint.completion import complete_at
    from wally_lint.manifest.parser import load_manifest
    from wally_lint.manifest.tokens import Position
    from wally_lint.registry.store import RegistryStore

    manifest = load_manifest(Path(manifest_path).read_text(encoding="utf-8"))
    if manifest is None:
        console.print("[red]Manifest could not be parsed.[/]")
        sys.exit(1)

    async def run():
        async with RegistryStore.from_settings(settings) as store:
            return await complete_at(store, manifest, Position(line, character))

    candidates = asyncio.run(run())
    if not candidates:
        console.print("[yellow]No completions.[/]")
        return

    for candidate in candidates:
        console.print(f"  [cyan]{escape(candidate.label)}[/] [dim]{candidate.kind.value}[/]")


if __name__ == "__main__":
    main()
