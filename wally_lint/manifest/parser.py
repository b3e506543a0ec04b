"""Manifest parser — folds TOML tokens into a :class:`Manifest`.

Only ``[package]`` and the three dependency tables are read. The parser is
deliberately forgiving about what it does not understand (unknown keys,
other tables, non-string values) so a manifest that is still being edited
can be validated line by line.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from wally_lint.manifest.matching import match_dependency
from wally_lint.manifest.models import (
    DependencySpec,
    Manifest,
    PackageFields,
    ParseFailure,
    PositionedField,
    Realm,
    is_template_value,
)
from wally_lint.manifest.tokens import (
    Position,
    Range,
    Token,
    TokenCategory,
    TokenKind,
    significant_tokens,
    tokenize,
)

logger = logging.getLogger(__name__)


def strip_quotes(text: str) -> str:
    """Remove surrounding quotes when both ends carry the same quote character."""
    for quote in ('"""', "'''", '"', "'"):
        if len(text) >= 2 * len(quote) and text.startswith(quote) and text.endswith(quote):
            return text[len(quote):-len(quote)]
    return text


def _positioned_field(key: Token, value: Token) -> PositionedField:
    return PositionedField(
        key_name=strip_quotes(key.text),
        raw_text=value.text,
        cleaned_text=strip_quotes(value.text),
        field_range=Range(key.start, value.end),
        value_range=_value_range(value),
    )


def _package_field(key: Token, value: Token) -> PositionedField:
    parsed = _positioned_field(key, value)
    if not is_template_value(parsed.cleaned_text):
        return parsed
    default = getattr(PackageFields(), parsed.key_name).cleaned_text
    return replace(parsed, cleaned_text=default, is_placeholder=True)


def _value_range(value: Token) -> Range:
    # Single-line literals end on the line they start, so the literal begins
    # exactly its length before the end position
    if value.start.line == value.end.line:
        start = Position(value.end.line, value.end.character - len(value.text))
        return Range(start, value.end)
    return Range(value.start, value.end)


def _dependency(key: Token, value: Token) -> DependencySpec:
    base = _positioned_field(key, value)
    parts = match_dependency(base.cleaned_text)
    return DependencySpec(
        key_name=base.key_name,
        raw_text=base.raw_text,
        cleaned_text=base.cleaned_text,
        field_range=base.field_range,
        value_range=base.value_range,
        author=parts.author,
        name=parts.name,
        version_text=parts.version_text,
        coerced_version=parts.coerced_version,
        has_full_author=parts.has_full_author,
        has_full_name=parts.has_full_name,
    )


def parse_manifest(text: str) -> Manifest | ParseFailure:
    """Parse manifest text.

    Returns a :class:`ParseFailure` when the text has lexical errors or holds
    no tokens at all. Callers must read that as "cannot validate yet", not as
    an empty manifest.
    """
    result = tokenize(text)
    if result.errors:
        first = result.errors[0]
        return ParseFailure(
            reason=f"{first.message} at {first.position.line + 1}:{first.position.character + 1}",
            errors=result.errors,
        )
    if not result.tokens:
        return ParseFailure(reason="Document is empty")

    manifest = Manifest()
    tokens = significant_tokens(result.tokens)
    current_table = ""

    for index in range(1, len(tokens) - 1):
        prev_token, token, next_token = tokens[index - 1], tokens[index], tokens[index + 1]

        # Table header such as [package] or [server-dependencies]
        if (
            token.kind == TokenKind.UNQUOTED_KEY
            and prev_token.category == TokenCategory.L_SQUARE
            and next_token.category == TokenCategory.R_SQUARE
        ):
            current_table = token.text
            manifest.tables.setdefault(current_table, token.range)
            continue

        # String assignment such as key = "value"
        if not (
            token.category == TokenCategory.KEY_VAL_SEP
            and prev_token.category == TokenCategory.KEY
            and next_token.category == TokenCategory.STRING
        ):
            continue

        if current_table == "package":
            key = strip_quotes(prev_token.text)
            if key in PackageFields.KEYS:
                setattr(manifest.package, key, _package_field(prev_token, next_token))
            continue

        realm = Realm.from_section(current_table)
        if realm is not None:
            manifest.dependencies.for_realm(realm).append(_dependency(prev_token, next_token))

    logger.debug(
        "Parsed manifest with %d dependencies across %d tables",
        len(manifest.dependencies),
        len(manifest.tables),
    )
    return manifest


def load_manifest(text: str) -> Manifest | None:
    """Parse manifest text, returning None when it cannot be parsed."""
    parsed = parse_manifest(text)
    if isinstance(parsed, ParseFailure):
        logger.debug("Manifest could not be parsed: %s", parsed.reason)
        return None
    return parsed


def find_dependency_at(
    manifest: Manifest, position: Position
) -> tuple[Realm, DependencySpec] | None:
    """Find the dependency whose assignment contains ``position``."""
    for realm, dependency in manifest.dependencies.items():
        if dependency.field_range.contains(position):
            return realm, dependency
    return None
