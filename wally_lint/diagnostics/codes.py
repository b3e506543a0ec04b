"""Finding codes, severities and message templates.

Codes are grouped by their first digit:

- ``W-1xx`` errors (something is wrong and will not resolve)
- ``W-2xx`` warnings (something is missing)
- ``W-3xx`` information (upgrades, misplaced dependencies)
- ``W-4xx`` hints
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from wally_lint.manifest.tokens import Range


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"


MESSAGE_TEMPLATES = {
    # Errors
    "W-101": "Invalid package author.\nDid you mean `<PACKAGE_AUTHOR>`?",
    "W-102": "Invalid package name.\nDid you mean `<PACKAGE_NAME>`?",
    "W-103": "Invalid package version.\nDid you mean `<VERSION_IDENTIFIER>`?",
    "W-104": "Invalid package realm.\nDid you mean `<REALM_NAME>`?",
    "W-105": "Invalid package registry.\nDid you mean `<REGISTRY_NAME>`?",
    # Warnings
    "W-201": "Missing package author.",
    "W-202": "Missing package name.",
    "W-203": "Missing package version.",
    "W-204": "Missing package realm.",
    "W-205": "Missing package registry.",
    # Information
    "W-301": "A newer package version is available.\nThe latest version is `<PACKAGE_VERSION>`.",
    "W-302": (
        "Package is a `<REALM_NAME>` dependency but was listed in `<REALM_CURRENT>`.\n"
        "Did you mean to list it under `<REALM_SECTION>`?"
    ),
}

UPGRADE_CODE = "W-301"

_SEVERITY_BY_CATEGORY = {
    "1": Severity.ERROR,
    "2": Severity.WARNING,
    "3": Severity.INFO,
    "4": Severity.HINT,
}


def severity_for(code: str) -> Severity:
    """Severity from the code's category digit. Unknown codes are errors."""
    category = code[2:3] if code.startswith("W-") else ""
    return _SEVERITY_BY_CATEGORY.get(category, Severity.ERROR)


@dataclass
class Finding:
    """A single diagnostic anchored to a range of the manifest."""

    code: str
    severity: Severity
    range: Range
    message: str
    substitutions: dict[str, str] = field(default_factory=dict)

    @property
    def headline(self) -> str:
        return self.message.split("\n", 1)[0]


def render_message(code: str, substitutions: dict[str, str] | None = None) -> str:
    """Fill a template's placeholders.

    When any substitution is missing or empty the full template cannot be
    trusted, so only its first line is used.
    """
    template = MESSAGE_TEMPLATES.get(code, code)
    if substitutions and all(substitutions.values()):
        message = template
        for placeholder, value in substitutions.items():
            message = message.replace(f"<{placeholder}>", value)
        return message
    return template.split("\n", 1)[0]


def make_finding(
    code: str,
    range: Range,
    substitutions: dict[str, str | None] | None = None,
) -> Finding:
    clean = {k: v or "" for k, v in (substitutions or {}).items()}
    return Finding(
        code=code,
        severity=severity_for(code),
        range=range,
        message=render_message(code, clean),
        substitutions=clean,
    )


@dataclass
class FindingSummary:
    errors: int = 0
    warnings: int = 0
    upgrades: int = 0
    total: int = 0

    def __add__(self, other: FindingSummary) -> FindingSummary:
        return FindingSummary(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
            upgrades=self.upgrades + other.upgrades,
            total=self.total + other.total,
        )

    def describe(self) -> str:
        e, w, u = self.errors, self.warnings, self.upgrades
        status = "PASS" if not e else "FAIL"
        return f"[{status}] {e} error(s), {w} warning(s), {u} upgrade(s)"


def summarize(findings: list[Finding]) -> FindingSummary:
    return FindingSummary(
        errors=sum(1 for f in findings if f.severity == Severity.ERROR),
        warnings=sum(1 for f in findings if f.severity == Severity.WARNING),
        upgrades=sum(1 for f in findings if f.code == UPGRADE_CODE),
        total=len(findings),
    )
