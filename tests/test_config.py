"""Tests for settings loading."""

import tempfile
from pathlib import Path

import pytest

from wally_lint import PUBLIC_REGISTRY_URL
from wally_lint.config import Settings, load_settings
from wally_lint.errors import ConfigError


def _write(tmpdir: str, content: str) -> Path:
    path = Path(tmpdir) / "settings.yaml"
    path.write_text(content)
    return path


def test_defaults_without_file(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.chdir(tmpdir)
        settings = load_settings(environ={})
    assert settings == Settings()
    assert settings.default_registry == PUBLIC_REGISTRY_URL
    assert settings.github_token is None


def test_default_file_in_working_directory(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / ".wally-lint.yaml").write_text("log_level: verbose\n")
        monkeypatch.chdir(tmpdir)
        settings = load_settings(environ={})
    assert settings.log_level == "verbose"


def test_file_values():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, (
            "github_token: abc\n"
            "http_timeout: 5\n"
            "notify_cooldown: 2.5\n"
            "diagnostics_enabled: false\n"
            "default_registry: https://github.com/me/index\n"
        ))
        settings = load_settings(path, environ={})
    assert settings.github_token == "abc"
    assert settings.http_timeout == 5.0
    assert settings.notify_cooldown == 2.5
    assert settings.diagnostics_enabled is False
    assert settings.default_registry == "https://github.com/me/index"


def test_environment_overrides_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "github_token: from-file\nlog_level: quiet\n")
        settings = load_settings(path, environ={
            "GITHUB_TOKEN": "from-github-env",
            "WALLY_LINT_LOG_LEVEL": "verbose",
            "WALLY_LINT_DIAGNOSTICS_ENABLED": "off",
        })
    assert settings.github_token == "from-github-env"
    assert settings.log_level == "verbose"
    assert settings.diagnostics_enabled is False


def test_prefixed_token_wins_over_github_token():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "")
        settings = load_settings(path, environ={"GITHUB_TOKEN": "a", "WALLY_LINT_GITHUB_TOKEN": "b"})
    assert settings.github_token == "b"


def test_empty_token_is_none():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "github_token: ''\n")
        assert load_settings(path, environ={}).github_token is None


@pytest.mark.parametrize("content, fragment", [
    ("log_level: loud\n", "Unknown log level"),
    ("http_timeout: soon\n", "must be a number"),
    ("diagnostics_enabled: maybe\n", "must be a boolean"),
    ("colour: blue\n", "Unknown setting"),
    ("- a\n- b\n", "mapping"),
    ("key: [unclosed\n", "Invalid YAML"),
])
def test_invalid_files(content, fragment):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, content)
        with pytest.raises(ConfigError, match=fragment):
            load_settings(path, environ={})


def test_explicit_missing_file():
    with pytest.raises(ConfigError, match="not found"):
        load_settings("/nonexistent/wally-lint.yaml", environ={})
