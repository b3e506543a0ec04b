"""Tests for dependency specifier matching."""

from wally_lint.manifest.matching import (
    match_dependency,
    scan_word,
)


def test_full_specifier():
    parts = match_dependency("sleitnick/knit@1.4.7")
    assert parts.author == "sleitnick"
    assert parts.name == "knit"
    assert parts.version_text == "1.4.7"
    assert parts.coerced_version == "1.4.7"
    assert parts.has_full_author
    assert parts.has_full_name


def test_range_version_is_coerced():
    parts = match_dependency("evaera/promise@^4.0")
    assert parts.version_text == "^4.0"
    assert parts.coerced_version == "4.0.0"


def test_author_only():
    parts = match_dependency("sleit")
    assert parts.author == "sleit"
    assert parts.name == ""
    assert not parts.has_full_author
    assert not parts.has_full_name


def test_author_with_separator():
    parts = match_dependency("sleitnick/")
    assert parts.author == "sleitnick"
    assert parts.has_full_author
    assert parts.name == ""
    assert not parts.has_full_name


def test_name_without_version_separator():
    parts = match_dependency("sleitnick/kn")
    assert parts.name == "kn"
    assert parts.has_full_author
    assert not parts.has_full_name
    assert parts.version_text == ""


def test_empty_version_after_separator():
    parts = match_dependency("sleitnick/knit@")
    assert parts.has_full_name
    assert parts.version_text == ""
    assert parts.coerced_version == ""


def test_words_allow_digits_and_hyphens():
    parts = match_dependency("my-org2/cool-pkg@0.1.0")
    assert parts.author == "my-org2"
    assert parts.name == "cool-pkg"


def test_specifier_must_start_with_a_letter():
    parts = match_dependency("1abc/knit@1.0.0")
    assert parts.author == ""
    assert not parts.has_full_author


def test_has_full_name_implies_has_full_author():
    for text in ["", "a", "a/", "a/b", "a/b@", "a/b@1", "/b@1", "a@1"]:
        parts = match_dependency(text)
        if parts.has_full_name:
            assert parts.has_full_author


def test_scan_word():
    assert scan_word("abc-1/x") == 5
    assert scan_word("abc", 3) == 3
    assert scan_word("-abc") == 0
