"""Manifest reading: tokenizer, parser and dependency specifier matching."""
