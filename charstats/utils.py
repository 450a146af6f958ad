"""Utility functions for CharStats library."""

from __future__ import annotations

import re

from .types import StatValue, is_numeric

_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def stat_key(name: str) -> str:
    """Derive the storage key for a display name.

    Args:
        name: Display name or phrase ("Max Health")

    Returns:
        Lowercased key with whitespace runs replaced by ``_`` ("max_health")
    """
    return re.sub(r"\s+", "_", (name or "").strip().lower())


def capitalize_first(phrase: str) -> str:
    """Upper-case only the first character ("long tail" -> "Long tail")."""
    return phrase[:1].upper() + phrase[1:]


def parse_stat_value(text: str) -> StatValue:
    """Parse user input into a stat value.

    A leading number wins, so "6 ft" and "6ft" both give 6.0. Anything else is
    kept as the trimmed string.

    Args:
        text: Raw value typed by the user

    Returns:
        Float when the text starts with a number, the stripped text otherwise
    """
    text = str(text).strip()
    m = _LEADING_NUMBER_RE.match(text)
    if m:
        return float(m.group(1))
    return text


def format_unit(unit: str) -> str:
    """Store units with a single leading space, empty stays empty."""
    unit = (unit or "").strip()
    return f" {unit}" if unit else ""


def format_stat_value(value: StatValue, unit: str = "") -> str:
    """Render a value the way it appears in summaries and card text.

    Numbers always carry exactly two decimals; strings are used verbatim.
    """
    if is_numeric(value):
        return f"{value:.2f}{unit}"
    return f"{value}{unit}"
