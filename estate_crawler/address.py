"""Japanese address canonicalisation and municipality extraction."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable

_HYPHEN_VARIANTS = re.compile(r"[‐‑‒–—―−－﹣]")
_SPACES = re.compile(r"\s+")
_CHOME = re.compile(r"(\d+)\s*丁目")
_BANCHI = re.compile(r"(\d+)\s*番地?")
_GOU = re.compile(r"(\d+)\s*号")
_REPEATED_HYPHENS = re.compile(r"-{2,}")

# The long-vowel mark doubles as a dash only between address numbers; keep it inside katakana words.
_KATAKANA_LONG_VOWEL = "ー"

_KNOWN_CITIES = (
    re.compile(r"(札幌市[^\s\d市町村区]{1,4}区)"),
    re.compile(r"(小樽市)"),
    re.compile(r"(余市町)"),
    re.compile(r"(ニセコ町)"),
    re.compile(r"(倶知安町)"),
)
_PREFECTURE = re.compile(r"^(?:北海道|東京都|京都府|大阪府|[^\s\d]{2,3}県)")
_COUNTY = re.compile(r"^[^\s\d市町村]{1,5}郡")
_GENERIC_CITY = re.compile(r"^([^\s\d]{1,6}?[市町村])")


def _fold_hyphens(text: str) -> str:
    chars = []
    for index, char in enumerate(text):
        if char == _KATAKANA_LONG_VOWEL:
            previous = text[index - 1] if index else ""
            chars.append("-" if previous.isdigit() else char)
        elif _HYPHEN_VARIANTS.match(char):
            chars.append("-")
        else:
            chars.append(char)
    return "".join(chars)


def _normalize_once(text: str) -> str:
    text = unicodedata.normalize("NFKC", text)
    text = _fold_hyphens(text)
    text = _SPACES.sub(" ", text).strip()
    text = _CHOME.sub(r"\1-", text)
    text = _BANCHI.sub(r"\1-", text)
    text = _GOU.sub(r"\1", text)
    text = _REPEATED_HYPHENS.sub("-", text)
    return text.rstrip("- ")


def normalize_address(address: str | None) -> str:
    """Canonicalise digit width, dashes and 丁目/番地/号 suffixes into one hyphenated form.

    ``normalize_address(normalize_address(x)) == normalize_address(x)`` holds for any
    input because the rules are reapplied until the text stops changing.
    """

    if not address:
        return ""
    current = address
    while True:
        # Each pass only shortens the text or swaps a variant character for its
        # canonical form, so a fixed point is always reached.
        result = _normalize_once(current)
        if result == current:
            return result
        current = result


def extract_city(address: str | None) -> str | None:
    """Return the municipality (city, town, village or Sapporo ward) of an address."""

    text = normalize_address(address)
    if not text:
        return None
    for pattern in _KNOWN_CITIES:
        match = pattern.search(text)
        if match:
            return match.group(1)
    remainder = _PREFECTURE.sub("", text).lstrip()
    remainder = _COUNTY.sub("", remainder).lstrip()
    match = _GENERIC_CITY.match(remainder)
    if match:
        return match.group(1)
    return None


def matches_area(normalized_address: str | None, areas: Iterable[str]) -> str | None:
    """Return the first target area contained in the address, or None."""

    if not normalized_address:
        return None
    for area in areas:
        needle = normalize_address(area)
        if needle and needle in normalized_address:
            return area
    return None


__all__ = ["extract_city", "matches_area", "normalize_address"]
