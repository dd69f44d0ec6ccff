"""Field extraction rules for portal detail and index pages.

Each ``extract_*`` function takes raw HTML and returns one typed value, raising
:class:`ExtractionError` when the page does not carry the field. Connectors wrap
them with :func:`optional_field` so a missing field becomes ``None``.
"""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache
from typing import Callable, Iterable, Pattern, TypeVar
from urllib.parse import urljoin

import structlog
from selectolax.parser import HTMLParser

from ..engine.dedup import canonical_url
from ..errors import ExtractionError
from .types import ListingCandidate

T = TypeVar("T")

UNKNOWN_TITLE = "物件名不明"
MAX_PRICE_YEN = 10_000_000_000

_PRICE_PATTERNS = (
    re.compile(r"(?:(\d[\d,]*)億)?\s*(\d[\d,]*)\s*万円"),
    re.compile(r"価格\s*:?\s*(?:(\d[\d,]*)億)?\s*(\d[\d,]*)\s*万"),
    re.compile(r"(\d[\d,]*)億円()"),
)
_BUILT_YEAR_PATTERNS = (
    re.compile(r"築\s*:?\s*(\d{4})年"),
    re.compile(r"築年月\s*:?\s*(\d{4})年"),
    re.compile(r"(\d{4})年[^\d]{0,10}築"),
    re.compile(r"建築年\s*[(]?築年数[)]?\s*:?\s*(\d{4})年"),
)
_ERA_YEAR = re.compile(r"築年月\s*:?\s*(昭和|平成|令和)\s*(\d{1,2}|元)年")
_ERA_OFFSETS = {"昭和": 1925, "平成": 1988, "令和": 2018}
_BUILDING_AREA = re.compile(r"建物面積\s*:?\s*(\d[\d,]*(?:\.\d+)?)\s*m")
_LAND_AREA = re.compile(r"土地面積\s*:?\s*(\d[\d,]*(?:\.\d+)?)\s*m")
_LAYOUT_LABELLED = re.compile(r"間取り?\s*:?\s*(\d+)\s*[SLDKR]+")
_LAYOUT = re.compile(r"(\d+)\s*[SLDK]+")
_TOTAL_UNITS = re.compile(r"総戸数\s*:?\s*(\d+)")
_ADDRESS = re.compile(r"北海道[^\s<>]+")
_STATION = re.compile(r"「?([^\s「」()/・]{1,15}?)」?駅[^\d\n]{0,8}?徒歩\s*約?\s*(\d+)\s*分")

logger = structlog.get_logger("estate_crawler.extract")


@lru_cache(maxsize=16)
def page_text(html: str) -> str:
    """Visible text of a page, width-folded so patterns see ASCII digits and colons."""

    tree = HTMLParser(html)
    tree.strip_tags(["script", "style", "noscript"])
    root = tree.body or tree.root
    text = root.text(separator=" ") if root is not None else ""
    return unicodedata.normalize("NFKC", text)


def _to_number(raw: str) -> float:
    return float(raw.replace(",", ""))


def optional_field(
    extractor: Callable[[str], T],
    html: str,
    *,
    url: str | None = None,
) -> T | None:
    """Run an extractor and turn a missing field into None."""

    try:
        return extractor(html)
    except ExtractionError as exc:
        logger.debug("field_missing", field=exc.field, url=url, reason=str(exc))
        return None


def extract_title(html: str) -> str:
    node = HTMLParser(html).css_first("h1")
    title = node.text(separator=" ", strip=True) if node is not None else ""
    if not title:
        raise ExtractionError("title")
    return " ".join(title.split())


def extract_price(html: str) -> int:
    """Asking price in yen from a ``…万円`` / ``…億…万円`` label."""

    text = page_text(html)
    for pattern in _PRICE_PATTERNS:
        for match in pattern.finditer(text):
            oku, man = match.group(1), match.group(2)
            price = 0
            if oku:
                price += int(_to_number(oku)) * 100_000_000
            if man:
                price += int(_to_number(man)) * 10_000
            if 0 < price < MAX_PRICE_YEN:
                return price
    raise ExtractionError("price")


def extract_built_year(html: str) -> int:
    text = page_text(html)
    for pattern in _BUILT_YEAR_PATTERNS:
        match = pattern.search(text)
        if match:
            year = int(match.group(1))
            if 1900 < year < 2100:
                return year
    match = _ERA_YEAR.search(text)
    if match:
        era, number = match.groups()
        return _ERA_OFFSETS[era] + (1 if number == "元" else int(number))
    raise ExtractionError("built_year")


def _labelled_area(pattern: Pattern[str], field: str, html: str) -> float:
    match = pattern.search(page_text(html))
    if not match:
        raise ExtractionError(field)
    return _to_number(match.group(1))


def extract_building_area(html: str) -> float:
    return _labelled_area(_BUILDING_AREA, "building_area", html)


def extract_land_area(html: str) -> float:
    return _labelled_area(_LAND_AREA, "land_area", html)


def extract_rooms(html: str) -> int:
    """Room count from a floor-plan code such as 4LDK."""

    text = page_text(html)
    match = _LAYOUT_LABELLED.search(text) or _LAYOUT.search(text)
    if not match:
        raise ExtractionError("rooms")
    return int(match.group(1))


def extract_units(html: str) -> int:
    match = _TOTAL_UNITS.search(page_text(html))
    if not match:
        raise ExtractionError("units")
    return int(match.group(1))


def extract_address(html: str) -> str:
    match = _ADDRESS.search(page_text(html))
    if not match:
        raise ExtractionError("address_raw")
    return match.group(0)


def extract_station(html: str) -> tuple[str, int]:
    """Nearest station name and walking minutes."""

    match = _STATION.search(page_text(html))
    if not match:
        raise ExtractionError("nearest_station")
    return match.group(1), int(match.group(2))


def detect_property_type(html: str) -> str:
    text = page_text(html)
    if "一棟" in text or "アパート" in text:
        return "アパート"
    if "戸建" in text or "一軒家" in text:
        return "一戸建て"
    if "マンション" in text:
        return "マンション"
    raise ExtractionError("property_type")


def extract_external_id(url: str, pattern: Pattern[str]) -> str:
    match = pattern.search(url)
    if not match:
        raise ExtractionError("external_id", f"No listing id in {url}")
    return match.group(1)


def collect_links(html: str, base_url: str, patterns: Iterable[Pattern[str]]) -> list[ListingCandidate]:
    """Absolute, canonical listing links whose path matches one of the patterns."""

    tree = HTMLParser(html)
    patterns = tuple(patterns)
    candidates: list[ListingCandidate] = []
    seen: set[str] = set()
    for node in tree.css("a[href]"):
        href = (node.attributes.get("href") or "").strip()
        if not href or href.startswith(("javascript:", "#")):
            continue
        url = canonical_url(urljoin(base_url, href))
        if url in seen or not any(pattern.search(url) for pattern in patterns):
            continue
        seen.add(url)
        label = node.text(separator=" ", strip=True) or None
        candidates.append(ListingCandidate(url=url, title=label))
    return candidates


__all__ = [
    "MAX_PRICE_YEN",
    "UNKNOWN_TITLE",
    "collect_links",
    "detect_property_type",
    "extract_address",
    "extract_building_area",
    "extract_built_year",
    "extract_external_id",
    "extract_land_area",
    "extract_price",
    "extract_rooms",
    "extract_station",
    "extract_title",
    "extract_units",
    "optional_field",
    "page_text",
]
