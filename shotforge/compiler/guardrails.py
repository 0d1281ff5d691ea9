"""Safety tier and negative-prompt guardrails.

Everything here is a lookup: the same inputs always give the same terms in
the same order.
"""

from __future__ import annotations

from collections.abc import Iterable

from shotforge.common.models import ContentSafetyFlags, SafetyTier

DEFAULT_NEGATIVE_BASE = "morphed faces, low quality, watermark, text, 3d render, plastic"

MODERN_TECH = [
    "smartphones",
    "flatscreen tvs",
    "led lighting",
    "modern electric cars",
    "wireless earbuds",
    "tablets",
    "drones",
    "selfie sticks",
]

# (period markers, excluded terms); first matching bucket wins
ERA_BUCKETS: list[tuple[tuple[str, ...], list[str]]] = [
    (
        ("1800", "18th", "victorian", "19th", "1900", "medieval", "ancient"),
        MODERN_TECH
        + ["automobiles", "electric lights", "telephones", "radios", "plastic", "nylon"],
    ),
    (
        ("1920", "1930", "1940", "1950"),
        MODERN_TECH + ["color television", "personal computers", "microwave ovens"],
    ),
    (
        ("1960", "1970"),
        MODERN_TECH + ["personal computers", "compact discs", "vcr"],
    ),
    (
        ("1980", "1990"),
        [
            "smartphones",
            "flatscreen tvs",
            "led lighting",
            "wireless earbuds",
            "drones",
            "selfie sticks",
        ],
    ),
]


def derive_safety_tier(flags: ContentSafetyFlags | None) -> SafetyTier:
    """Map the three content flags onto a tier.

    Two or more flags give R; a single flag of any kind gives PG-13; no flags
    (or no safety record at all) give PG.
    """
    if flags is None:
        return SafetyTier.PG

    raised = sum([flags.violence, flags.nudity, flags.language])
    if raised >= 2:
        return SafetyTier.R
    if flags.violence or flags.nudity:
        return SafetyTier.PG_13
    if flags.language:
        return SafetyTier.PG_13
    return SafetyTier.PG


def build_anachronism_blacklist(period: str | None) -> list[str]:
    """Terms that would be anachronistic for the given time period."""
    if not period:
        return []

    lower = period.lower()
    for markers, terms in ERA_BUCKETS:
        if any(marker in lower for marker in markers):
            return list(terms)
    return []


def split_terms(text: str | None) -> list[str]:
    """Split a comma separated prompt fragment into trimmed terms."""
    if not text:
        return []
    return [term.strip() for term in text.split(",") if term.strip()]


def merge_negative_terms(*groups: Iterable[str]) -> list[str]:
    """Union of term groups, first occurrence wins, case-insensitive."""
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for term in group:
            key = term.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(term.strip())
    return merged
