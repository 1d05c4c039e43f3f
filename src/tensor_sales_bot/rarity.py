from __future__ import annotations

from enum import Enum

FALLBACK_POPULATION = 10_000


class RarityTier(str, Enum):
    MYTHIC = "Mythic"
    LEGENDARY = "Legendary"
    EPIC = "Epic"
    RARE = "Rare"
    UNCOMMON = "Uncommon"
    COMMON = "Common"


# Cumulative population-fraction ceilings, rarest first. Last ceiling is 1.0.
TIER_CEILINGS: tuple[tuple[RarityTier, float], ...] = (
    (RarityTier.MYTHIC, 0.01),
    (RarityTier.LEGENDARY, 0.05),
    (RarityTier.EPIC, 0.15),
    (RarityTier.RARE, 0.35),
    (RarityTier.UNCOMMON, 0.6),
    (RarityTier.COMMON, 1.0),
)

_GLYPHS = {
    RarityTier.MYTHIC: "🔴",
    RarityTier.LEGENDARY: "🟠",
    RarityTier.EPIC: "🟣",
    RarityTier.RARE: "🔵",
    RarityTier.UNCOMMON: "🟢",
    RarityTier.COMMON: "⚪️",
}


def classify(rank: int, population: int | None) -> RarityTier:
    """Map a rarity rank within a collection of ``population`` items to a tier.

    An unknown or non-positive population falls back to ``FALLBACK_POPULATION``.
    """
    if not population or population <= 0:
        population = FALLBACK_POPULATION

    fraction = rank / population
    for tier, ceiling in TIER_CEILINGS:
        if fraction <= ceiling:
            return tier
    return RarityTier.COMMON


def rarity_glyph(tier: RarityTier) -> str:
    return _GLYPHS.get(tier, _GLYPHS[RarityTier.COMMON])
