"""
Reputation tiers.

Tiers band the 0-1300 composite score. Thresholds are lower-bound
inclusive and checked from the top down, so exactly one tier matches
any score.
"""

from enum import Enum
from typing import Optional


class Tier(Enum):
    """Ordered reputation tiers, lowest first."""
    BRONZE = "bronze"        # 0 - 199
    SILVER = "silver"        # 200 - 399
    GOLD = "gold"            # 400 - 649
    PLATINUM = "platinum"    # 650 - 899
    DIAMOND = "diamond"      # 900+

    @classmethod
    def from_score(cls, score: float) -> "Tier":
        """Determine tier from a composite score."""
        if score >= 900:
            return cls.DIAMOND
        elif score >= 650:
            return cls.PLATINUM
        elif score >= 400:
            return cls.GOLD
        elif score >= 200:
            return cls.SILVER
        else:
            return cls.BRONZE

    @classmethod
    def parse(cls, name: Optional[str]) -> Optional["Tier"]:
        """
        Look up a tier by name, case-insensitively.

        Returns None for "all", empty or unknown names.
        """
        if not name:
            return None
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def order(self) -> int:
        """0 for Bronze up to 4 for Diamond."""
        return list(Tier).index(self)


# Lower bound of each tier on the composite score scale
TIER_THRESHOLDS = {
    Tier.BRONZE: 0,
    Tier.SILVER: 200,
    Tier.GOLD: 400,
    Tier.PLATINUM: 650,
    Tier.DIAMOND: 900,
}
