"""
Clinical tier system.

Tier labels as assigned by the phenotype matcher:
- Tier 1: P/LP with phenotype match (confirmed relevant)
- Tier 2: VUS with strong evidence
- IF: incidental finding, P/LP without phenotype match
- Tier 3: uncertain
- Tier 4: unlikely
"""

from enum import Enum


class ClinicalTier(str, Enum):
    TIER_1 = "Tier 1 - Actionable"
    TIER_2 = "Tier 2 - Potentially Actionable"
    TIER_IF = "IF - Incidental Finding"
    TIER_3 = "Tier 3 - Uncertain"
    TIER_4 = "Tier 4 - Unlikely"


TIER_IF_NUMBER = 5

# Short forms used by some service payloads
_SHORT_FORMS = {
    "TIER_1": 1, "T1": 1,
    "TIER_2": 2, "T2": 2,
    "TIER_3": 3, "T3": 3,
    "TIER_4": 4, "T4": 4,
    "TIER_IF": TIER_IF_NUMBER,
}


def tier_number(tier) -> int:
    """Parse a tier label into its number (IF is 5, unknown is 0)."""
    if tier is None:
        return 0
    if isinstance(tier, int):
        return tier
    text = str(tier.value if isinstance(tier, ClinicalTier) else tier).strip()
    if text.upper() in _SHORT_FORMS:
        return _SHORT_FORMS[text.upper()]
    for number in (1, 2, 3, 4):
        if text.startswith(f"Tier {number}"):
            return number
    if text.startswith("IF"):
        return TIER_IF_NUMBER
    return 0


def is_tier1(tier) -> bool:
    return tier_number(tier) == 1


def is_tier2(tier) -> bool:
    return tier_number(tier) == 2
