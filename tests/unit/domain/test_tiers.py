"""Tests for clinical tier parsing."""

import pytest

from clinicalanalysis.tiers import TIER_IF_NUMBER, ClinicalTier, is_tier1, is_tier2, tier_number


@pytest.mark.unit
@pytest.mark.parametrize(
    "label,expected",
    [
        ("Tier 1 - Actionable", 1),
        ("Tier 2 - Potentially Actionable", 2),
        ("IF - Incidental Finding", TIER_IF_NUMBER),
        ("Tier 3 - Uncertain", 3),
        ("Tier 4 - Unlikely", 4),
        ("Tier 1", 1),
        ("TIER_2", 2),
        ("t1", 1),
        ("TIER_IF", 5),
        (ClinicalTier.TIER_3, 3),
        (4, 4),
        ("Unclassified", 0),
        ("", 0),
        (None, 0),
    ],
)
def test_tier_number(label, expected):
    assert tier_number(label) == expected


@pytest.mark.unit
def test_tier_predicates():
    assert is_tier1(ClinicalTier.TIER_1)
    assert not is_tier1("Tier 2 - Potentially Actionable")
    assert is_tier2("T2")
    assert not is_tier2("IF - Incidental Finding")
