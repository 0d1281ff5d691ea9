"""Unit tests for safety tiers, anachronism blacklists and negative terms."""

import itertools

import pytest

from shotforge.common.models import ContentSafetyFlags, SafetyTier
from shotforge.compiler.guardrails import (
    DEFAULT_NEGATIVE_BASE,
    MODERN_TECH,
    build_anachronism_blacklist,
    derive_safety_tier,
    merge_negative_terms,
    split_terms,
)


class TestSafetyTier:
    """Tests for derive_safety_tier."""

    def test_missing_record_is_pg(self):
        assert derive_safety_tier(None) == SafetyTier.PG

    def test_no_flags_is_pg(self):
        assert derive_safety_tier(ContentSafetyFlags()) == SafetyTier.PG

    @pytest.mark.parametrize("flag", ["violence", "nudity", "language"])
    def test_single_flag_is_pg13(self, flag):
        flags = ContentSafetyFlags(**{flag: True})
        assert derive_safety_tier(flags) == SafetyTier.PG_13

    @pytest.mark.parametrize(
        "pair",
        [("violence", "nudity"), ("violence", "language"), ("nudity", "language")],
    )
    def test_two_flags_is_r(self, pair):
        flags = ContentSafetyFlags(**{name: True for name in pair})
        assert derive_safety_tier(flags) == SafetyTier.R

    def test_total_over_all_combinations(self):
        """Every flag combination maps to exactly one tier."""
        for values in itertools.product([False, True], repeat=3):
            flags = ContentSafetyFlags(violence=values[0], nudity=values[1], language=values[2])
            expected = [SafetyTier.PG, SafetyTier.PG_13, SafetyTier.R, SafetyTier.R][sum(values)]
            assert derive_safety_tier(flags) == expected


class TestAnachronismBlacklist:
    """Tests for build_anachronism_blacklist."""

    def test_no_period(self):
        assert build_anachronism_blacklist(None) == []
        assert build_anachronism_blacklist("") == []

    def test_victorian(self):
        terms = build_anachronism_blacklist("Victorian London")
        assert "smartphones" in terms
        assert "automobiles" in terms
        assert "electric lights" in terms

    def test_1940s(self):
        terms = build_anachronism_blacklist("1940s wartime")
        assert "personal computers" in terms
        assert "automobiles" not in terms

    def test_1980s_excludes_cars(self):
        terms = build_anachronism_blacklist("Miami, late 1980s")
        assert "smartphones" in terms
        assert "modern electric cars" not in terms

    def test_first_bucket_wins(self):
        """A period naming two eras uses the earliest matching bucket."""
        assert build_anachronism_blacklist("1800s to 1950s") == build_anachronism_blacklist(
            "1800s"
        )

    def test_contemporary_period(self):
        assert build_anachronism_blacklist("Present day Tokyo") == []

    def test_returns_copy(self):
        terms = build_anachronism_blacklist("1960s")
        terms.append("extra")
        assert "extra" not in MODERN_TECH


class TestNegativeTerms:
    """Tests for split_terms and merge_negative_terms."""

    def test_split_trims_and_drops_empty(self):
        assert split_terms(" a, b ,, c ") == ["a", "b", "c"]
        assert split_terms(None) == []

    def test_default_base(self):
        assert split_terms(DEFAULT_NEGATIVE_BASE)[0] == "morphed faces"

    def test_merge_is_case_insensitive_and_order_stable(self):
        merged = merge_negative_terms(["Watermark", "text"], ["watermark", "blur"], ["TEXT"])
        assert merged == ["Watermark", "text", "blur"]
