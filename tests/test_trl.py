"""Tests for TRL scoring and confidence weighting."""

import logging

import pytest

from rnd_matcher.config import MatcherConfig, TrlConfidenceConfig
from rnd_matcher.schema import TrlConfidence
from rnd_matcher.trl import (
    confidence_multiplier,
    effective_range,
    raw_trl_score,
    trl_credit,
    trl_stage,
    weighted_trl_score,
)


class TestEffectiveRange:
    """Tests for resolving a program's accepted TRL range."""

    def test_no_bounds(self):
        assert effective_range(None, None) is None

    def test_one_sided_bounds_use_scale_limits(self):
        assert effective_range(4, None) == (4, 9)
        assert effective_range(None, 6) == (1, 6)

    def test_malformed_range_is_ignored_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="rnd_matcher.trl"):
            assert effective_range(8, 5, "prog-x") is None
        assert "prog-x" in caplog.text


class TestTrlCredit:
    """Tests for the graduated TRL credit table."""

    def test_in_range(self):
        assert trl_credit(7, (5, 8)) == (1.0, "TRL_COMPATIBLE")

    @pytest.mark.parametrize("org_trl,credit", [(4, 0.60), (3, 0.30), (2, 0.15), (1, 0.0)])
    def test_below_range(self, org_trl, credit):
        assert trl_credit(org_trl, (5, 8)) == (credit, "TRL_TOO_LOW")

    @pytest.mark.parametrize("org_trl,credit", [(5, 0.75), (6, 0.50), (7, 0.25), (8, 0.0)])
    def test_above_range(self, org_trl, credit):
        assert trl_credit(org_trl, (1, 4)) == (credit, "TRL_TOO_HIGH")

    def test_unconstrained_program(self):
        assert trl_credit(3, None) == (0.75, "TRL_UNCONSTRAINED")

    def test_unknown_org_trl(self):
        assert trl_credit(None, (5, 8)) == (0.25, "TRL_UNKNOWN")


class TestRawTrlScore:
    """Tests for unweighted TRL points."""

    def test_full_points_in_range(self):
        assert raw_trl_score(7, 5, 8, 15) == (15, "TRL_COMPATIBLE")

    def test_partial_points(self):
        assert raw_trl_score(4, 5, 8, 15)[0] == 9
        assert raw_trl_score(9, 5, 8, 15)[0] == 11
        assert raw_trl_score(None, 5, 8, 15)[0] == 4

    def test_malformed_range_scores_as_unconstrained(self):
        assert raw_trl_score(7, 8, 5, 15) == (11, "TRL_UNCONSTRAINED")


class TestWeightedTrlScore:
    """Tests for confidence weighting."""

    def test_default_multipliers(self):
        assert weighted_trl_score(15, TrlConfidence.EXPLICIT) == 15
        assert weighted_trl_score(15, TrlConfidence.INFERRED) == 12
        assert weighted_trl_score(15, TrlConfidence.MISSING) == 10

    def test_zero_stays_zero(self):
        for confidence in TrlConfidence:
            assert weighted_trl_score(0, confidence) == 0

    def test_never_exceeds_raw_and_is_monotone(self):
        for raw in range(0, 16):
            explicit = weighted_trl_score(raw, TrlConfidence.EXPLICIT)
            inferred = weighted_trl_score(raw, TrlConfidence.INFERRED)
            missing = weighted_trl_score(raw, TrlConfidence.MISSING)
            assert raw >= explicit >= inferred >= missing >= 0

    def test_negative_raw_score_rejected(self):
        with pytest.raises(ValueError):
            weighted_trl_score(-1, TrlConfidence.EXPLICIT)

    def test_multipliers_follow_config(self, monkeypatch):
        cfg = MatcherConfig(trl_confidence=TrlConfidenceConfig(explicit=1.0, inferred=0.5, missing=0.5))
        monkeypatch.setattr("rnd_matcher.config._config", cfg)
        assert confidence_multiplier(TrlConfidence.INFERRED) == 0.5
        assert weighted_trl_score(15, TrlConfidence.INFERRED) == 7


class TestTrlStage:
    """Tests for the Korean stage labels."""

    def test_stage_labels(self):
        assert trl_stage(2) == "기초연구"
        assert trl_stage(9) == "실증/상용화"
        assert trl_stage(None) == "미상"
