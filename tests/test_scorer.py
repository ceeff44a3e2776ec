"""Tests for the organization-to-program scoring engine."""

from datetime import datetime, timedelta, timezone

import pytest

from rnd_matcher.config import ScoringWeightsConfig
from rnd_matcher.schema import (
    FundingProgram,
    Organization,
    OrganizationType,
    TrlConfidence,
)
from rnd_matcher.scorer import ProgramScorer, days_until


AS_OF = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def _make_org(**overrides) -> Organization:
    data = {
        "id": "org-1",
        "name": "테스트 주식회사",
        "type": OrganizationType.COMPANY,
        "technology_readiness_level": 7,
        "industry_sector": "AI/SW",
        "key_technologies": ["인공지능"],
    }
    data.update(overrides)
    return Organization(**data)


def _make_program(**overrides) -> FundingProgram:
    data = {
        "id": "prog-1",
        "agency_id": "IITP",
        "title": "인공지능 핵심기술 개발사업",
        "min_trl": 5,
        "max_trl": 8,
        "target_type": [OrganizationType.COMPANY],
        "category": "AI/SW",
        "keywords": ["인공지능"],
        "trl_confidence": TrlConfidence.EXPLICIT,
        "deadline": AS_OF + timedelta(days=10),
    }
    data.update(overrides)
    return FundingProgram(**data)


@pytest.fixture
def scorer() -> ProgramScorer:
    return ProgramScorer()


class TestReferenceScenario:
    """The reference company/program pairing."""

    def test_explicit_trl_scores_high(self, scorer):
        result = scorer.score(_make_org(), _make_program(), AS_OF)
        b = result.breakdown
        assert b.keyword == 12
        assert b.industry == 20
        assert b.trl == 15
        assert b.organization_type == 15
        assert b.rd_experience == 0
        assert b.deadline == 12
        assert result.score == 74
        assert result.score >= 70

    def test_missing_confidence_only_lowers_trl(self, scorer):
        explicit = scorer.score(_make_org(), _make_program(), AS_OF)
        missing = scorer.score(_make_org(), _make_program(trl_confidence=TrlConfidence.MISSING), AS_OF)

        assert missing.score < explicit.score
        assert missing.breakdown.trl == 10
        assert missing.score == 69
        for field in ("keyword", "industry", "organization_type", "rd_experience", "deadline"):
            assert getattr(missing.breakdown, field) == getattr(explicit.breakdown, field)

    def test_confidence_levels_are_ordered(self, scorer):
        scores = [
            scorer.score(_make_org(), _make_program(trl_confidence=c), AS_OF).score
            for c in (TrlConfidence.EXPLICIT, TrlConfidence.INFERRED, TrlConfidence.MISSING)
        ]
        assert scores == sorted(scores, reverse=True)
        assert scores[1] == 71

    def test_scoring_is_deterministic(self, scorer):
        first = scorer.score(_make_org(), _make_program(), AS_OF)
        second = scorer.score(_make_org(), _make_program(), AS_OF)
        assert first == second


class TestScoreInvariants:
    """Score bounds and the breakdown sum."""

    @pytest.mark.parametrize("org_overrides,program_overrides", [
        ({}, {}),
        ({"technology_readiness_level": None, "industry_sector": None, "key_technologies": []}, {}),
        ({"rd_experience": True, "collaboration_count": 7}, {"deadline": None}),
        ({"type": OrganizationType.RESEARCH_INSTITUTE}, {"min_trl": 8, "max_trl": 5}),
        ({"key_technologies": ["인공지능", "딥러닝", "빅데이터", "클라우드", "보안"]},
         {"keywords": ["인공지능", "딥러닝", "빅데이터", "클라우드", "보안"]}),
    ])
    def test_score_equals_breakdown_total(self, scorer, org_overrides, program_overrides):
        result = scorer.score(_make_org(**org_overrides), _make_program(**program_overrides), AS_OF)
        assert 0 <= result.score <= 100
        assert result.score == result.breakdown.total

    def test_each_dimension_within_its_weight(self, scorer):
        weights = ScoringWeightsConfig()
        result = scorer.score(_make_org(rd_experience=True, collaboration_count=3), _make_program(), AS_OF)
        for dim in result.dimensions:
            assert 0 <= dim.points <= getattr(weights, dim.dimension)
            assert dim.max_points == getattr(weights, dim.dimension)


class TestKeywordScore:
    """Tests for technology keyword overlap."""

    @pytest.mark.parametrize("count,points", [(0, 0), (1, 12), (2, 18), (3, 22), (4, 25), (5, 25)])
    def test_graduated_steps(self, scorer, count, points):
        terms = ["인공지능", "딥러닝", "빅데이터", "클라우드", "블록체인"][:count]
        org = _make_org(key_technologies=terms, research_focus_areas=[])
        program = _make_program(title="핵심기술 개발사업", keywords=["인공지능", "딥러닝", "빅데이터", "클라우드", "블록체인"])
        assert scorer.score(org, program, AS_OF).breakdown.keyword == points

    def test_title_tokens_count(self, scorer):
        org = _make_org(key_technologies=["스마트팜"])
        program = _make_program(title="2025년 스마트팜 실증 지원", keywords=[])
        result = scorer.score(org, program, AS_OF)
        assert result.breakdown.keyword == 12
        assert "KEYWORD_MATCH" in result.reasons

    def test_same_sub_sector_counts_as_match(self, scorer):
        org = _make_org(key_technologies=["머신러닝"])
        program = _make_program(title="핵심기술 개발사업", keywords=["딥러닝"])
        assert scorer.score(org, program, AS_OF).breakdown.keyword == 12

    def test_short_latin_term_needs_whole_title_token(self, scorer):
        org = _make_org(key_technologies=["AI"], research_focus_areas=[])
        program = _make_program(title="Equipment maintenance training program", keywords=[])
        result = scorer.score(org, program, AS_OF)
        assert result.breakdown.keyword == 0
        assert "KEYWORD_MATCH" not in result.reasons

    def test_short_latin_term_matches_exact_title_token(self, scorer):
        org = _make_org(key_technologies=["AI"], research_focus_areas=[])
        program = _make_program(title="AI training program", keywords=[])
        assert scorer.score(org, program, AS_OF).breakdown.keyword == 12

    def test_program_keywords_keep_containment(self, scorer):
        org = _make_org(key_technologies=["AI"], research_focus_areas=[])
        program = _make_program(title="핵심기술 개발사업", keywords=["AI반도체"])
        assert scorer.score(org, program, AS_OF).breakdown.keyword == 12


class TestIndustryScore:
    """Tests for industry alignment tiers."""

    def test_sub_sector_match(self, scorer):
        result = scorer.score(_make_org(industry_sector="인공지능"), _make_program(category="딥러닝"), AS_OF)
        assert result.breakdown.industry == 17
        assert "INDUSTRY_SUBSECTOR_MATCH" in result.reasons

    def test_sector_match(self, scorer):
        result = scorer.score(_make_org(industry_sector="소프트웨어"), _make_program(category="빅데이터"), AS_OF)
        assert result.breakdown.industry == 14
        assert "INDUSTRY_SECTOR_MATCH" in result.reasons

    def test_related_sectors(self, scorer):
        result = scorer.score(_make_org(industry_sector="반도체"), _make_program(category="인공지능"), AS_OF)
        assert result.breakdown.industry == 8
        assert "INDUSTRY_CROSS_RELEVANT" in result.reasons

    def test_unrelated_sectors(self, scorer):
        result = scorer.score(_make_org(industry_sector="국방"), _make_program(category="의약"), AS_OF)
        assert result.breakdown.industry == 0
        assert "INDUSTRY_MISMATCH" in result.reasons

    def test_unknown_industry(self, scorer):
        assert scorer.score(_make_org(industry_sector=None), _make_program(), AS_OF).breakdown.industry == 0


class TestTrlScore:
    """Tests for TRL fit inside the scorer."""

    def test_uses_target_research_trl_first(self, scorer):
        org = _make_org(technology_readiness_level=9, target_research_trl=6)
        result = scorer.score(org, _make_program(), AS_OF)
        assert result.breakdown.trl == 15
        assert "TRL_COMPATIBLE" in result.reasons

    def test_malformed_range_does_not_raise(self, scorer):
        result = scorer.score(_make_org(), _make_program(min_trl=8, max_trl=5), AS_OF)
        assert result.breakdown.trl == 11
        assert "TRL_UNCONSTRAINED" in result.reasons

    def test_missing_range_with_missing_confidence(self, scorer):
        program = _make_program(min_trl=None, max_trl=None, trl_confidence=TrlConfidence.MISSING)
        assert scorer.score(_make_org(), program, AS_OF).breakdown.trl == 7


class TestOrganizationTypeScore:
    """Tests for the eligible-type check."""

    def test_type_mismatch(self, scorer):
        program = _make_program(target_type=[OrganizationType.RESEARCH_INSTITUTE])
        result = scorer.score(_make_org(), program, AS_OF)
        assert result.breakdown.organization_type == 0
        assert "TYPE_MISMATCH" in result.reasons

    def test_empty_target_type_is_unrestricted(self, scorer):
        result = scorer.score(_make_org(), _make_program(target_type=[]), AS_OF)
        assert result.breakdown.organization_type == 15

    def test_korean_type_labels_accepted(self, scorer):
        program = _make_program(target_type=["기업", "연구기관"])
        assert scorer.score(_make_org(), program, AS_OF).breakdown.organization_type == 15


class TestRdExperienceScore:
    """Tests for R&D track record points."""

    @pytest.mark.parametrize("experience,collaborations,points", [
        (False, 0, 0),
        (True, 0, 6),
        (False, 1, 2),
        (False, 2, 4),
        (True, 1, 8),
        (True, 5, 10),
    ])
    def test_steps(self, scorer, experience, collaborations, points):
        org = _make_org(rd_experience=experience, collaboration_count=collaborations)
        assert scorer.score(org, _make_program(), AS_OF).breakdown.rd_experience == points


class TestDeadlineScore:
    """Tests for deadline proximity bands."""

    @pytest.mark.parametrize("days,points", [(3, 15), (7, 15), (10, 12), (30, 12), (45, 8), (60, 8), (90, 5)])
    def test_bands(self, scorer, days, points):
        program = _make_program(deadline=AS_OF + timedelta(days=days))
        assert scorer.score(_make_org(), program, AS_OF).breakdown.deadline == points

    def test_no_deadline_is_neutral(self, scorer):
        result = scorer.score(_make_org(), _make_program(deadline=None), AS_OF)
        assert result.breakdown.deadline == 5
        assert "DEADLINE_OPEN" in result.reasons

    def test_past_deadline_scores_zero(self, scorer):
        result = scorer.score(_make_org(), _make_program(deadline=AS_OF - timedelta(days=1)), AS_OF)
        assert result.breakdown.deadline == 0
        assert "DEADLINE_PASSED" in result.reasons

    def test_days_until_rounds_partial_days_up(self):
        assert days_until(AS_OF + timedelta(hours=1), AS_OF) == 1
        assert days_until(AS_OF + timedelta(days=2), AS_OF) == 2
        assert days_until(AS_OF - timedelta(hours=1), AS_OF) == 0
