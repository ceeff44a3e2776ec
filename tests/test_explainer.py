"""Tests for rule-based and fallback match explanations."""

from rnd_matcher.config import ScoringWeightsConfig
from rnd_matcher.explainer import (
    RuleBasedExplainer,
    build_explanation_input,
    explain_match,
    fallback_explanation,
    score_summary,
)
from rnd_matcher.schema import (
    FundingProgram,
    Match,
    Organization,
    OrganizationType,
    ScoreBreakdown,
    TrlConfidence,
)


BREAKDOWN = ScoreBreakdown(keyword=12, industry=20, trl=15, organization_type=15, rd_experience=0, deadline=12)


class TestScoreSummary:
    """Summary line by score band and organization type."""

    def test_bands(self):
        assert "매우 적합한 후보" in score_summary(85)
        assert "지원 자격을 충족" in score_summary(74)
        assert "조건부로" in score_summary(45)
        assert "적합도가 낮습니다" in score_summary(10)

    def test_subject_by_type(self):
        assert score_summary(74, OrganizationType.COMPANY).startswith("귀사는")
        assert score_summary(74, OrganizationType.RESEARCH_INSTITUTE).startswith("귀 기관은")
        assert score_summary(74).startswith("귀 조직은")


class TestFallbackExplanation:
    """Deterministic text built from the breakdown alone."""

    def test_lists_every_dimension(self):
        text = fallback_explanation(74, BREAKDOWN, OrganizationType.COMPANY)
        assert text == (
            "귀사는 이 프로그램 지원 자격을 충족합니다. 세부 점수: "
            "키워드 12/25, 산업 20/20, 기술성숙도 15/15, 기관유형 15/15, R&D 0/10, 마감일 12/15 (총 74점)"
        )

    def test_uses_given_weights(self):
        weights = ScoringWeightsConfig(keyword=30, deadline=10)
        assert "키워드 12/30" in fallback_explanation(74, BREAKDOWN, weights=weights)


class TestExplainMatch:
    """Reason codes rendered as Korean text."""

    def test_positive_reasons_and_warnings_split(self):
        explanation = explain_match(74, ["KEYWORD_MATCH", "TRL_TOO_LOW", "DEADLINE_URGENT"])
        assert explanation.reasons == ["보유 기술 분야가 프로그램 키워드와 관련성이 높습니다."]
        assert len(explanation.warnings) == 2
        assert explanation.recommendations == ["이 프로그램 지원을 적극 검토해보세요."]

    def test_unknown_codes_ignored(self):
        explanation = explain_match(20, ["SOMETHING_ELSE"])
        assert explanation.reasons == ["이 프로그램에 지원 가능한 조직입니다."]
        assert explanation.warnings == []
        assert explanation.recommendations == []

    def test_program_data_warnings(self):
        program = FundingProgram(
            id="p", agency_id="a", title="t",
            min_trl=4, max_trl=6, trl_confidence=TrlConfidence.INFERRED,
        )
        explanation = explain_match(90, ["TRL_COMPATIBLE"], program=program)
        assert any("지원규모 미정" in w for w in explanation.warnings)
        assert any("추정값" in w for w in explanation.warnings)
        assert "빠른 지원" in explanation.recommendations[0]

    def test_to_text(self):
        text = explain_match(74, ["KEYWORD_MATCH", "TRL_TOO_LOW"]).to_text()
        lines = text.splitlines()
        assert lines[0] == "귀 조직은 이 프로그램 지원 자격을 충족합니다."
        assert lines[1].startswith("- ")
        assert lines[2].startswith("! ")
        assert lines[3].startswith("> ")


class TestRuleBasedExplainer:
    """The offline explainer."""

    def _match(self) -> Match:
        return Match(
            organization_id="org-1",
            program_id="prog-1",
            score=74,
            breakdown=BREAKDOWN,
            reasons=["KEYWORD_MATCH", "TYPE_MATCH"],
        )

    def test_generates_text_with_program_title(self):
        org = Organization(id="org-1", type="COMPANY", name="테스트")
        program = FundingProgram(id="prog-1", agency_id="a", title="인공지능 핵심기술 개발")
        explanation_input = build_explanation_input(self._match(), org, program)

        result = RuleBasedExplainer().generate(explanation_input)

        assert result.text.startswith("「인공지능 핵심기술 개발」\n귀사는")
        assert result.cost_units == 0.0
        assert result.latency_ms >= 0

    def test_input_without_entities(self):
        explanation_input = build_explanation_input(self._match())
        assert explanation_input.organization_type is None
        assert explanation_input.program_title == ""
        assert explanation_input.reasons == ["KEYWORD_MATCH", "TYPE_MATCH"]
