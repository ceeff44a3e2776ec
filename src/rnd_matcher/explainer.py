"""Explainer - natural-language explanations for program matches.

Defines the contract for the external (LLM) explainer that the cache gate
calls, plus the deterministic Korean text used when that explainer is
unavailable and a rule-based explainer built from match reason codes.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional

from .config import ScoringWeightsConfig, get_config
from .schema import (
    ExplainerResult,
    ExplanationInput,
    FundingProgram,
    Match,
    MatchExplanation,
    Organization,
    OrganizationType,
    ScoreBreakdown,
    TrlConfidence,
)


# Korean labels for the six sub-scores, in breakdown order
DIMENSION_LABELS = {
    'keyword': '키워드',
    'industry': '산업',
    'trl': '기술성숙도',
    'organization_type': '기관유형',
    'rd_experience': 'R&D',
    'deadline': '마감일',
}

REASON_TEXT = {
    'KEYWORD_MATCH': '보유 기술 분야가 프로그램 키워드와 관련성이 높습니다.',
    'INDUSTRY_EXACT_MATCH': '산업 분류가 프로그램 대상 분야와 정확히 일치합니다.',
    'INDUSTRY_SUBSECTOR_MATCH': '세부 산업 분야가 프로그램 목표와 부합합니다.',
    'INDUSTRY_SECTOR_MATCH': '산업 분야가 프로그램의 주요 대상 분야와 일치합니다.',
    'INDUSTRY_CROSS_RELEVANT': '다른 산업 분야이지만 본 프로그램과 연관성이 있습니다.',
    'INDUSTRY_MISMATCH': '산업 분야가 프로그램 대상 분야와 다릅니다.',
    'TRL_COMPATIBLE': '기술성숙도가 프로그램 요구 수준에 적합합니다.',
    'TRL_TOO_LOW': '기술성숙도가 요구 수준보다 낮습니다.',
    'TRL_TOO_HIGH': '기술성숙도가 상용화 단계에 가까워 다른 프로그램이 더 적합할 수 있습니다.',
    'TRL_UNCONSTRAINED': '프로그램에 기술성숙도 요구사항이 명시되지 않았습니다.',
    'TRL_UNKNOWN': '기술성숙도 정보가 없어 일부 점수만 반영되었습니다.',
    'TYPE_MATCH': '기관 유형이 프로그램 지원 대상에 포함됩니다.',
    'TYPE_MISMATCH': '기관 유형이 프로그램 지원 대상이 아닙니다.',
    'RD_EXPERIENCE': '정부 R&D 과제 수행 경험이 있어 가점을 받을 수 있습니다.',
    'COLLABORATION_HISTORY': '산학협력 이력이 있어 협력과제 선정 시 유리합니다.',
    'DEADLINE_URGENT': '마감일이 임박하여 신속한 지원이 필요합니다.',
    'DEADLINE_SOON': '마감일이 다가오고 있으니 지원 준비를 시작하세요.',
    'DEADLINE_OPEN': '마감일이 아직 공개되지 않았습니다.',
    'DEADLINE_PASSED': '신청 마감일이 지났습니다.',
}

WARNING_REASONS = {
    'INDUSTRY_MISMATCH',
    'TRL_TOO_LOW',
    'TRL_TOO_HIGH',
    'TRL_UNKNOWN',
    'TYPE_MISMATCH',
    'DEADLINE_URGENT',
    'DEADLINE_OPEN',
    'DEADLINE_PASSED',
}


class Explainer(ABC):
    """
    External explanation generator (typically an LLM call).

    Implementations raise RateLimitedError, BudgetExceededError or
    ExplainerTimeoutError (all ExplainerError) on failure. Only the
    cache gate should call ``generate``.
    """

    @abstractmethod
    def generate(self, explanation_input: ExplanationInput) -> ExplainerResult:
        """Produce explanation text for one match."""
        pass


def _subject(organization_type: Optional[OrganizationType]) -> str:
    if organization_type == OrganizationType.COMPANY:
        return '귀사는'
    if organization_type == OrganizationType.RESEARCH_INSTITUTE:
        return '귀 기관은'
    return '귀 조직은'


def score_summary(score: int, organization_type: Optional[OrganizationType] = None) -> str:
    """One-line Korean summary for a match score."""
    subject = _subject(organization_type)
    if score >= 80:
        return f'{subject} 이 프로그램에 매우 적합한 후보입니다.'
    if score >= 60:
        return f'{subject} 이 프로그램 지원 자격을 충족합니다.'
    if score >= 40:
        return f'{subject} 조건부로 이 프로그램에 지원할 수 있습니다.'
    return f'{subject} 이 프로그램에 지원 가능하나, 적합도가 낮습니다.'


def fallback_explanation(
    score: int,
    breakdown: ScoreBreakdown,
    organization_type: Optional[OrganizationType] = None,
    weights: Optional[ScoringWeightsConfig] = None,
) -> str:
    """Deterministic explanation built only from the score and its breakdown.

    Used whenever the external explainer fails, times out or is not allowed.
    The same inputs always produce the same text.
    """
    weights = weights or get_config().scoring_weights
    parts = [
        f"{label} {getattr(breakdown, field)}/{getattr(weights, field)}"
        for field, label in DIMENSION_LABELS.items()
    ]
    return f"{score_summary(score, organization_type)} 세부 점수: {', '.join(parts)} (총 {score}점)"


def build_explanation_input(
    match: Match,
    org: Optional[Organization] = None,
    program: Optional[FundingProgram] = None,
) -> ExplanationInput:
    """Assemble explainer input from a match and, when available, its entities."""
    return ExplanationInput(
        organization_id=match.organization_id,
        program_id=match.program_id,
        organization_name=org.name if org else "",
        organization_type=org.type if org else None,
        program_title=program.title if program else "",
        score=match.score,
        breakdown=match.breakdown,
        reasons=list(match.reasons),
        deadline=match.deadline,
    )


def explain_match(
    score: int,
    reasons: list[str],
    organization_type: Optional[OrganizationType] = None,
    program: Optional[FundingProgram] = None,
) -> MatchExplanation:
    """Convert reason codes into a structured Korean explanation.

    Args:
        score: Match score (0-100)
        reasons: Reason codes emitted by the scorer
        organization_type: Phrasing of the summary subject
        program: When given, adds warnings about missing announcement data

    Returns:
        MatchExplanation with summary, reasons, warnings and recommendations
    """
    positives = []
    warnings = []
    for reason in reasons:
        text = REASON_TEXT.get(reason)
        if text is None:
            continue
        if reason in WARNING_REASONS:
            warnings.append(text)
        else:
            positives.append(text)

    if program is not None:
        if program.budget_amount is None:
            warnings.append('지원규모 미정 - 예산이 아직 확정되지 않았습니다. 공고문에서 확인하세요.')
        if program.trl_confidence == TrlConfidence.INFERRED and (program.min_trl or program.max_trl):
            warnings.append('기술성숙도(TRL) 요구사항은 키워드 기반 추정값입니다. 공고문을 확인하세요.')

    recommendations = []
    if score >= 80:
        recommendations.append('이 프로그램은 귀하의 조직과 매우 적합합니다. 빠른 지원을 권장드립니다.')
    elif score >= 60:
        recommendations.append('이 프로그램 지원을 적극 검토해보세요.')
    elif score >= 40:
        recommendations.append('조건을 확인하신 후 지원을 고려해보세요.')

    return MatchExplanation(
        summary=score_summary(score, organization_type),
        reasons=positives or ['이 프로그램에 지원 가능한 조직입니다.'],
        warnings=warnings,
        recommendations=recommendations,
    )


class RuleBasedExplainer(Explainer):
    """Explainer that renders reason codes as Korean text without any external call.

    Useful offline, in the CLI and as a stand-in for the LLM in tests.
    """

    def generate(self, explanation_input: ExplanationInput) -> ExplainerResult:
        start = time.perf_counter()
        explanation = explain_match(
            explanation_input.score,
            explanation_input.reasons,
            explanation_input.organization_type,
        )
        text = explanation.to_text()
        if explanation_input.program_title:
            text = f"「{explanation_input.program_title}」\n{text}"
        return ExplainerResult(
            text=text,
            cost_units=0.0,
            latency_ms=(time.perf_counter() - start) * 1000,
        )
