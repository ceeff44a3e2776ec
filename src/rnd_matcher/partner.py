"""Partner Compatibility - organization-to-organization consortium fit.

Complementary matching: rather than rewarding similar organizations, the
TRL factor rewards pairings where a commercialization-ready company meets a
research institute with early-stage technology.

Scoring breakdown (0-100):
- Complementary TRL fit: 40
- Industry/technology alignment: 30
- Organization scale: 15
- R&D experience: 15
"""

import logging
from typing import Optional

from .config import PartnerConfig, get_config
from .schema import (
    CompatibilityBreakdown,
    CompatibilityResult,
    EmployeeCountRange,
    Organization,
    OrganizationStatus,
    OrganizationType,
    PartnerFactor,
    PartnerReason,
    RevenueRange,
)
from .taxonomy import (
    find_industry_sector,
    industry_relevance,
    normalize_keyword,
    terms_match,
)


logger = logging.getLogger(__name__)

TRL_FIT_MAX = 40
INDUSTRY_MAX = 30
SCALE_MAX = 15
EXPERIENCE_MAX = 15

EMPLOYEE_SCALE_ORDER = [
    EmployeeCountRange.UNDER_10,
    EmployeeCountRange.FROM_10_TO_50,
    EmployeeCountRange.FROM_50_TO_100,
    EmployeeCountRange.FROM_100_TO_300,
    EmployeeCountRange.OVER_300,
]

# NONE has no neighbours
REVENUE_SCALE_ORDER = [
    RevenueRange.UNDER_1B,
    RevenueRange.FROM_1B_TO_10B,
    RevenueRange.FROM_10B_TO_50B,
    RevenueRange.FROM_50B_TO_100B,
    RevenueRange.OVER_100B,
]

REASON_PHRASES = {
    PartnerReason.PERFECT_TRL_COMPLEMENT_COMMERCIALIZATION: '완벽한 TRL 상호보완 관계',
    PartnerReason.STRONG_TRL_COMPLEMENT_COMMERCIALIZATION: '우수한 TRL 상호보완 관계',
    PartnerReason.TRL_GAP_INNOVATION_OPPORTUNITY: '초기 기술 도입을 통한 혁신 기회',
    PartnerReason.PERFECT_TARGET_TRL_MATCH: '희망 TRL 수준과 정확히 일치',
    PartnerReason.STRONG_TARGET_TRL_MATCH: '희망 TRL 수준과 근접',
    PartnerReason.TRL_GAP_MODERATE: '적정한 TRL 격차',
    PartnerReason.TRL_SIMILAR: '유사한 기술 성숙도',
    PartnerReason.SAME_INDUSTRY: '동일 산업 분야',
    PartnerReason.SAME_INDUSTRY_SECTOR: '같은 산업군',
    PartnerReason.CROSS_INDUSTRY_RELEVANT: '연관 산업 분야',
    PartnerReason.CONSORTIUM_FIELD_MATCH: '희망 컨소시엄 분야 일치',
    PartnerReason.TECHNOLOGY_MATCH: '기술 역량 일치',
    PartnerReason.PERFECT_SCALE_MATCH: '희망 기업 규모 일치',
    PartnerReason.GOOD_SCALE_MATCH: '희망 기업 규모 근접',
    PartnerReason.PERFECT_REVENUE_MATCH: '희망 매출 규모 일치',
    PartnerReason.GOOD_REVENUE_MATCH: '희망 매출 규모 근접',
    PartnerReason.LARGE_RESEARCH_CAPACITY: '대규모 연구 인력 보유',
    PartnerReason.MODERATE_RESEARCH_CAPACITY: '중규모 연구 인력 보유',
    PartnerReason.SMALL_RESEARCH_CAPACITY: '소규모 연구 인력 보유',
    PartnerReason.SIMILAR_SIZE: '비슷한 조직 규모',
    PartnerReason.COMPATIBLE_SIZE: '호환 가능한 조직 규모',
    PartnerReason.CANDIDATE_HAS_RD_EXPERIENCE: '정부 R&D 수행 경험 보유',
    PartnerReason.EXTENSIVE_COLLABORATION_HISTORY: '풍부한 협력 경험',
    PartnerReason.MODERATE_COLLABORATION_HISTORY: '협력 경험 보유',
    PartnerReason.LIMITED_COLLABORATION_HISTORY: '일부 협력 경험 보유',
}

DEFAULT_EXPLANATION = '컨소시엄 파트너로서 적합한 조직입니다.'


def _is_adjacent(order: list, a, b) -> bool:
    if a not in order or b not in order:
        return False
    return abs(order.index(a) - order.index(b)) == 1


class PartnerCompatibilityEngine:
    """Scores how well a candidate organization complements a seeker.

    Principles:
    - TRL fit is a banding function over gap and type opposition, not a difference
    - Technology overlap is checked in both directions
    - Missing data earns a small default instead of zero
    - Explanations are template text, deterministic from the factors
    """

    def __init__(self, config: Optional[PartnerConfig] = None):
        self.config = config or get_config().partner

    def compatibility(self, seeker: Organization, candidate: Organization) -> CompatibilityResult:
        """Score ``candidate`` as a partner for ``seeker``."""
        factors = [
            self._score_trl_fit(seeker, candidate),
            self._score_industry(seeker, candidate),
            self._score_scale(seeker, candidate),
            self._score_experience(candidate),
        ]
        breakdown = CompatibilityBreakdown(
            trl_fit=factors[0].points,
            industry=factors[1].points,
            scale=factors[2].points,
            experience=factors[3].points,
        )

        # Stable sort keeps factor order on equal points
        ranked = sorted(factors, key=lambda f: -f.points)
        reasons = [f.reasons[0] for f in ranked if f.reasons][:self.config.max_reasons]

        return CompatibilityResult(
            partner_id=candidate.id,
            score=min(100, breakdown.total),
            breakdown=breakdown,
            factors=factors,
            reasons=reasons,
            explanation=self._build_explanation(ranked),
        )

    def generate_matches(
        self,
        seeker: Organization,
        candidates: list[Organization],
        limit: Optional[int] = None,
    ) -> list[CompatibilityResult]:
        """Score and rank candidate partners for a seeker.

        Skips the seeker itself, inactive organizations and incomplete profiles.
        """
        if limit is None:
            limit = self.config.default_limit
        if limit <= 0:
            return []

        results = []
        for candidate in candidates:
            if candidate.id == seeker.id:
                continue
            if candidate.status != OrganizationStatus.ACTIVE or not candidate.profile_completed:
                continue
            results.append(self.compatibility(seeker, candidate))

        results.sort(key=lambda r: -r.score)
        logger.info(
            "Scored %d partner candidate(s) for %s; returning %d",
            len(results), seeker.id, min(limit, len(results)),
        )
        return results[:limit]

    def _score_trl_fit(self, seeker: Organization, candidate: Organization) -> PartnerFactor:
        """Complementary TRL fit (0-40)."""
        reasons: list[PartnerReason] = []
        score = 0
        a_trl = seeker.technology_readiness_level
        b_trl = candidate.technology_readiness_level

        if a_trl is not None and b_trl is not None:
            gap = abs(a_trl - b_trl)
            if seeker.type != candidate.type:
                if seeker.type == OrganizationType.COMPANY:
                    company_trl, institute_trl = a_trl, b_trl
                else:
                    company_trl, institute_trl = b_trl, a_trl

                if company_trl >= 7 and institute_trl <= 4:
                    if 4 <= company_trl - institute_trl <= 6:
                        score = 40
                        reasons.append(PartnerReason.PERFECT_TRL_COMPLEMENT_COMMERCIALIZATION)
                    else:
                        score = 34
                        reasons.append(PartnerReason.STRONG_TRL_COMPLEMENT_COMMERCIALIZATION)
                elif 4 <= company_trl <= 6 and institute_trl <= 3:
                    score = 32
                    reasons.append(PartnerReason.TRL_GAP_INNOVATION_OPPORTUNITY)
                elif 3 <= gap <= 5:
                    score = 22
                    reasons.append(PartnerReason.TRL_GAP_MODERATE)
                elif gap <= 2:
                    score = 14
                    reasons.append(PartnerReason.TRL_SIMILAR)
                else:
                    score = 8
                    reasons.append(PartnerReason.TRL_GAP_WIDE)
            else:
                if gap <= 2:
                    score = 12
                    reasons.append(PartnerReason.TRL_SIMILAR)
                elif gap <= 5:
                    score = 15
                    reasons.append(PartnerReason.TRL_GAP_MODERATE)
                else:
                    score = 5
                    reasons.append(PartnerReason.TRL_GAP_WIDE)

        # Stated preference: the seeker's desired partner TRL against the
        # candidate's current or expected level
        wanted = seeker.target_partner_trl
        offered = [t for t in (b_trl, candidate.expected_trl_level) if t is not None]
        if wanted is not None and offered:
            diff = min(abs(wanted - t) for t in offered)
            if diff == 0 and score < 40:
                score = 40
                reasons.insert(0, PartnerReason.PERFECT_TARGET_TRL_MATCH)
            elif diff == 1 and score < 35:
                score = 35
                reasons.insert(0, PartnerReason.STRONG_TARGET_TRL_MATCH)

        if score == 0:
            score = 10
            reasons.append(PartnerReason.TRL_DATA_MISSING)

        return PartnerFactor(name="trl_fit", points=min(TRL_FIT_MAX, score), max_points=TRL_FIT_MAX, reasons=reasons)

    def _score_industry(self, seeker: Organization, candidate: Organization) -> PartnerFactor:
        """Industry and technology alignment (0-30)."""
        reasons: list[PartnerReason] = []
        score = 0

        if seeker.industry_sector and candidate.industry_sector:
            if normalize_keyword(seeker.industry_sector) == normalize_keyword(candidate.industry_sector):
                score += 15
                reasons.append(PartnerReason.SAME_INDUSTRY)
            else:
                sector_a = find_industry_sector(seeker.industry_sector)
                sector_b = find_industry_sector(candidate.industry_sector)
                if sector_a and sector_b:
                    if sector_a == sector_b:
                        score += 12
                        reasons.append(PartnerReason.SAME_INDUSTRY_SECTOR)
                    elif industry_relevance(sector_a, sector_b) >= 0.5:
                        score += 10
                        reasons.append(PartnerReason.CROSS_INDUSTRY_RELEVANT)

        if seeker.desired_consortium_fields:
            fields = [normalize_keyword(f) for f in seeker.desired_consortium_fields]
            targets = [normalize_keyword(t) for t in [candidate.industry_sector or ""] + candidate.research_focus_areas]
            field_matches = [f for f in fields if any(terms_match(f, t) for t in targets)]
            if field_matches:
                score += min(10, len(field_matches) * 5)
                reasons.append(PartnerReason.CONSORTIUM_FIELD_MATCH)

        tech_matches = (
            self._technology_overlap(seeker.desired_technologies, candidate.key_technologies)
            + self._technology_overlap(candidate.desired_technologies, seeker.key_technologies)
        )
        if tech_matches:
            score += min(15, tech_matches * 5)
            reasons.append(PartnerReason.TECHNOLOGY_MATCH)

        if not reasons:
            reasons.append(PartnerReason.INDUSTRY_UNRELATED)

        return PartnerFactor(name="industry", points=min(INDUSTRY_MAX, score), max_points=INDUSTRY_MAX, reasons=reasons)

    @staticmethod
    def _technology_overlap(desired: list[str], offered: list[str]) -> int:
        wanted = [normalize_keyword(t) for t in desired if t.strip()]
        available = [normalize_keyword(t) for t in offered if t.strip()]
        return sum(1 for w in wanted if any(terms_match(w, a) for a in available))

    def _score_scale(self, seeker: Organization, candidate: Organization) -> PartnerFactor:
        """Organization scale compatibility (0-15)."""
        reasons: list[PartnerReason] = []
        score = 0

        if seeker.target_org_scale and candidate.employee_count:
            if seeker.target_org_scale == candidate.employee_count:
                score += 8
                reasons.append(PartnerReason.PERFECT_SCALE_MATCH)
            elif _is_adjacent(EMPLOYEE_SCALE_ORDER, seeker.target_org_scale, candidate.employee_count):
                score += 5
                reasons.append(PartnerReason.GOOD_SCALE_MATCH)

        if seeker.target_org_revenue and candidate.revenue_range:
            if seeker.target_org_revenue == candidate.revenue_range:
                score += 7
                reasons.append(PartnerReason.PERFECT_REVENUE_MATCH)
            elif _is_adjacent(REVENUE_SCALE_ORDER, seeker.target_org_revenue, candidate.revenue_range):
                score += 4
                reasons.append(PartnerReason.GOOD_REVENUE_MATCH)

        if (seeker.type == OrganizationType.COMPANY
                and candidate.type == OrganizationType.RESEARCH_INSTITUTE
                and candidate.researcher_count):
            if candidate.researcher_count >= 50:
                score += 10
                reasons.append(PartnerReason.LARGE_RESEARCH_CAPACITY)
            elif candidate.researcher_count >= 20:
                score += 7
                reasons.append(PartnerReason.MODERATE_RESEARCH_CAPACITY)
            elif candidate.researcher_count >= 10:
                score += 5
                reasons.append(PartnerReason.SMALL_RESEARCH_CAPACITY)

        if score == 0 and seeker.employee_count and candidate.employee_count:
            if seeker.employee_count == candidate.employee_count:
                score = 8
                reasons.append(PartnerReason.SIMILAR_SIZE)
            elif _is_adjacent(EMPLOYEE_SCALE_ORDER, seeker.employee_count, candidate.employee_count):
                score = 5
                reasons.append(PartnerReason.COMPATIBLE_SIZE)

        if score == 0:
            score = 5
            reasons.append(PartnerReason.SCALE_DATA_LIMITED)

        return PartnerFactor(name="scale", points=min(SCALE_MAX, score), max_points=SCALE_MAX, reasons=reasons)

    def _score_experience(self, candidate: Organization) -> PartnerFactor:
        """Candidate R&D experience and collaboration history (0-15)."""
        reasons: list[PartnerReason] = []
        score = 0

        if candidate.rd_experience:
            score += 7
            reasons.append(PartnerReason.CANDIDATE_HAS_RD_EXPERIENCE)

        if candidate.collaboration_count >= 5:
            score += 8
            reasons.append(PartnerReason.EXTENSIVE_COLLABORATION_HISTORY)
        elif candidate.collaboration_count >= 3:
            score += 6
            reasons.append(PartnerReason.MODERATE_COLLABORATION_HISTORY)
        elif candidate.collaboration_count >= 1:
            score += 4
            reasons.append(PartnerReason.LIMITED_COLLABORATION_HISTORY)

        if score == 0:
            score = 5
            reasons.append(PartnerReason.EXPERIENCE_DATA_LIMITED)

        return PartnerFactor(
            name="experience", points=min(EXPERIENCE_MAX, score), max_points=EXPERIENCE_MAX, reasons=reasons
        )

    @staticmethod
    def _build_explanation(ranked_factors: list[PartnerFactor]) -> str:
        phrases = []
        for factor in ranked_factors:
            for reason in factor.reasons:
                phrase = REASON_PHRASES.get(reason)
                if phrase and phrase not in phrases:
                    phrases.append(phrase)
        if not phrases:
            return DEFAULT_EXPLANATION
        return ', '.join(phrases) + '.'


def compatibility(a: Organization, b: Organization) -> CompatibilityResult:
    """Score ``b`` as a partner for ``a`` with default settings."""
    return PartnerCompatibilityEngine().compatibility(a, b)


def generate_partner_matches(
    seeker: Organization,
    candidates: list[Organization],
    limit: Optional[int] = None,
) -> list[CompatibilityResult]:
    """Rank candidate partners for a seeker with default settings."""
    return PartnerCompatibilityEngine().generate_matches(seeker, candidates, limit)
