"""Scorer - organization-to-program compatibility.

Scores one funding program against one organization profile.
Produces a 0-100 integer score made of six integer sub-scores.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from .classifier import ProgramClassifier
from .config import DeadlineConfig, ScoringWeightsConfig, get_config
from .exceptions import ScoringInvariantError
from .schema import (
    FundingProgram,
    Organization,
    ScoreBreakdown,
    ScoreResult,
    ScoringDimension,
)
from .taxonomy import (
    find_industry_sector,
    find_sub_sector,
    industry_relevance,
    normalize_keyword,
    terms_match,
    tokenize,
)
from .trl import raw_trl_score, weighted_trl_score


logger = logging.getLogger(__name__)

# Share of the keyword maximum earned by the 1st, 2nd, 3rd and 4th matched term
KEYWORD_MATCH_STEPS = (0.48, 0.24, 0.16, 0.12)

# Share of the industry maximum by kind of match
INDUSTRY_EXACT = 1.0
INDUSTRY_SAME_SUB_SECTOR = 0.85
INDUSTRY_SAME_SECTOR = 0.7
INDUSTRY_RELATED_FACTOR = 0.5
RELATED_SECTOR_THRESHOLD = 0.5

# Share of the R&D maximum
RD_EXPERIENCE_SHARE = 0.6
SINGLE_COLLABORATION_SHARE = 0.2
REPEAT_COLLABORATION_SHARE = 0.4


class ProgramScorer:
    """Scores funding programs against an organization profile.

    Scoring principles:
    - Every sub-score is an integer bounded by its configured maximum
    - The final score is exactly the sum of the sub-scores
    - TRL credit is discounted by the program's TRL confidence
    - No wall-clock access: deadline proximity uses the caller's ``as_of``
    """

    def __init__(
        self,
        weights: Optional[ScoringWeightsConfig] = None,
        deadline_config: Optional[DeadlineConfig] = None,
        classifier: Optional[ProgramClassifier] = None,
    ):
        """Initialize scorer with optional custom weights."""
        cfg = get_config()
        self.weights = weights or cfg.scoring_weights
        self.deadline_config = deadline_config or cfg.deadline
        self.classifier = classifier or ProgramClassifier()

    def score(
        self,
        org: Organization,
        program: FundingProgram,
        as_of: datetime,
    ) -> ScoreResult:
        """Score a single program for an organization.

        Args:
            org: Organization profile
            program: Funding program
            as_of: Reference time for deadline proximity

        Returns:
            ScoreResult with score, breakdown, per-dimension reasoning and reason codes

        Raises:
            ScoringInvariantError: If the breakdown does not sum to the score
        """
        reasons: list[str] = []
        dimensions = [
            self._score_keywords(org, program, reasons),
            self._score_industry(org, program, reasons),
            self._score_trl(org, program, reasons),
            self._score_organization_type(org, program, reasons),
            self._score_rd_experience(org, reasons),
            self._score_deadline(program, as_of, reasons),
        ]
        points = {d.dimension: d.points for d in dimensions}

        breakdown = ScoreBreakdown(**points)
        score = max(0, min(100, breakdown.total))
        if breakdown.total != score:
            raise ScoringInvariantError(score, breakdown.total)

        return ScoreResult(
            score=score,
            breakdown=breakdown,
            dimensions=dimensions,
            reasons=reasons,
        )

    def _score_keywords(
        self,
        org: Organization,
        program: FundingProgram,
        reasons: list[str],
    ) -> ScoringDimension:
        """Score overlap of org technologies with program keywords and title."""
        max_points = self.weights.keyword

        org_terms: list[str] = []
        for term in org.key_technologies + org.research_focus_areas:
            normalized = normalize_keyword(term)
            if normalized and normalized not in org_terms:
                org_terms.append(normalized)

        title_terms = tokenize(program.title)
        keyword_terms = [k for k in (normalize_keyword(k) for k in program.keywords) if k]

        program_sub_sectors = {s for s in (find_sub_sector(t, whole_token=True) for t in title_terms) if s}
        program_sub_sectors.update(s for s in (find_sub_sector(k) for k in keyword_terms) if s)

        matched = []
        for term in org_terms:
            if any(terms_match(term, k) for k in keyword_terms) or any(
                terms_match(term, t, whole_token=True) for t in title_terms
            ):
                matched.append(term)
                continue
            sub_sector = find_sub_sector(term)
            if sub_sector and sub_sector in program_sub_sectors:
                matched.append(term)

        share = sum(KEYWORD_MATCH_STEPS[:len(matched)])
        points = min(max_points, int(round(max_points * share)))

        if matched:
            reasons.append("KEYWORD_MATCH")
            reasoning = f"Matched {len(matched)} term(s): {', '.join(matched[:5])}"
        elif not org_terms:
            reasoning = "Organization lists no technologies or research areas"
        else:
            reasoning = "No technology overlap with program keywords"

        return ScoringDimension(
            dimension="keyword",
            max_points=max_points,
            points=points,
            reasoning=reasoning,
        )

    def _score_industry(
        self,
        org: Organization,
        program: FundingProgram,
        reasons: list[str],
    ) -> ScoringDimension:
        """Score industry alignment: exact, same sub-sector, same sector or related."""
        max_points = self.weights.industry

        def dimension(share: float, reasoning: str) -> ScoringDimension:
            return ScoringDimension(
                dimension="industry",
                max_points=max_points,
                points=min(max_points, int(round(max_points * share))),
                reasoning=reasoning,
            )

        if not org.industry_sector:
            return dimension(0.0, "Organization industry unknown")

        if program.category and normalize_keyword(org.industry_sector) == normalize_keyword(program.category):
            reasons.append("INDUSTRY_EXACT_MATCH")
            return dimension(INDUSTRY_EXACT, f"Industry {org.industry_sector} matches program category")

        org_sub = find_sub_sector(org.industry_sector)
        program_sub = find_sub_sector(program.category) if program.category else None
        if org_sub and org_sub == program_sub:
            reasons.append("INDUSTRY_SUBSECTOR_MATCH")
            return dimension(INDUSTRY_SAME_SUB_SECTOR, f"Same sub-sector {org_sub[0]}/{org_sub[1]}")

        org_sector = find_industry_sector(org.industry_sector)
        program_sector = self.classifier.program_sector(
            program.category, program.title, program.ministry, program.keywords
        )
        if org_sector is None:
            return dimension(0.0, f"Industry {org.industry_sector} not in taxonomy")

        if org_sector == program_sector:
            reasons.append("INDUSTRY_SECTOR_MATCH")
            return dimension(INDUSTRY_SAME_SECTOR, f"Same sector {org_sector}")

        relevance = industry_relevance(org_sector, program_sector)
        if relevance >= RELATED_SECTOR_THRESHOLD:
            reasons.append("INDUSTRY_CROSS_RELEVANT")
            return dimension(
                INDUSTRY_RELATED_FACTOR * relevance,
                f"Related sectors {org_sector}/{program_sector} (relevance {relevance:.1f})",
            )

        reasons.append("INDUSTRY_MISMATCH")
        return dimension(0.0, f"Unrelated sectors {org_sector}/{program_sector}")

    def _score_trl(
        self,
        org: Organization,
        program: FundingProgram,
        reasons: list[str],
    ) -> ScoringDimension:
        """Score TRL fit, discounted by the confidence of the TRL requirement."""
        max_points = self.weights.trl
        org_trl = org.relevant_trl
        raw, reason = raw_trl_score(org_trl, program.min_trl, program.max_trl, max_points, program.id)
        points = weighted_trl_score(raw, program.trl_confidence)
        reasons.append(reason)

        return ScoringDimension(
            dimension="trl",
            max_points=max_points,
            points=points,
            reasoning=(
                f"Org TRL {org_trl if org_trl is not None else '?'} vs "
                f"program {program.min_trl or '-'}-{program.max_trl or '-'} "
                f"({program.trl_confidence.value}): {raw} -> {points}"
            ),
        )

    def _score_organization_type(
        self,
        org: Organization,
        program: FundingProgram,
        reasons: list[str],
    ) -> ScoringDimension:
        """Pass/fail on eligible organization types. No restriction passes."""
        max_points = self.weights.organization_type
        if not program.target_type or org.type in program.target_type:
            reasons.append("TYPE_MATCH")
            points = max_points
            reasoning = f"{org.type.value} is eligible"
        else:
            reasons.append("TYPE_MISMATCH")
            points = 0
            reasoning = f"{org.type.value} not in {[t.value for t in program.target_type]}"

        return ScoringDimension(
            dimension="organization_type",
            max_points=max_points,
            points=points,
            reasoning=reasoning,
        )

    def _score_rd_experience(
        self,
        org: Organization,
        reasons: list[str],
    ) -> ScoringDimension:
        """Small-step score from R&D experience and collaboration history."""
        max_points = self.weights.rd_experience
        share = 0.0
        notes = []
        if org.rd_experience:
            share += RD_EXPERIENCE_SHARE
            reasons.append("RD_EXPERIENCE")
            notes.append("government R&D experience")
        if org.collaboration_count >= 2:
            share += REPEAT_COLLABORATION_SHARE
        elif org.collaboration_count == 1:
            share += SINGLE_COLLABORATION_SHARE
        if org.collaboration_count:
            reasons.append("COLLABORATION_HISTORY")
            notes.append(f"{org.collaboration_count} collaboration(s)")

        return ScoringDimension(
            dimension="rd_experience",
            max_points=max_points,
            points=min(max_points, int(round(max_points * share))),
            reasoning=", ".join(notes) if notes else "No R&D track record",
        )

    def _score_deadline(
        self,
        program: FundingProgram,
        as_of: datetime,
        reasons: list[str],
    ) -> ScoringDimension:
        """Higher for sooner (but future) deadlines; neutral for evergreen programs."""
        max_points = self.weights.deadline
        cfg = self.deadline_config

        if program.deadline is None:
            reasons.append("DEADLINE_OPEN")
            return ScoringDimension(
                dimension="deadline",
                max_points=max_points,
                points=min(max_points, cfg.no_deadline_points),
                reasoning="No deadline announced",
            )

        days = days_until(program.deadline, as_of)
        if days <= 0:
            reasons.append("DEADLINE_PASSED")
            return ScoringDimension(
                dimension="deadline",
                max_points=max_points,
                points=0,
                reasoning="Deadline has passed",
            )

        points = cfg.distant_points
        for band in cfg.bands:
            if days <= band.max_days:
                points = band.points
                break
        if days <= 7:
            reasons.append("DEADLINE_URGENT")
        elif days <= 30:
            reasons.append("DEADLINE_SOON")

        return ScoringDimension(
            dimension="deadline",
            max_points=max_points,
            points=min(max_points, points),
            reasoning=f"{days} day(s) until deadline",
        )


def days_until(deadline: datetime, as_of: datetime) -> int:
    """Whole days until ``deadline``, rounding partial days up."""
    if as_of.tzinfo is None and deadline.tzinfo is not None:
        as_of = as_of.replace(tzinfo=deadline.tzinfo)
    seconds = (deadline - as_of).total_seconds()
    return math.ceil(seconds / 86400)
