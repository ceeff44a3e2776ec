"""Match Ranker - applies the scorer to a candidate set of programs.

Filters open programs, collapses duplicate announcements, drops ineligible
programs, scores the rest on a bounded worker pool and returns the top N
with deterministic tie-breaking.
"""

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional

from .config import RankingConfig, get_config
from .eligibility_filter import EligibilityFilter
from .exceptions import QuotaExceededError
from .repository import Repository
from .schema import (
    EligibilityLevel,
    FundingProgram,
    Match,
    Organization,
    ScoreResult,
)
from .scorer import ProgramScorer


logger = logging.getLogger(__name__)

# "2025년도 ", "[2025] ", "(2025) " style prefixes on re-announced programs
_YEAR_PREFIX = re.compile(r"^[\[(]?\s*(19|20)\d{2}\s*(년도|년)?\s*[\])]?\s*")
# "(2차)", "[재공고]", "（연장）" style suffixes
_BRACKETED = re.compile(r"[\[(（【][^\])）】]*[\])）】]")
_WHITESPACE = re.compile(r"\s+")

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def normalize_title(title: str) -> str:
    """Normalize a program title for duplicate detection."""
    normalized = _YEAR_PREFIX.sub("", title.strip())
    normalized = _BRACKETED.sub(" ", normalized)
    return _WHITESPACE.sub(" ", normalized).strip().lower()


def deduplicate_programs(programs: list[FundingProgram]) -> list[FundingProgram]:
    """Collapse re-announcements of the same program.

    Programs are grouped by agency and normalized title. Each group keeps the
    program with the soonest deadline (evergreen programs last, first seen on
    ties) at the position where the group first appeared.
    """
    groups: dict[tuple[str, str], FundingProgram] = {}
    for program in programs:
        key = (program.agency_id, normalize_title(program.title))
        kept = groups.get(key)
        if kept is None:
            groups[key] = program
        elif _deadline_key(program.deadline) < _deadline_key(kept.deadline):
            groups[key] = program

    if len(groups) < len(programs):
        logger.debug("Collapsed %d duplicate program(s)", len(programs) - len(groups))
    return list(groups.values())


def _deadline_key(deadline: Optional[datetime]) -> datetime:
    return deadline if deadline is not None else _FAR_FUTURE


def sort_matches(matches: list[Match]) -> list[Match]:
    """Sort by score descending, then soonest deadline; evergreen programs last.

    The sort is stable, so fully tied matches keep candidate order.
    """
    return sorted(matches, key=lambda m: (-m.score, _deadline_key(m.deadline)))


class MatchRanker:
    """Ranks funding programs for an organization.

    Scoring is pure and runs on a bounded thread pool sized to the CPU count
    (or ``ranking.max_workers``). The injected repository is only needed for
    ``rank_for_organization``.
    """

    def __init__(
        self,
        repository: Optional[Repository] = None,
        scorer: Optional[ProgramScorer] = None,
        eligibility_filter: Optional[EligibilityFilter] = None,
        config: Optional[RankingConfig] = None,
    ):
        self.repository = repository
        self.scorer = scorer or ProgramScorer()
        self.eligibility_filter = eligibility_filter or EligibilityFilter()
        self.config = config or get_config().ranking

    @property
    def max_workers(self) -> int:
        return self.config.max_workers or os.cpu_count() or 1

    def rank(
        self,
        org: Organization,
        candidates: list[FundingProgram],
        top_n: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> list[Match]:
        """Score, sort and truncate candidate programs.

        Args:
            org: Organization to match
            candidates: Candidate programs in caller order
            top_n: Maximum matches to return (default from config)
            as_of: Reference time (default: now, UTC)

        Returns:
            Up to ``top_n`` matches; empty when nothing qualifies
        """
        if top_n is None:
            top_n = self.config.default_top_n
        if as_of is None:
            as_of = datetime.now(timezone.utc)
        elif as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=timezone.utc)
        if top_n <= 0 or not candidates:
            return []

        open_programs = [p for p in candidates if p.is_open(as_of)]
        if self.config.deduplicate:
            open_programs = deduplicate_programs(open_programs)

        eligible: list[tuple[FundingProgram, EligibilityLevel]] = []
        for program in open_programs:
            eligibility = self.eligibility_filter.check(org, program, as_of)
            if eligibility.level == EligibilityLevel.INELIGIBLE and self.config.exclude_ineligible:
                logger.debug("Program %s ineligible for %s: %s", program.id, org.id, eligibility.failed)
                continue
            eligible.append((program, eligibility.level))

        if not eligible:
            return []

        results = self._score_all(org, [p for p, _ in eligible], as_of)

        matches = []
        for (program, level), result in zip(eligible, results):
            if result.score < self.config.minimum_score:
                continue
            matches.append(Match(
                organization_id=org.id,
                program_id=program.id,
                score=result.score,
                breakdown=result.breakdown,
                reasons=result.reasons,
                eligibility=level,
                deadline=program.deadline,
                created_at=as_of,
                updated_at=as_of,
            ))

        ranked = sort_matches(matches)[:top_n]
        logger.info(
            "Ranked %d of %d candidate program(s) for %s; returning %d",
            len(matches), len(candidates), org.id, len(ranked),
        )
        return ranked

    def rank_for_organization(
        self,
        organization_id: str,
        top_n: Optional[int] = None,
        as_of: Optional[datetime] = None,
        allowed: bool = True,
    ) -> list[Match]:
        """Rank all active programs for a stored organization and persist the matches.

        Args:
            organization_id: Organization to rank for
            top_n: Maximum matches to return
            as_of: Reference time (default: now, UTC)
            allowed: Pre-checked quota decision for this ranking run

        Returns:
            The persisted matches, best first

        Raises:
            QuotaExceededError: If ``allowed`` is False
            RepositoryError: Propagated unchanged from the repository
        """
        if not allowed:
            raise QuotaExceededError("ranking run", organization_id)
        if self.repository is None:
            raise ValueError("rank_for_organization requires a repository")
        if as_of is None:
            as_of = datetime.now(timezone.utc)

        org = self.repository.get_organization(organization_id)
        candidates = self.repository.list_active_programs(as_of)
        matches = self.rank(org, candidates, top_n=top_n, as_of=as_of)
        return self.repository.save_matches(matches)

    def _score_all(
        self,
        org: Organization,
        programs: list[FundingProgram],
        as_of: datetime,
    ) -> list[ScoreResult]:
        """Score programs in candidate order on the worker pool."""
        workers = min(self.max_workers, len(programs))
        if workers <= 1:
            return [self.scorer.score(org, p, as_of) for p in programs]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda p: self.scorer.score(org, p, as_of), programs))


def rank(
    org: Organization,
    candidates: list[FundingProgram],
    top_n: Optional[int] = None,
    as_of: Optional[datetime] = None,
) -> list[Match]:
    """Rank candidate programs for an organization with default settings."""
    return MatchRanker().rank(org, candidates, top_n=top_n, as_of=as_of)
