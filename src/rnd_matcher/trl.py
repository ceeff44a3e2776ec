"""TRL (Technology Readiness Level) scoring and confidence weighting.

The raw TRL score compares the organization's relevant TRL with the
program's accepted range. It is then discounted by how the program's TRL
requirement was obtained: stated explicitly, inferred from keywords, or
missing altogether.
"""

import logging
from decimal import ROUND_FLOOR, Decimal
from typing import Optional

from .config import get_config
from .schema import TrlConfidence


logger = logging.getLogger(__name__)

MIN_TRL = 1
MAX_TRL = 9

# Fraction of the TRL maximum by distance outside the accepted range.
# Distance 4 or more earns nothing.
BELOW_RANGE_CREDIT = {1: 0.60, 2: 0.30, 3: 0.15}
ABOVE_RANGE_CREDIT = {1: 0.75, 2: 0.50, 3: 0.25}
IN_RANGE_CREDIT = 1.0
NO_REQUIREMENT_CREDIT = 0.75
UNKNOWN_ORG_TRL_CREDIT = 0.25

TRL_STAGES = {
    1: '기초연구', 2: '기초연구', 3: '기초연구',
    4: '실험실 검증', 5: '실험실 검증', 6: '시제품 제작',
    7: '시제품 제작', 8: '실증/상용화', 9: '실증/상용화',
}


def effective_range(
    min_trl: Optional[int],
    max_trl: Optional[int],
    program_id: str = "",
) -> Optional[tuple[int, int]]:
    """Resolve a program's accepted TRL range.

    One-sided ranges are completed with the TRL scale bounds. A malformed
    range (min above max) is treated as no constraint and logged.
    """
    if min_trl is None and max_trl is None:
        return None
    low = min_trl if min_trl is not None else MIN_TRL
    high = max_trl if max_trl is not None else MAX_TRL
    if low > high:
        logger.warning(
            "Program %s has malformed TRL range %s-%s; ignoring TRL constraint",
            program_id or "<unknown>", low, high,
        )
        return None
    return low, high


def trl_credit(org_trl: Optional[int], trl_range: Optional[tuple[int, int]]) -> tuple[float, str]:
    """Fraction of the TRL maximum earned, with a reason code.

    Returns:
        Tuple of (credit between 0 and 1, reason code)
    """
    if trl_range is None:
        return NO_REQUIREMENT_CREDIT, "TRL_UNCONSTRAINED"
    if org_trl is None:
        return UNKNOWN_ORG_TRL_CREDIT, "TRL_UNKNOWN"

    low, high = trl_range
    if low <= org_trl <= high:
        return IN_RANGE_CREDIT, "TRL_COMPATIBLE"
    if org_trl < low:
        return BELOW_RANGE_CREDIT.get(low - org_trl, 0.0), "TRL_TOO_LOW"
    return ABOVE_RANGE_CREDIT.get(org_trl - high, 0.0), "TRL_TOO_HIGH"


def raw_trl_score(
    org_trl: Optional[int],
    min_trl: Optional[int],
    max_trl: Optional[int],
    max_points: int,
    program_id: str = "",
) -> tuple[int, str]:
    """Unweighted TRL points on a 0..max_points scale, with a reason code."""
    credit, reason = trl_credit(org_trl, effective_range(min_trl, max_trl, program_id))
    return int(round(credit * max_points)), reason


def confidence_multiplier(confidence: TrlConfidence) -> float:
    """Configured multiplier for a TRL confidence level."""
    cfg = get_config().trl_confidence
    return {
        TrlConfidence.EXPLICIT: cfg.explicit,
        TrlConfidence.INFERRED: cfg.inferred,
        TrlConfidence.MISSING: cfg.missing,
    }[confidence]


def weighted_trl_score(raw_trl_score: int, confidence: TrlConfidence) -> int:
    """Discount a raw TRL score by the confidence of the program's TRL requirement.

    The product is floored in exact decimal arithmetic so that the result
    never exceeds ``raw_trl_score`` and is monotone across confidence levels.

    Raises:
        ValueError: If ``raw_trl_score`` is negative.
    """
    if raw_trl_score < 0:
        raise ValueError(f"Raw TRL score must be non-negative, got {raw_trl_score}")
    multiplier = Decimal(str(confidence_multiplier(confidence)))
    weighted = (Decimal(raw_trl_score) * multiplier).to_integral_value(rounding=ROUND_FLOOR)
    return min(int(weighted), raw_trl_score)


def trl_stage(level: Optional[int]) -> str:
    """Korean description of the development stage for a TRL."""
    if level is None:
        return '미상'
    return TRL_STAGES.get(level, '미상')
