"""
R&D funding program matcher.

Ranks government R&D funding programs against an organization profile,
scores organization-to-organization partnership fit, and gates external
explanation generation behind a cache with per-key single flight.
"""

__version__ = "1.0.0"

from .cache_gate import ExplanationCacheGate, get_or_generate_explanation
from .config import MatcherConfig, get_config, load_config
from .exceptions import (
    ConfigError,
    ExplainerError,
    MatcherError,
    NotFoundError,
    QuotaExceededError,
    RepositoryError,
)
from .explainer import Explainer, fallback_explanation
from .partner import PartnerCompatibilityEngine, compatibility, generate_partner_matches
from .ranker import MatchRanker, rank
from .repository import InMemoryRepository, Repository
from .schema import (
    CompatibilityResult,
    ExplanationResult,
    FundingProgram,
    Match,
    Organization,
    OrganizationType,
    ScoreBreakdown,
    TrlConfidence,
)
from .scorer import ProgramScorer

__all__ = [
    "__version__",
    # Operations
    "rank",
    "compatibility",
    "generate_partner_matches",
    "get_or_generate_explanation",
    # Engines
    "ProgramScorer",
    "MatchRanker",
    "PartnerCompatibilityEngine",
    "ExplanationCacheGate",
    "Explainer",
    "fallback_explanation",
    # Collaborators
    "Repository",
    "InMemoryRepository",
    # Models
    "Organization",
    "OrganizationType",
    "FundingProgram",
    "TrlConfidence",
    "Match",
    "ScoreBreakdown",
    "CompatibilityResult",
    "ExplanationResult",
    # Configuration
    "MatcherConfig",
    "get_config",
    "load_config",
    # Errors
    "MatcherError",
    "ConfigError",
    "RepositoryError",
    "NotFoundError",
    "QuotaExceededError",
    "ExplainerError",
]
