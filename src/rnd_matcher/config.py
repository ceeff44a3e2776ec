"""Centralized configuration management for the R&D matcher."""

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ConfigError


class ScoringWeightsConfig(BaseModel):
    """Maximum points per scoring dimension.

    These caps define the canonical weighting table. They must sum to
    exactly 100 so that a perfect match scores 100.
    """
    keyword: int = Field(
        25, ge=0,
        description="Max points for overlap between org technologies and program keywords/title"
    )
    industry: int = Field(
        20, ge=0,
        description="Max points for industry sector match (exact, taxonomy or related)"
    )
    trl: int = Field(
        15, ge=0,
        description="Max points for TRL fit before confidence weighting"
    )
    organization_type: int = Field(
        15, ge=0,
        description="Points when the organization type is eligible"
    )
    rd_experience: int = Field(
        10, ge=0,
        description="Max points for R&D experience and collaboration track record"
    )
    deadline: int = Field(
        15, ge=0,
        description="Max points for deadline proximity"
    )

    @model_validator(mode="after")
    def _check_total(self) -> "ScoringWeightsConfig":
        total = (
            self.keyword + self.industry + self.trl
            + self.organization_type + self.rd_experience + self.deadline
        )
        if total != 100:
            raise ValueError(f"Scoring weights must sum to 100, got {total}")
        return self


class TrlConfidenceConfig(BaseModel):
    """Multipliers applied to the TRL score by provenance of the TRL requirement."""
    explicit: float = Field(1.0, gt=0, le=1.0, description="TRL stated in the announcement")
    inferred: float = Field(0.85, gt=0, le=1.0, description="TRL inferred from keywords")
    missing: float = Field(0.7, gt=0, le=1.0, description="No TRL information")

    @model_validator(mode="after")
    def _check_monotone(self) -> "TrlConfidenceConfig":
        if not (self.explicit >= self.inferred >= self.missing):
            raise ValueError("TRL confidence multipliers must satisfy explicit >= inferred >= missing")
        return self


class DeadlineBand(BaseModel):
    """Points awarded when the deadline is at most ``max_days`` away."""
    max_days: int = Field(..., ge=0)
    points: int = Field(..., ge=0)


class DeadlineConfig(BaseModel):
    """Deadline proximity scoring.

    Bands are checked in ascending ``max_days`` order; points must not
    increase as the deadline moves further away.
    """
    bands: list[DeadlineBand] = Field(
        default_factory=lambda: [
            DeadlineBand(max_days=7, points=15),
            DeadlineBand(max_days=30, points=12),
            DeadlineBand(max_days=60, points=8),
        ],
        description="Ordered (max_days, points) bands"
    )
    distant_points: int = Field(5, ge=0, description="Points when the deadline is beyond every band")
    no_deadline_points: int = Field(5, ge=0, description="Neutral points for evergreen programs")

    @model_validator(mode="after")
    def _check_monotone(self) -> "DeadlineConfig":
        bands = sorted(self.bands, key=lambda b: b.max_days)
        points = [b.points for b in bands] + [self.distant_points]
        if any(later > earlier for earlier, later in zip(points, points[1:])):
            raise ValueError("Deadline band points must not increase with distance")
        self.bands = bands
        return self


class RankingConfig(BaseModel):
    """Match ranker behavior."""
    default_top_n: int = Field(10, ge=1, description="Matches returned when no top_n is given")
    max_workers: Optional[int] = Field(
        None, ge=1,
        description="Scoring worker threads (default: CPU count)"
    )
    minimum_score: int = Field(0, ge=0, le=100, description="Drop matches scoring below this")
    deduplicate: bool = Field(True, description="Collapse re-announcements of the same program")
    exclude_ineligible: bool = Field(True, description="Drop programs failing a hard eligibility requirement")


class PartnerConfig(BaseModel):
    """Partner matching behavior."""
    default_limit: int = Field(10, ge=1, description="Partner matches returned by default")
    max_reasons: int = Field(2, ge=1, le=2, description="Reason codes surfaced per match")


class ExplanationConfig(BaseModel):
    """Explanation cache gate settings."""
    prompt_version: str = Field("v1", description="Bump to invalidate cached explanations")
    cache_ttl_seconds: int = Field(24 * 60 * 60, ge=1, description="Cache entry lifetime")
    generation_timeout_seconds: float = Field(
        30.0, gt=0,
        description="How long a caller waits for the explainer before using the fallback"
    )
    max_concurrent_generations: int = Field(4, ge=1, description="Explainer worker threads")
    cache_backend: Literal["memory", "disk"] = Field("memory", description="Explanation store backend")
    cache_directory: Optional[str] = Field(
        None,
        description="Directory for the disk cache backend"
    )


class LoggingConfig(BaseModel):
    """Console logging settings."""
    level: str = Field("WARNING", description="DEBUG, INFO, WARNING, ERROR")
    dev_mode: bool = Field(False, description="Use rich console output")


class MatcherConfig(BaseModel):
    """Complete configuration for the R&D matcher."""
    scoring_weights: ScoringWeightsConfig = Field(default_factory=ScoringWeightsConfig)
    trl_confidence: TrlConfidenceConfig = Field(default_factory=TrlConfidenceConfig)
    deadline: DeadlineConfig = Field(default_factory=DeadlineConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    partner: PartnerConfig = Field(default_factory=PartnerConfig)
    explanation: ExplanationConfig = Field(default_factory=ExplanationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Global config instance
_config: Optional[MatcherConfig] = None


def get_config() -> MatcherConfig:
    """Get the current configuration.

    Returns the global config, initializing with defaults if not yet loaded.
    """
    global _config
    if _config is None:
        _config = MatcherConfig()
    return _config


def load_config(path: Path) -> MatcherConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The loaded MatcherConfig.

    Raises:
        ConfigError: If the file is not valid YAML or fails validation.
    """
    global _config

    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}", path=str(path)) from e

    try:
        _config = MatcherConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", path=str(path)) from e
    return _config


def reset_config() -> None:
    """Reset configuration to defaults."""
    global _config
    _config = MatcherConfig()


def find_config_file() -> Optional[Path]:
    """Find a matcher configuration file.

    Looks in (order of priority):
    1. RND_MATCHER_CONFIG environment variable
    2. ./matcher-config.yaml
    3. ./matcher-config.yml
    4. ~/.config/rnd-matcher/config.yaml
    """
    env_path = os.environ.get("RND_MATCHER_CONFIG")
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    for name in ["matcher-config.yaml", "matcher-config.yml"]:
        path = Path(name)
        if path.exists():
            return path

    user_config = Path.home() / ".config" / "rnd-matcher" / "config.yaml"
    if user_config.exists():
        return user_config

    return None


def save_default_config(path: Path) -> None:
    """Save the default configuration to a YAML file.

    Args:
        path: Path where to save the configuration.
    """
    data = MatcherConfig().model_dump()

    yaml_content = """# R&D Matcher Configuration
# =========================
#
# Scoring weights, TRL confidence multipliers, deadline bands,
# ranking behavior and explanation caching.
#
# Copy this file to one of these locations:
#   - ./matcher-config.yaml (current directory)
#   - ~/.config/rnd-matcher/config.yaml (user config)
#
# Or set the RND_MATCHER_CONFIG environment variable.

"""
    yaml_content += yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(yaml_content)
