"""Pydantic models for organizations, funding programs and match results."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class OrganizationType(str, Enum):
    """Kind of organization applying for programs or seeking partners."""
    COMPANY = "COMPANY"
    RESEARCH_INSTITUTE = "RESEARCH_INSTITUTE"

    @classmethod
    def from_string(cls, value: str) -> "OrganizationType":
        """Parse organization type from string (accepts Korean labels)."""
        mapping = {
            "company": cls.COMPANY,
            "기업": cls.COMPANY,
            "researchinstitute": cls.RESEARCH_INSTITUTE,
            "institute": cls.RESEARCH_INSTITUTE,
            "연구기관": cls.RESEARCH_INSTITUTE,
            "연구소": cls.RESEARCH_INSTITUTE,
        }
        key = value.lower().replace("_", "").replace(" ", "")
        if key not in mapping:
            raise ValueError(f"Unknown organization type: {value}")
        return mapping[key]

    @property
    def label(self) -> str:
        return "기업" if self == OrganizationType.COMPANY else "연구기관"


class OrganizationStatus(str, Enum):
    """Lifecycle status of an organization profile."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ProgramStatus(str, Enum):
    """Lifecycle status of a funding program announcement."""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    ARCHIVED = "ARCHIVED"


class TrlConfidence(str, Enum):
    """How a program's TRL requirement was determined at ingestion."""
    EXPLICIT = "EXPLICIT"  # Stated in the announcement
    INFERRED = "INFERRED"  # Derived from keyword heuristics
    MISSING = "MISSING"


class EmployeeCountRange(str, Enum):
    """Employee headcount buckets, smallest first."""
    UNDER_10 = "UNDER_10"
    FROM_10_TO_50 = "FROM_10_TO_50"
    FROM_50_TO_100 = "FROM_50_TO_100"
    FROM_100_TO_300 = "FROM_100_TO_300"
    OVER_300 = "OVER_300"

    @classmethod
    def from_string(cls, value: str) -> "EmployeeCountRange":
        """Parse a bucket name, tolerating case and separators."""
        normalized = value.upper().replace("-", "_").replace(" ", "_")
        return cls(normalized)


class RevenueRange(str, Enum):
    """Annual revenue buckets in KRW, smallest first."""
    NONE = "NONE"
    UNDER_1B = "UNDER_1B"
    FROM_1B_TO_10B = "FROM_1B_TO_10B"
    FROM_10B_TO_50B = "FROM_10B_TO_50B"
    FROM_50B_TO_100B = "FROM_50B_TO_100B"
    OVER_100B = "OVER_100B"

    @classmethod
    def from_string(cls, value: str) -> "RevenueRange":
        """Parse a bucket name, tolerating case and separators."""
        normalized = value.upper().replace("-", "_").replace(" ", "_")
        return cls(normalized)


class EligibilityLevel(str, Enum):
    """Three-tier eligibility classification."""
    FULLY_ELIGIBLE = "FULLY_ELIGIBLE"  # Hard requirements plus a preference signal
    CONDITIONALLY_ELIGIBLE = "CONDITIONALLY_ELIGIBLE"  # Hard requirements only
    INELIGIBLE = "INELIGIBLE"  # Any hard requirement failed


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so comparisons never mix naive and aware."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Eligibility requirements
# =============================================================================

class CertificationRequirement(BaseModel):
    """All listed certifications must be held (e.g. INNO-BIZ, 벤처기업)."""
    kind: Literal["certification"] = "certification"
    certifications: list[str] = Field(default_factory=list)


class PreferredCertificationRequirement(BaseModel):
    """Certifications that earn preference but never disqualify."""
    kind: Literal["preferred_certification"] = "preferred_certification"
    certifications: list[str] = Field(default_factory=list)


class RevenueRequirement(BaseModel):
    """Revenue floor and/or ceiling in KRW."""
    kind: Literal["revenue_range"] = "revenue_range"
    min_revenue: Optional[int] = Field(None, ge=0)
    max_revenue: Optional[int] = Field(None, ge=0)


class EmployeeRequirement(BaseModel):
    """Headcount floor and/or ceiling."""
    kind: Literal["employee_range"] = "employee_range"
    min_employees: Optional[int] = Field(None, ge=0)
    max_employees: Optional[int] = Field(None, ge=0)


class OperatingYearsRequirement(BaseModel):
    """Years since business establishment."""
    kind: Literal["operating_years"] = "operating_years"
    min_years: Optional[int] = Field(None, ge=0)
    max_years: Optional[int] = Field(None, ge=0)


class RegionRequirement(BaseModel):
    """Program restricted to organizations located in one of these regions."""
    kind: Literal["region"] = "region"
    regions: list[str] = Field(default_factory=list)


class InvestmentRequirement(BaseModel):
    """Minimum verified investment received, in KRW."""
    kind: Literal["investment"] = "investment"
    min_amount: int = Field(..., ge=0)


EligibilityRequirement = Annotated[
    Union[
        CertificationRequirement,
        PreferredCertificationRequirement,
        RevenueRequirement,
        EmployeeRequirement,
        OperatingYearsRequirement,
        RegionRequirement,
        InvestmentRequirement,
    ],
    Field(discriminator="kind"),
]


class EligibilityResult(BaseModel):
    """Outcome of checking one organization against one program."""
    level: EligibilityLevel
    failed: list[str] = Field(default_factory=list)
    met: list[str] = Field(default_factory=list)
    needs_manual_review: bool = False
    manual_review_reason: Optional[str] = None


# =============================================================================
# Core entities
# =============================================================================

class Organization(BaseModel):
    """An organization profile as supplied by the repository."""
    id: str
    name: str = ""
    type: OrganizationType
    status: OrganizationStatus = OrganizationStatus.ACTIVE
    profile_completed: bool = True
    industry_sector: Optional[str] = None

    # "Current" capability vs. the level the org wants to research towards
    technology_readiness_level: Optional[int] = Field(None, ge=1, le=9)
    target_research_trl: Optional[int] = Field(None, ge=1, le=9)
    expected_trl_level: Optional[int] = Field(
        None, ge=1, le=9,
        description="TRL a research institute expects to reach with a partner"
    )

    employee_count: Optional[EmployeeCountRange] = None
    revenue_range: Optional[RevenueRange] = None
    key_technologies: list[str] = Field(default_factory=list)
    research_focus_areas: list[str] = Field(default_factory=list)
    desired_consortium_fields: list[str] = Field(default_factory=list)
    rd_experience: bool = False
    collaboration_count: int = Field(0, ge=0)
    researcher_count: Optional[int] = Field(None, ge=0)

    # Partner matching preferences
    desired_technologies: list[str] = Field(default_factory=list)
    target_partner_trl: Optional[int] = Field(None, ge=1, le=9)
    target_org_scale: Optional[EmployeeCountRange] = None
    target_org_revenue: Optional[RevenueRange] = None

    # Eligibility facts
    certifications: list[str] = Field(default_factory=list)
    region: Optional[str] = None
    business_established: Optional[date] = None
    verified_investment: Optional[int] = Field(None, ge=0)
    prior_grant_wins: int = Field(0, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value):
        if isinstance(value, str) and not isinstance(value, OrganizationType):
            return OrganizationType.from_string(value)
        return value

    @field_validator("employee_count", "target_org_scale", mode="before")
    @classmethod
    def _parse_employee_range(cls, value):
        if isinstance(value, str) and not isinstance(value, EmployeeCountRange):
            return EmployeeCountRange.from_string(value)
        return value

    @field_validator("revenue_range", "target_org_revenue", mode="before")
    @classmethod
    def _parse_revenue_range(cls, value):
        if isinstance(value, str) and not isinstance(value, RevenueRange):
            return RevenueRange.from_string(value)
        return value

    @property
    def relevant_trl(self) -> Optional[int]:
        """TRL used for program matching: the research target, else current level."""
        if self.target_research_trl is not None:
            return self.target_research_trl
        return self.technology_readiness_level


class FundingProgram(BaseModel):
    """A government R&D funding program announcement."""
    id: str
    agency_id: str
    title: str
    ministry: Optional[str] = None
    status: ProgramStatus = ProgramStatus.ACTIVE
    min_trl: Optional[int] = Field(None, ge=1, le=9)
    max_trl: Optional[int] = Field(None, ge=1, le=9)
    trl_confidence: TrlConfidence = Field(TrlConfidence.MISSING, frozen=True)
    target_type: list[OrganizationType] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    budget_amount: Optional[int] = Field(None, ge=0, description="Smallest currency unit (KRW)")
    deadline: Optional[datetime] = None
    eligibility_criteria: list[EligibilityRequirement] = Field(default_factory=list)
    eligibility_notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("deadline")
    @classmethod
    def _deadline_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @field_validator("target_type", mode="before")
    @classmethod
    def _parse_target_type(cls, value):
        if isinstance(value, (list, tuple)):
            return [
                OrganizationType.from_string(v) if isinstance(v, str) and not isinstance(v, OrganizationType) else v
                for v in value
            ]
        return value

    def is_open(self, as_of: datetime) -> bool:
        """Whether the program may be offered at ``as_of``."""
        if self.status != ProgramStatus.ACTIVE:
            return False
        return self.deadline is None or self.deadline > _as_utc(as_of)


# =============================================================================
# Scoring output
# =============================================================================

class ScoreBreakdown(BaseModel):
    """The six sub-scores of a program match. Each is an integer point value."""
    keyword: int = Field(0, ge=0)
    industry: int = Field(0, ge=0)
    trl: int = Field(0, ge=0)
    organization_type: int = Field(0, ge=0)
    rd_experience: int = Field(0, ge=0)
    deadline: int = Field(0, ge=0)

    @property
    def total(self) -> int:
        return (
            self.keyword + self.industry + self.trl
            + self.organization_type + self.rd_experience + self.deadline
        )


class ScoringDimension(BaseModel):
    """A single scored dimension with its reasoning."""
    dimension: str
    max_points: int
    points: int
    reasoning: str


class ScoreResult(BaseModel):
    """Result of scoring one organization against one program."""
    score: int = Field(..., ge=0, le=100)
    breakdown: ScoreBreakdown
    dimensions: list[ScoringDimension] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)


class Match(BaseModel):
    """A scored pairing of one organization and one funding program."""
    organization_id: str
    program_id: str
    score: int = Field(..., ge=0, le=100)
    breakdown: ScoreBreakdown
    reasons: list[str] = Field(default_factory=list)
    eligibility: Optional[EligibilityLevel] = None
    deadline: Optional[datetime] = None
    explanation: Optional[str] = None
    viewed: bool = False
    saved: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.organization_id, self.program_id)


# =============================================================================
# Partner compatibility
# =============================================================================

class PartnerReason(str, Enum):
    """Reason codes emitted by the partner compatibility factors."""
    # TRL complement
    PERFECT_TRL_COMPLEMENT_COMMERCIALIZATION = "PERFECT_TRL_COMPLEMENT_COMMERCIALIZATION"
    STRONG_TRL_COMPLEMENT_COMMERCIALIZATION = "STRONG_TRL_COMPLEMENT_COMMERCIALIZATION"
    TRL_GAP_INNOVATION_OPPORTUNITY = "TRL_GAP_INNOVATION_OPPORTUNITY"
    PERFECT_TARGET_TRL_MATCH = "PERFECT_TARGET_TRL_MATCH"
    STRONG_TARGET_TRL_MATCH = "STRONG_TARGET_TRL_MATCH"
    TRL_GAP_MODERATE = "TRL_GAP_MODERATE"
    TRL_SIMILAR = "TRL_SIMILAR"
    TRL_GAP_WIDE = "TRL_GAP_WIDE"
    TRL_DATA_MISSING = "TRL_DATA_MISSING"
    # Industry / technology
    SAME_INDUSTRY = "SAME_INDUSTRY"
    SAME_INDUSTRY_SECTOR = "SAME_INDUSTRY_SECTOR"
    CROSS_INDUSTRY_RELEVANT = "CROSS_INDUSTRY_RELEVANT"
    CONSORTIUM_FIELD_MATCH = "CONSORTIUM_FIELD_MATCH"
    TECHNOLOGY_MATCH = "TECHNOLOGY_MATCH"
    INDUSTRY_UNRELATED = "INDUSTRY_UNRELATED"
    # Scale
    PERFECT_SCALE_MATCH = "PERFECT_SCALE_MATCH"
    GOOD_SCALE_MATCH = "GOOD_SCALE_MATCH"
    PERFECT_REVENUE_MATCH = "PERFECT_REVENUE_MATCH"
    GOOD_REVENUE_MATCH = "GOOD_REVENUE_MATCH"
    LARGE_RESEARCH_CAPACITY = "LARGE_RESEARCH_CAPACITY"
    MODERATE_RESEARCH_CAPACITY = "MODERATE_RESEARCH_CAPACITY"
    SMALL_RESEARCH_CAPACITY = "SMALL_RESEARCH_CAPACITY"
    SIMILAR_SIZE = "SIMILAR_SIZE"
    COMPATIBLE_SIZE = "COMPATIBLE_SIZE"
    SCALE_DATA_LIMITED = "SCALE_DATA_LIMITED"
    # Experience
    CANDIDATE_HAS_RD_EXPERIENCE = "CANDIDATE_HAS_RD_EXPERIENCE"
    EXTENSIVE_COLLABORATION_HISTORY = "EXTENSIVE_COLLABORATION_HISTORY"
    MODERATE_COLLABORATION_HISTORY = "MODERATE_COLLABORATION_HISTORY"
    LIMITED_COLLABORATION_HISTORY = "LIMITED_COLLABORATION_HISTORY"
    EXPERIENCE_DATA_LIMITED = "EXPERIENCE_DATA_LIMITED"


class CompatibilityBreakdown(BaseModel):
    """Per-factor partner compatibility points."""
    trl_fit: int = Field(0, ge=0, le=40)
    industry: int = Field(0, ge=0, le=30)
    scale: int = Field(0, ge=0, le=15)
    experience: int = Field(0, ge=0, le=15)

    @property
    def total(self) -> int:
        return self.trl_fit + self.industry + self.scale + self.experience


class PartnerFactor(BaseModel):
    """One scored partner factor and the reason codes it produced."""
    name: str
    points: int
    max_points: int
    reasons: list[PartnerReason] = Field(default_factory=list)


class CompatibilityResult(BaseModel):
    """Organization-to-organization partnership fit."""
    partner_id: str
    score: int = Field(..., ge=0, le=100)
    breakdown: CompatibilityBreakdown
    factors: list[PartnerFactor] = Field(default_factory=list)
    reasons: list[PartnerReason] = Field(default_factory=list, max_length=2)
    explanation: str = ""


# =============================================================================
# Explanation generation
# =============================================================================

class ExplanationInput(BaseModel):
    """Everything the external explainer receives for one match."""
    organization_id: str
    program_id: str
    organization_name: str = ""
    organization_type: Optional[OrganizationType] = None
    program_title: str = ""
    score: int = Field(..., ge=0, le=100)
    breakdown: ScoreBreakdown
    reasons: list[str] = Field(default_factory=list)
    deadline: Optional[datetime] = None


class MatchExplanation(BaseModel):
    """Rule-based Korean explanation of a program match."""
    summary: str
    reasons: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    def to_text(self) -> str:
        """Render as plain text, one statement per line."""
        lines = [self.summary]
        lines.extend(f"- {r}" for r in self.reasons)
        lines.extend(f"! {w}" for w in self.warnings)
        lines.extend(f"> {r}" for r in self.recommendations)
        return "\n".join(lines)


class ExplainerResult(BaseModel):
    """What the external explainer returns on success."""
    text: str
    cost_units: float = 0.0
    latency_ms: float = 0.0


class ExplanationResult(BaseModel):
    """What the cache gate hands back to callers."""
    explanation: str
    cached: bool
    cost_units: float = 0.0
    latency_ms: float = 0.0
