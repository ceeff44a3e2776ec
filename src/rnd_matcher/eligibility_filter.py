"""Eligibility Filter - hard and soft program requirements.

Checks an organization against a program's structured eligibility
requirements and classifies it into one of three tiers.
"""

from datetime import date, datetime
from typing import Optional

from .schema import (
    CertificationRequirement,
    EligibilityLevel,
    EligibilityResult,
    EmployeeCountRange,
    EmployeeRequirement,
    FundingProgram,
    InvestmentRequirement,
    OperatingYearsRequirement,
    Organization,
    PreferredCertificationRequirement,
    RegionRequirement,
    RevenueRange,
    RevenueRequirement,
)


# Representative values for bucketed profile fields
EMPLOYEE_MIDPOINTS = {
    EmployeeCountRange.UNDER_10: 5,
    EmployeeCountRange.FROM_10_TO_50: 30,
    EmployeeCountRange.FROM_50_TO_100: 75,
    EmployeeCountRange.FROM_100_TO_300: 200,
    EmployeeCountRange.OVER_300: 500,
}

REVENUE_MIDPOINTS = {
    RevenueRange.NONE: 0,
    RevenueRange.UNDER_1B: 500_000_000,
    RevenueRange.FROM_1B_TO_10B: 5_000_000_000,
    RevenueRange.FROM_10B_TO_50B: 30_000_000_000,
    RevenueRange.FROM_50B_TO_100B: 75_000_000_000,
    RevenueRange.OVER_100B: 150_000_000_000,
}


def format_krw(amount: int) -> str:
    """Format a KRW amount the way announcements do (억, 조)."""
    if amount >= 1_000_000_000_000:
        return f"{amount / 1_000_000_000_000:.1f}조"
    if amount >= 100_000_000:
        return f"{amount / 100_000_000:.1f}억"
    return f"{amount:,}"


def operating_years(established: Optional[date], as_of: datetime) -> Optional[int]:
    """Whole years between establishment and ``as_of``."""
    if established is None:
        return None
    today = as_of.date()
    years = today.year - established.year
    if (today.month, today.day) < (established.month, established.day):
        years -= 1
    return max(years, 0)


class EligibilityFilter:
    """Classifies organizations against program eligibility requirements.

    Tiers:
    - INELIGIBLE: any hard requirement fails (including missing profile data)
    - FULLY_ELIGIBLE: all hard requirements met and a preference signal present
    - CONDITIONALLY_ELIGIBLE: hard requirements met, no preference signal
    """

    def check(
        self,
        org: Organization,
        program: FundingProgram,
        as_of: datetime,
    ) -> EligibilityResult:
        """Check one organization against one program.

        Args:
            org: Organization profile
            program: Program with structured requirements
            as_of: Reference time for operating-years checks

        Returns:
            EligibilityResult with tier, met/failed descriptions and review flag
        """
        failed: list[str] = []
        met: list[str] = []
        review_reasons: list[str] = []
        soft_met = False

        for requirement in program.eligibility_criteria:
            if isinstance(requirement, CertificationRequirement):
                self._check_certifications(org, requirement, failed, met)
            elif isinstance(requirement, InvestmentRequirement):
                self._check_investment(org, requirement, failed, met, review_reasons)
            elif isinstance(requirement, EmployeeRequirement):
                self._check_employees(org, requirement, failed, met, review_reasons)
            elif isinstance(requirement, RevenueRequirement):
                self._check_revenue(org, requirement, failed, met, review_reasons)
            elif isinstance(requirement, OperatingYearsRequirement):
                self._check_operating_years(org, requirement, as_of, failed, met, review_reasons)
            elif isinstance(requirement, RegionRequirement):
                self._check_region(org, requirement, failed, met, review_reasons)
            elif isinstance(requirement, PreferredCertificationRequirement):
                held = [c for c in requirement.certifications if c in org.certifications]
                if held:
                    met.append(f"우대 인증 보유: {', '.join(held)}")
                    soft_met = True

        if org.prior_grant_wins > 0:
            met.append(f"정부지원 수혜 실적: {org.prior_grant_wins}건")
            soft_met = True

        if failed:
            level = EligibilityLevel.INELIGIBLE
        elif soft_met:
            level = EligibilityLevel.FULLY_ELIGIBLE
        else:
            level = EligibilityLevel.CONDITIONALLY_ELIGIBLE

        return EligibilityResult(
            level=level,
            failed=failed,
            met=met,
            needs_manual_review=bool(review_reasons),
            manual_review_reason=review_reasons[0] if review_reasons else None,
        )

    def _check_certifications(
        self,
        org: Organization,
        requirement: CertificationRequirement,
        failed: list[str],
        met: list[str],
    ) -> None:
        missing = [c for c in requirement.certifications if c not in org.certifications]
        if missing:
            failed.append(f"필수 인증 미보유: {', '.join(missing)}")
        elif requirement.certifications:
            met.append(f"필수 인증 보유: {', '.join(requirement.certifications)}")

    def _check_investment(
        self,
        org: Organization,
        requirement: InvestmentRequirement,
        failed: list[str],
        met: list[str],
        review_reasons: list[str],
    ) -> None:
        required = format_krw(requirement.min_amount)
        if org.verified_investment is None:
            failed.append(f"투자 유치 실적 미확인 (필요: ₩{required})")
            review_reasons.append("투자 유치 실적 정보 없음")
        elif org.verified_investment < requirement.min_amount:
            failed.append(
                f"투자 유치 금액 부족 (보유: ₩{format_krw(org.verified_investment)}, 필요: ₩{required})"
            )
        else:
            met.append(f"투자 유치 금액 충족 (필요: ₩{required})")

    def _check_employees(
        self,
        org: Organization,
        requirement: EmployeeRequirement,
        failed: list[str],
        met: list[str],
        review_reasons: list[str],
    ) -> None:
        if org.employee_count is None:
            failed.append("직원 수 정보 없음")
            review_reasons.append("직원 수 정보 미입력")
            return
        count = EMPLOYEE_MIDPOINTS[org.employee_count]
        ok = True
        if requirement.min_employees is not None and count < requirement.min_employees:
            failed.append(f"최소 직원 수 미충족 (보유: {count}명, 필요: {requirement.min_employees}명 이상)")
            ok = False
        if requirement.max_employees is not None and count > requirement.max_employees:
            failed.append(f"최대 직원 수 초과 (보유: {count}명, 필요: {requirement.max_employees}명 이하)")
            ok = False
        if ok:
            met.append(f"직원 수 충족 ({count}명)")

    def _check_revenue(
        self,
        org: Organization,
        requirement: RevenueRequirement,
        failed: list[str],
        met: list[str],
        review_reasons: list[str],
    ) -> None:
        if org.revenue_range is None:
            failed.append("매출액 정보 없음")
            review_reasons.append("매출액 정보 미입력")
            return
        revenue = REVENUE_MIDPOINTS[org.revenue_range]
        ok = True
        if requirement.min_revenue is not None and revenue < requirement.min_revenue:
            failed.append(
                f"최소 매출액 미충족 (보유: ₩{format_krw(revenue)}, 필요: ₩{format_krw(requirement.min_revenue)} 이상)"
            )
            ok = False
        if requirement.max_revenue is not None and revenue > requirement.max_revenue:
            failed.append(
                f"최대 매출액 초과 (보유: ₩{format_krw(revenue)}, 필요: ₩{format_krw(requirement.max_revenue)} 이하)"
            )
            ok = False
        if ok:
            met.append(f"매출액 충족 (₩{format_krw(revenue)})")

    def _check_operating_years(
        self,
        org: Organization,
        requirement: OperatingYearsRequirement,
        as_of: datetime,
        failed: list[str],
        met: list[str],
        review_reasons: list[str],
    ) -> None:
        years = operating_years(org.business_established, as_of)
        if years is None:
            failed.append("설립일 정보 없음")
            review_reasons.append("사업자 설립일 정보 미입력")
            return
        ok = True
        if requirement.min_years is not None and years < requirement.min_years:
            failed.append(f"최소 업력 미충족 (보유: {years}년, 필요: {requirement.min_years}년 이상)")
            ok = False
        if requirement.max_years is not None and years > requirement.max_years:
            failed.append(f"최대 업력 초과 (보유: {years}년, 필요: {requirement.max_years}년 이하)")
            ok = False
        if ok:
            met.append(f"업력 충족 ({years}년)")

    def _check_region(
        self,
        org: Organization,
        requirement: RegionRequirement,
        failed: list[str],
        met: list[str],
        review_reasons: list[str],
    ) -> None:
        if not requirement.regions:
            return
        if not org.region:
            failed.append("소재지 정보 없음")
            review_reasons.append("소재지 정보 미입력")
            return
        region = org.region.replace(" ", "")
        if any(r.replace(" ", "") in region or region in r.replace(" ", "") for r in requirement.regions):
            met.append(f"지역 요건 충족 ({org.region})")
        else:
            failed.append(f"지역 제한 (대상: {', '.join(requirement.regions)})")
