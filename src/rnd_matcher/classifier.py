"""Keyword-based industry classification for funding programs."""

from typing import Optional

from pydantic import BaseModel, Field

from .taxonomy import (
    INDUSTRY_TAXONOMY,
    find_industry_sector,
    normalize_keyword,
    terms_match,
    tokenize,
)


# Mapping from issuing ministry to the sectors its programs usually fund
MINISTRY_SECTOR_MAP: dict[str, list[str]] = {
    '보건복지부': ['BIO_HEALTH'],
    '식품의약품안전처': ['BIO_HEALTH'],
    '질병관리청': ['BIO_HEALTH'],
    '해양수산부': ['MARINE'],
    '해양경찰청': ['MARINE'],
    '농림축산식품부': ['AGRICULTURE'],
    '농촌진흥청': ['AGRICULTURE'],
    '산림청': ['AGRICULTURE'],
    '우주항공청': ['TRANSPORTATION'],
    '기후에너지환경부': ['ENVIRONMENT', 'ENERGY'],
    '환경부': ['ENVIRONMENT'],
    '기상청': ['ENVIRONMENT'],
    '원자력안전위원회': ['ENERGY'],
    '문화체육관광부': ['CULTURAL'],
    '국가유산청': ['CULTURAL'],
    '문화재청': ['CULTURAL'],
    '과학기술정보통신부': ['ICT', 'BIO_HEALTH'],
    '산업통상자원부': ['MANUFACTURING', 'ENERGY'],
    '산업통상부': ['MANUFACTURING', 'ENERGY'],
    '국토교통부': ['CONSTRUCTION', 'TRANSPORTATION'],
    '국방부': ['DEFENSE'],
    '방위사업청': ['DEFENSE'],
    '경찰청': ['ICT'],
    '개인정보보호위원회': ['ICT'],
    '행정안전부': ['ICT'],
    '소방청': ['CONSTRUCTION'],
    '교육부': ['OTHER'],
}

MINISTRY_POINTS = 10
KEYWORD_POINTS = 5
# Ministry signal plus three keyword hits means full confidence
FULL_CONFIDENCE_POINTS = 25
NO_SIGNAL_CONFIDENCE = 0.5


class ClassificationResult(BaseModel):
    """Industry classification of a funding program."""
    sector: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    matched_keywords: list[str] = Field(default_factory=list)
    ministry_based: bool = False


class ProgramClassifier:
    """Classifies programs into taxonomy sectors from ministry and text signals.

    Scoring:
    - Issuing ministry contributes a base score to each sector it funds
    - Every taxonomy keyword found in the title or keyword list adds to its sector
    - Highest total wins; ties keep taxonomy order
    """

    def classify(
        self,
        title: str,
        ministry: Optional[str] = None,
        keywords: Optional[list[str]] = None,
    ) -> ClassificationResult:
        """Classify a program.

        Args:
            title: Program title
            ministry: Issuing ministry (Korean name), if known
            keywords: Program keywords

        Returns:
            ClassificationResult with the winning sector and confidence
        """
        scores: dict[str, int] = {}
        matched: list[str] = []
        ministry_based = False

        if ministry:
            for sector in MINISTRY_SECTOR_MAP.get(ministry.strip(), []):
                scores[sector] = scores.get(sector, 0) + MINISTRY_POINTS
                ministry_based = True

        title_terms = tokenize(title)
        keyword_terms = [k for k in (normalize_keyword(k) for k in keywords or []) if k]

        for sector_key, sector in INDUSTRY_TAXONOMY.items():
            for keyword in self._sector_keywords(sector):
                normalized = normalize_keyword(keyword)
                if any(terms_match(term, normalized) for term in keyword_terms) or any(
                    terms_match(term, normalized, whole_token=True) for term in title_terms
                ):
                    matched.append(keyword)
                    scores[sector_key] = scores.get(sector_key, 0) + KEYWORD_POINTS

        if not scores:
            return ClassificationResult(sector='OTHER', confidence=NO_SIGNAL_CONFIDENCE)

        order = list(INDUSTRY_TAXONOMY)
        top_sector = max(scores, key=lambda s: (scores[s], -order.index(s)))
        confidence = min(scores[top_sector] / FULL_CONFIDENCE_POINTS, 1.0)

        return ClassificationResult(
            sector=top_sector,
            confidence=confidence,
            matched_keywords=matched,
            ministry_based=ministry_based,
        )

    def program_sector(
        self,
        category: Optional[str],
        title: str,
        ministry: Optional[str] = None,
        keywords: Optional[list[str]] = None,
    ) -> str:
        """Sector for a program: its category when recognizable, else classified text."""
        sector = find_industry_sector(category)
        if sector:
            return sector
        return self.classify(title, ministry, keywords).sector

    @staticmethod
    def _sector_keywords(sector: dict) -> list[str]:
        keywords = list(sector['keywords'])
        for sub_sector in sector['sub_sectors'].values():
            for keyword in sub_sector['keywords']:
                if keyword not in keywords:
                    keywords.append(keyword)
        return keywords


def classify_program(
    title: str,
    ministry: Optional[str] = None,
    keywords: Optional[list[str]] = None,
) -> ClassificationResult:
    """Classify a program using a default classifier."""
    return ProgramClassifier().classify(title, ministry, keywords)
