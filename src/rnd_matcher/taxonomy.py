"""Korean industry and technology taxonomy.

Hierarchical sector -> sub-sector keyword tables, a cross-industry relevance
matrix and the keyword helpers the scorers use to compare free text.
"""

import re
from typing import Optional


INDUSTRY_TAXONOMY: dict[str, dict] = {
    'ICT': {
        'name': 'ICT/정보통신',
        'keywords': ['ICT', '정보통신', 'IT', '정보기술'],
        'sub_sectors': {
            'AI': {
                'name': '인공지능',
                'keywords': ['AI', '인공지능', '머신러닝', '딥러닝', '기계학습', 'ML', 'DL', '자연어처리', 'NLP', '컴퓨터비전'],
            },
            'SOFTWARE': {
                'name': '소프트웨어',
                'keywords': ['소프트웨어', 'SW', '앱', '애플리케이션', '클라우드', '플랫폼', 'SaaS', 'PaaS'],
            },
            'DATA': {
                'name': '데이터/빅데이터',
                'keywords': ['데이터', '빅데이터', '데이터분석', '데이터사이언스', 'DB', '데이터베이스'],
            },
            'NETWORK': {
                'name': '네트워크/통신',
                'keywords': ['네트워크', '통신', '5G', '6G', '무선통신', '이동통신', '광통신'],
            },
            'SECURITY': {
                'name': '정보보안',
                'keywords': ['보안', '정보보안', '사이버보안', '암호', '인증', '블록체인'],
            },
            'IOT': {
                'name': 'IoT/스마트시티',
                'keywords': ['IoT', '사물인터넷', '스마트시티', '스마트홈', '센서', '엣지컴퓨팅'],
            },
            'QUANTUM': {
                'name': '양자기술',
                'keywords': ['양자', '양자기술', '양자컴퓨팅', '양자정보', 'QUANTUM'],
            },
        },
    },
    'MANUFACTURING': {
        'name': '제조업',
        'keywords': ['제조', '제조업', '생산', '공정', 'MANUFACTURING'],
        'sub_sectors': {
            'SMART_FACTORY': {
                'name': '스마트공장',
                'keywords': ['스마트공장', '스마트제조', '디지털제조', 'MES', 'ERP'],
            },
            'ROBOTICS': {
                'name': '로봇/자동화',
                'keywords': ['로봇', '로봇공학', '자동화', '협동로봇', '코봇', '산업로봇'],
            },
            'MATERIALS': {
                'name': '소재/부품',
                'keywords': ['소재', '신소재', '부품', '부품소재', '나노', '복합소재'],
            },
            'ELECTRONICS': {
                'name': '전자/반도체',
                'keywords': ['전자', '반도체', '디스플레이', '전자부품', 'PCB'],
            },
            'MACHINERY': {
                'name': '기계',
                'keywords': ['기계', '기계공학', '정밀기계', '공작기계', '설비'],
            },
        },
    },
    'BIO_HEALTH': {
        'name': '바이오/헬스',
        'keywords': ['바이오', '헬스', '의료', '생명공학', 'BIO', 'BIO_HEALTH', 'HEALTH'],
        'sub_sectors': {
            'MEDICAL_DEVICE': {
                'name': '의료기기',
                'keywords': ['의료기기', '의료장비', '진단기기', '치료기기', '헬스케어'],
            },
            'PHARMA': {
                'name': '의약/제약',
                'keywords': ['의약', '제약', '신약', '바이오의약', '의약품'],
            },
            'BIOTECH': {
                'name': '생명공학',
                'keywords': ['바이오기술', '유전공학', '세포치료', '줄기세포'],
            },
            'DIGITAL_HEALTH': {
                'name': '디지털헬스',
                'keywords': ['디지털헬스', '원격의료', '모바일헬스', 'mHealth'],
            },
        },
    },
    'ENERGY': {
        'name': '에너지',
        'keywords': ['에너지', '전력', '발전', 'ENERGY'],
        'sub_sectors': {
            'RENEWABLE': {
                'name': '신재생에너지',
                'keywords': ['신재생', '태양광', '풍력', '수소', '연료전지', 'ESS', '에너지저장'],
            },
            'ELECTRIC_VEHICLE': {
                'name': '전기차/배터리',
                'keywords': ['전기차', 'EV', '배터리', '이차전지', 'BMS'],
            },
            'SMART_GRID': {
                'name': '스마트그리드',
                'keywords': ['스마트그리드', '전력망', 'AMI', '마이크로그리드'],
            },
        },
    },
    'ENVIRONMENT': {
        'name': '환경',
        'keywords': ['환경', '친환경', '그린', 'ENVIRONMENT'],
        'sub_sectors': {
            'CARBON_NEUTRAL': {
                'name': '탄소중립',
                'keywords': ['탄소중립', '탄소저감', 'CCUS', '탄소포집', '저탄소'],
            },
            'WASTE': {
                'name': '폐기물/자원순환',
                'keywords': ['폐기물', '자원순환', '재활용', '업사이클', '순환경제'],
            },
            'WATER': {
                'name': '수처리/물환경',
                'keywords': ['수처리', '정수', '하수', '물환경', '수질'],
            },
        },
    },
    'AGRICULTURE': {
        'name': '농업/식품',
        'keywords': ['농업', '농림', '식품', 'AGRICULTURE'],
        'sub_sectors': {
            'SMART_FARM': {
                'name': '스마트팜',
                'keywords': ['스마트팜', '스마트농업', '식물공장', '정밀농업'],
            },
            'FOOD_TECH': {
                'name': '푸드테크',
                'keywords': ['푸드테크', '대체식품', '식품가공', '농식품'],
            },
        },
    },
    'MARINE': {
        'name': '해양수산',
        'keywords': ['해양', '수산', '해양수산', 'MARINE'],
        'sub_sectors': {
            'AQUACULTURE': {
                'name': '양식/수산',
                'keywords': ['양식', '스마트양식', '해양바이오'],
            },
            'MARITIME': {
                'name': '조선/해양플랜트',
                'keywords': ['조선', '선박', '해양플랜트', '해운', '항만'],
            },
            'MARINE_RESOURCE': {
                'name': '해양자원',
                'keywords': ['해양자원', '해양광물', '해양에너지', '해수담수화'],
            },
        },
    },
    'CONSTRUCTION': {
        'name': '건설',
        'keywords': ['건설', '건축', '토목', 'CONSTRUCTION'],
        'sub_sectors': {
            'SMART_CONSTRUCTION': {
                'name': '스마트건설',
                'keywords': ['스마트건설', 'BIM', '건설자동화', '모듈러'],
            },
            'INFRASTRUCTURE': {
                'name': '인프라/시설물',
                'keywords': ['인프라', '시설물', '도로', '교량', '터널'],
            },
        },
    },
    'TRANSPORTATION': {
        'name': '교통/운송',
        'keywords': ['교통', '운송', '모빌리티', 'TRANSPORTATION'],
        'sub_sectors': {
            'AUTONOMOUS': {
                'name': '자율주행',
                'keywords': ['자율주행', '자율차', 'ADAS', '커넥티드카'],
            },
            'MOBILITY': {
                'name': '모빌리티',
                'keywords': ['마이크로모빌리티', 'MaaS', '공유모빌리티'],
            },
            'AVIATION': {
                'name': '항공우주',
                'keywords': ['항공', '우주', '드론', 'UAM', '위성'],
            },
        },
    },
    'DEFENSE': {
        'name': '방위/국방',
        'keywords': ['방위', '국방', '방산', '군사', '안보', 'DEFENSE'],
        'sub_sectors': {
            'WEAPON_SYSTEM': {
                'name': '무기체계',
                'keywords': ['무기체계', '전투체계', '군수', '병기'],
            },
            'DEFENSE_TECH': {
                'name': '국방과학기술',
                'keywords': ['국방과학기술', '국방R&D', '방위산업기술', '국방기술'],
            },
            'MILITARY_ICT': {
                'name': '군사정보통신',
                'keywords': ['군사통신', '군용전자', '지휘통제', 'C4I', '전술통신'],
            },
        },
    },
    'CULTURAL': {
        'name': '문화/콘텐츠',
        'keywords': ['문화', '콘텐츠', '문화산업', '문화예술', 'CULTURAL', 'CONTENT', '문화기술', '미디어', '엔터테인먼트'],
        'sub_sectors': {
            'CONTENT': {
                'name': '콘텐츠',
                'keywords': ['게임', '방송', '영상', '웹툰', '애니메이션', 'OTT', '음악', 'K-POP', '드라마', '영화', '공연'],
            },
            'CULTURAL_HERITAGE': {
                'name': '문화재/문화유산',
                'keywords': ['문화재', '문화유산', '전통문화', '박물관', '전시'],
            },
            'TOURISM': {
                'name': '관광',
                'keywords': ['관광', '관광산업', '문화관광', '지역관광'],
            },
            'SPORTS': {
                'name': '체육/스포츠',
                'keywords': ['체육', '스포츠', 'e스포츠', '피트니스', '레저'],
            },
        },
    },
    'OTHER': {
        'name': '기타',
        'keywords': ['기타', '복합', '융합', 'OTHER'],
        'sub_sectors': {
            'GENERAL': {
                'name': '일반',
                'keywords': ['일반', '범용', '공통', '다분야'],
            },
        },
    },
}

SECTORS: tuple[str, ...] = tuple(INDUSTRY_TAXONOMY)

# Cross-industry relevance (0.0-1.0). Rows are symmetric except where noted.
INDUSTRY_RELEVANCE: dict[str, dict[str, float]] = {
    'ICT': {
        'ICT': 1.0, 'MANUFACTURING': 0.8, 'BIO_HEALTH': 0.7, 'ENERGY': 0.7,
        'ENVIRONMENT': 0.6, 'AGRICULTURE': 0.7, 'MARINE': 0.6, 'CONSTRUCTION': 0.6,
        'TRANSPORTATION': 0.8, 'DEFENSE': 0.2, 'CULTURAL': 0.8, 'OTHER': 0.5,
    },
    'MANUFACTURING': {
        'ICT': 0.8, 'MANUFACTURING': 1.0, 'BIO_HEALTH': 0.5, 'ENERGY': 0.6,
        'ENVIRONMENT': 0.5, 'AGRICULTURE': 0.5, 'MARINE': 0.6, 'CONSTRUCTION': 0.6,
        'TRANSPORTATION': 0.7, 'DEFENSE': 0.4, 'CULTURAL': 0.3, 'OTHER': 0.5,
    },
    'BIO_HEALTH': {
        'ICT': 0.7, 'MANUFACTURING': 0.5, 'BIO_HEALTH': 1.0, 'ENERGY': 0.3,
        'ENVIRONMENT': 0.5, 'AGRICULTURE': 0.6, 'MARINE': 0.5, 'CONSTRUCTION': 0.3,
        'TRANSPORTATION': 0.4, 'DEFENSE': 0.1, 'CULTURAL': 0.2, 'OTHER': 0.5,
    },
    'ENERGY': {
        'ICT': 0.7, 'MANUFACTURING': 0.6, 'BIO_HEALTH': 0.3, 'ENERGY': 1.0,
        'ENVIRONMENT': 0.8, 'AGRICULTURE': 0.4, 'MARINE': 0.5, 'CONSTRUCTION': 0.5,
        'TRANSPORTATION': 0.7, 'DEFENSE': 0.1, 'CULTURAL': 0.2, 'OTHER': 0.5,
    },
    'ENVIRONMENT': {
        'ICT': 0.6, 'MANUFACTURING': 0.5, 'BIO_HEALTH': 0.5, 'ENERGY': 0.8,
        'ENVIRONMENT': 1.0, 'AGRICULTURE': 0.6, 'MARINE': 0.6, 'CONSTRUCTION': 0.6,
        'TRANSPORTATION': 0.6, 'DEFENSE': 0.0, 'CULTURAL': 0.3, 'OTHER': 0.5,
    },
    'AGRICULTURE': {
        'ICT': 0.7, 'MANUFACTURING': 0.5, 'BIO_HEALTH': 0.6, 'ENERGY': 0.4,
        'ENVIRONMENT': 0.6, 'AGRICULTURE': 1.0, 'MARINE': 0.5, 'CONSTRUCTION': 0.3,
        'TRANSPORTATION': 0.3, 'DEFENSE': 0.0, 'CULTURAL': 0.2, 'OTHER': 0.5,
    },
    'MARINE': {
        'ICT': 0.6, 'MANUFACTURING': 0.6, 'BIO_HEALTH': 0.5, 'ENERGY': 0.5,
        'ENVIRONMENT': 0.6, 'AGRICULTURE': 0.5, 'MARINE': 1.0, 'CONSTRUCTION': 0.4,
        'TRANSPORTATION': 0.5, 'DEFENSE': 0.3, 'CULTURAL': 0.2, 'OTHER': 0.5,
    },
    'CONSTRUCTION': {
        'ICT': 0.6, 'MANUFACTURING': 0.6, 'BIO_HEALTH': 0.3, 'ENERGY': 0.5,
        'ENVIRONMENT': 0.6, 'AGRICULTURE': 0.3, 'MARINE': 0.4, 'CONSTRUCTION': 1.0,
        'TRANSPORTATION': 0.5, 'DEFENSE': 0.2, 'CULTURAL': 0.4, 'OTHER': 0.5,
    },
    'TRANSPORTATION': {
        'ICT': 0.8, 'MANUFACTURING': 0.7, 'BIO_HEALTH': 0.4, 'ENERGY': 0.7,
        'ENVIRONMENT': 0.6, 'AGRICULTURE': 0.3, 'MARINE': 0.5, 'CONSTRUCTION': 0.5,
        'TRANSPORTATION': 1.0, 'DEFENSE': 0.3, 'CULTURAL': 0.5, 'OTHER': 0.5,
    },
    'DEFENSE': {
        'ICT': 0.2, 'MANUFACTURING': 0.4, 'BIO_HEALTH': 0.1, 'ENERGY': 0.1,
        'ENVIRONMENT': 0.0, 'AGRICULTURE': 0.0, 'MARINE': 0.3, 'CONSTRUCTION': 0.2,
        'TRANSPORTATION': 0.3, 'DEFENSE': 1.0, 'CULTURAL': 0.1, 'OTHER': 0.5,
    },
    'CULTURAL': {
        # Only digital content overlaps with ICT
        'ICT': 0.3, 'MANUFACTURING': 0.2, 'BIO_HEALTH': 0.2, 'ENERGY': 0.2,
        'ENVIRONMENT': 0.3, 'AGRICULTURE': 0.2, 'MARINE': 0.2, 'CONSTRUCTION': 0.4,
        'TRANSPORTATION': 0.5, 'DEFENSE': 0.1, 'CULTURAL': 1.0, 'OTHER': 0.5,
    },
    'OTHER': {
        'ICT': 0.5, 'MANUFACTURING': 0.5, 'BIO_HEALTH': 0.5, 'ENERGY': 0.5,
        'ENVIRONMENT': 0.5, 'AGRICULTURE': 0.5, 'MARINE': 0.5, 'CONSTRUCTION': 0.5,
        'TRANSPORTATION': 0.5, 'DEFENSE': 0.5, 'CULTURAL': 0.5, 'OTHER': 1.0,
    },
}

DEFAULT_RELEVANCE = 0.3

# Title tokens shorter than this never count as keywords
MIN_TOKEN_LENGTH = 2

# Latin title tokens shorter than this only match whole
MIN_PARTIAL_MATCH_LENGTH = 3

_HANGUL = re.compile(r"[\uac00-\ud7a3]")

_TOKEN_SPLIT = re.compile(r"[\s,./·()\[\]{}<>\"'“”‘’「」『』:;!?~\-_|+]+")


def normalize_keyword(keyword: str) -> str:
    """Normalize a keyword for comparison: drop all whitespace and uppercase."""
    return re.sub(r"\s+", "", keyword).upper()


def _allows_partial(term: str) -> bool:
    return len(term) >= MIN_PARTIAL_MATCH_LENGTH or bool(_HANGUL.search(term))


def terms_match(a: str, b: str, whole_token: bool = False) -> bool:
    """Whether two normalized terms match by containment in either direction.

    With ``whole_token`` (used for title tokens) short Latin terms such as
    "AI" or "IT" must match exactly, so they do not hit "TRAINING" or "UNIT".
    """
    if not a or not b:
        return False
    if a == b:
        return True
    if whole_token and not (_allows_partial(a) and _allows_partial(b)):
        return False
    return a in b or b in a


def tokenize(text: str) -> list[str]:
    """Split free text (e.g. a program title) into normalized keyword tokens."""
    tokens = []
    for raw in _TOKEN_SPLIT.split(text or ""):
        token = normalize_keyword(raw)
        if len(token) >= MIN_TOKEN_LENGTH and token not in tokens:
            tokens.append(token)
    return tokens


def _keywords_match(normalized: str, keywords: list[str], whole_token: bool = False) -> bool:
    return any(terms_match(normalized, normalize_keyword(k), whole_token) for k in keywords)


def find_industry_sector(keyword: Optional[str]) -> Optional[str]:
    """Find the taxonomy sector for a keyword or free-text sector name.

    Tries an exact sector key first so English enum values always resolve,
    then sector keywords, then sub-sector keywords.
    """
    if not keyword:
        return None
    normalized = normalize_keyword(keyword)
    if not normalized:
        return None

    for sector_key in SECTORS:
        if normalize_keyword(sector_key) == normalized:
            return sector_key

    for sector_key, sector in INDUSTRY_TAXONOMY.items():
        if _keywords_match(normalized, sector['keywords']):
            return sector_key
        for sub_sector in sector['sub_sectors'].values():
            if _keywords_match(normalized, sub_sector['keywords']):
                return sector_key

    return None


def find_sub_sector(keyword: Optional[str], whole_token: bool = False) -> Optional[tuple[str, str]]:
    """Find ``(sector, sub_sector)`` for a keyword, or None."""
    if not keyword:
        return None
    normalized = normalize_keyword(keyword)
    if not normalized:
        return None

    for sector_key, sector in INDUSTRY_TAXONOMY.items():
        for sub_key, sub_sector in sector['sub_sectors'].items():
            if _keywords_match(normalized, sub_sector['keywords'], whole_token):
                return sector_key, sub_key
    return None


def industry_relevance(sector1: str, sector2: str) -> float:
    """Relevance between two sectors (1.0 for identical sectors)."""
    if sector1 == sector2:
        return 1.0
    return INDUSTRY_RELEVANCE.get(sector1, {}).get(sector2, DEFAULT_RELEVANCE)


def keywords_for_sector(sector_key: str) -> list[str]:
    """All keywords of a sector, including its sub-sectors."""
    sector = INDUSTRY_TAXONOMY.get(sector_key)
    if not sector:
        return []
    keywords = list(sector['keywords'])
    for sub_sector in sector['sub_sectors'].values():
        keywords.extend(sub_sector['keywords'])
    return keywords


def sector_label(sector_key: Optional[str]) -> str:
    """Korean display label for a sector key."""
    if sector_key and sector_key in INDUSTRY_TAXONOMY:
        return INDUSTRY_TAXONOMY[sector_key]['name']
    return INDUSTRY_TAXONOMY['OTHER']['name']
