"""Standard tag vocabulary and job category tag profiles."""

from __future__ import annotations

from collections.abc import Collection

# The oracle is instructed to pick cluster tags from this list.
STANDARD_TAGS: frozenset[str] = frozenset(
    {
        # Technology
        "LLM",
        "컴퓨터비전",
        "자연어처리",
        "머신러닝",
        "강화학습",
        "연합학습",
        "모델경량화",
        "프롬프트엔지니어링",
        "에지AI",
        "윤리AI",
        "AI보안",
        # Applications
        "개인화추천",
        "콘텐츠생성",
        "이미지생성",
        "영상생성",
        "코드생성",
        "글쓰기지원",
        "번역",
        "음성합성",
        "음성인식",
        "채팅봇",
        "감정분석",
        "데이터분석",
        "예측분석",
        # Business
        "자동화",
        "업무효율화",
        "의사결정지원",
        "마케팅자동화",
        "검색최적화",
        "가격결정",
        # Society
        "AI일자리",
        "AI윤리",
        "AI규제",
        "AI성능",
        "모델출시",
        "오픈소스",
        "의료진단",
        "교육지원",
        "비용절감",
        "기술트렌드",
    }
)

TAGS_PER_CLUSTER = 5

JOB_TAG_MAPPING: dict[str, list[str]] = {
    "기술/개발": [
        "LLM",
        "컴퓨터비전",
        "자연어처리",
        "머신러닝",
        "코드생성",
        "모델경량화",
        "에지AI",
        "오픈소스",
    ],
    "창작/콘텐츠": [
        "콘텐츠생성",
        "이미지생성",
        "영상생성",
        "글쓰기지원",
        "마케팅자동화",
        "검색최적화",
    ],
    "분석/사무": ["데이터분석", "예측분석", "자동화", "업무효율화", "의사결정지원"],
    "의료/과학": ["컴퓨터비전", "의료진단", "데이터분석", "머신러닝"],
    "교육": ["채팅봇", "교육지원", "글쓰기지원", "자동화"],
    "비즈니스": [
        "데이터분석",
        "예측분석",
        "의사결정지원",
        "자동화",
        "마케팅자동화",
        "가격결정",
    ],
    "제조/건설": ["컴퓨터비전", "자동화", "데이터분석", "모델경량화"],
    "서비스": ["채팅봇", "감정분석", "자동화", "마케팅자동화"],
    "창업/자영업": ["자동화", "업무효율화", "의사결정지원", "데이터분석", "비용절감"],
    "농업/축산업": ["컴퓨터비전", "데이터분석", "자동화"],
    "어업/해상업": ["데이터분석", "자동화", "예측분석"],
    "학생": ["교육지원", "글쓰기지원", "코드생성", "LLM"],
    "기타": ["기술트렌드", "자동화", "데이터분석"],
}


def unknown_tags(tags: list[str], vocabulary: Collection[str] = STANDARD_TAGS) -> list[str]:
    """Tags that are not part of the vocabulary, in input order."""
    return [tag for tag in tags if tag not in vocabulary]
