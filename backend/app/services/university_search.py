# app/services/university_search.py
"""
学校搜索排序
Supabase ilike 先粗筛，再用 rapidfuzz 按相似度排序
"""
from typing import Any, Dict, List

from rapidfuzz import fuzz

# 长文本字段做模糊匹配；简称和州代码太短，只认完全一致
FUZZY_FIELDS = ("name", "city")
EXACT_FIELDS = ("short_name", "state")


def field_similarity(query: str, value: str) -> int:
    """
    单个字段的相似度 (0-100)
    字段比搜索词短时不用 partial_ratio，否则 "ca" 这种片段会在 "cambridge" 里拿满分
    """
    if len(value) >= len(query):
        return int(fuzz.partial_ratio(query, value))
    return int(fuzz.ratio(query, value))


def relevance(query: str, university: Dict[str, Any]) -> int:
    """
    计算搜索词和学校的相似度 (0-100)，取各字段最高分
    简称 / 州代码完全一致时直接给满分（MIT、UCLA、CA 这类）
    """
    if not query:
        return 0

    q = query.strip().lower()
    for key in EXACT_FIELDS:
        value = (university.get(key) or "").strip().lower()
        if value and value == q:
            return 100

    best = 0
    for key in FUZZY_FIELDS:
        value = university.get(key)
        if value:
            best = max(best, field_similarity(q, str(value).strip().lower()))
    return best


def rank_universities(query: str, universities: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """按相似度降序，分数相同保持原顺序"""
    if not query:
        return list(universities)
    return sorted(universities, key=lambda u: -relevance(query, u))
