# app/services/date_utils.py
from datetime import datetime
from typing import Optional
import re


def _valid(year: str, month: str, day: str) -> Optional[str]:
    """拼成 YYYY-MM-DD，日历上不存在的日期（2月30日、13月）返回 None"""
    result = f"{year}-{month.zfill(2)}-{day.zfill(2)}"
    try:
        datetime.strptime(result, '%Y-%m-%d')
    except ValueError:
        return None
    return result


def normalize_date(date_str: Optional[str]) -> Optional[str]:
    """
    将各种日期格式转换为 YYYY-MM-DD 格式
    如果无法解析，返回 None
    """
    if not date_str:
        return None

    date_str = date_str.strip()

    # 已经是 YYYY-MM-DD
    iso_match = re.match(r'^(\d{4})-(\d{2})-(\d{2})$', date_str)
    if iso_match:
        return _valid(*iso_match.groups())

    # ISO 格式（前端 Date.toISOString()）
    try:
        date_obj = datetime.fromisoformat(date_str.replace('Z', '+00:00'))
        return date_obj.strftime('%Y-%m-%d')
    except ValueError:
        pass

    # 美式日期 12/01/2024
    us_match = re.match(r'^(\d{1,2})/(\d{1,2})/(\d{4})$', date_str)
    if us_match:
        month, day, year = us_match.groups()
        return _valid(year, month, day)

    # 中文日期，如 "12月1日"、"2024年12月1日"
    chinese_match = re.match(r'(\d{4})?年?(\d{1,2})月(\d{1,2})日?', date_str)
    if chinese_match:
        year = chinese_match.group(1) or str(datetime.now().year)
        return _valid(year, chinese_match.group(2), chinese_match.group(3))

    return None
