# app/services/dashboard_stats.py
"""
首页统计模块
学生首页和家长首页上的数字卡片
"""
from collections import defaultdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from app.schemas.application import ApplicationStatus
from app.services.status_engine import (
    get_field,
    is_settled,
    parse_status,
    to_date,
    upcoming_deadlines,
)


def days_until(deadline: Any, now: Union[date, datetime]) -> Optional[int]:
    """距离截止还有几天（已过期为负数）"""
    deadline_date = to_date(deadline)
    if deadline_date is None:
        return None
    return (deadline_date - to_date(now)).days


def urgency(days: Optional[int]) -> str:
    if days is None:
        return "normal"
    if days <= 7:
        return "urgent"
    if days <= 14:
        return "soon"
    return "normal"


def application_summary(
    applications: Iterable[Any],
    now: Union[date, datetime],
    horizon_days: int = 30,
) -> Dict[str, Any]:
    """
    申请数量统计

    Returns:
        total / submitted（已提交及之后） / accepted / upcoming / by_status
    """
    applications = list(applications)
    by_status: Dict[str, int] = defaultdict(int)
    for application in applications:
        status = get_field(application, "status", "unknown")
        by_status[status.value if isinstance(status, Enum) else str(status)] += 1

    submitted = sum(1 for a in applications if is_settled(get_field(a, "status")))
    accepted = by_status.get(ApplicationStatus.ACCEPTED.value, 0)
    upcoming = sum(1 for _ in upcoming_deadlines(applications, horizon_days, now))

    return {
        "total": len(applications),
        "submitted": submitted,
        "accepted": accepted,
        "upcoming": upcoming,
        "by_status": dict(by_status),
    }


def financial_summary(
    applications: Iterable[Any],
    universities: Dict[str, Any],
) -> Dict[str, Any]:
    """
    家长首页的费用概览

    Args:
        applications: 申请列表
        universities: university_id → 学校记录
    """
    total_fees = 0.0
    accepted_tuition = 0.0
    aid_requested = 0
    scholarship_applied = 0

    for application in applications:
        university = universities.get(get_field(application, "university_id")) or {}
        total_fees += get_field(university, "application_fee") or 0
        if parse_status(get_field(application, "status")) == ApplicationStatus.ACCEPTED:
            accepted_tuition += get_field(university, "tuition_out_state") or 0
        if get_field(application, "financial_aid_requested"):
            aid_requested += 1
        if get_field(application, "scholarship_applied"):
            scholarship_applied += 1

    return {
        "total_application_fees": round(total_fees, 2),
        "accepted_tuition_total": round(accepted_tuition, 2),
        "financial_aid_requested": aid_requested,
        "scholarship_applied": scholarship_applied,
    }


def upcoming_items(
    applications: Iterable[Any],
    now: Union[date, datetime],
    horizon_days: int = 30,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """即将截止列表（带剩余天数和紧急程度）"""
    items = []
    for application in upcoming_deadlines(applications, horizon_days, now):
        if limit is not None and len(items) >= limit:
            break
        days = days_until(get_field(application, "deadline"), now)
        items.append({
            "application": application,
            "days_until": days,
            "urgency": urgency(days),
        })
    return items
