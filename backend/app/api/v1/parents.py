# app/api/v1/parents.py
"""
家长首页
查看关联孩子的申请进度、即将截止、费用概览
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict, List
from datetime import date
import logging

from app.api.deps import get_today, require_role
from app.api.v1.applications import attach_related
from app.config import settings
from app.schemas.user import CurrentUser, UserRole
from app.services.dashboard_stats import application_summary, financial_summary, upcoming_items
from app.services.supabase_client import get_supabase

router = APIRouter(prefix="/parent", tags=["Parent"])
logger = logging.getLogger(__name__)


@router.get("/children")
def list_children_progress(
    user: CurrentUser = Depends(require_role(UserRole.PARENT)),
    supabase=Depends(get_supabase),
    today: date = Depends(get_today),
):
    """
    所有关联孩子的申请概况
    """
    try:
        relationships = supabase.table("parent_student_relationships").select("*").eq(
            "parent_id", user.id
        ).execute().data or []

        student_ids = [r["student_id"] for r in relationships]
        if not student_ids:
            return {
                "children": [],
                "summary": application_summary([], today, settings.UPCOMING_DEADLINE_DAYS),
                "upcoming": [],
            }

        students = supabase.table("students").select("*").in_("id", student_ids).execute().data or []

        user_ids = [s["user_id"] for s in students]
        profiles = supabase.table("profiles").select("*").in_("id", user_ids).execute().data or []
        names = {p["id"]: p.get("full_name") for p in profiles}

        applications = supabase.table("applications").select("*").in_(
            "student_id", student_ids
        ).order("deadline").execute().data or []
        applications = attach_related(supabase, applications)

        children: List[Dict[str, Any]] = []
        all_upcoming = []
        for student in students:
            child_name = names.get(student["user_id"]) or ""
            child_apps = [a for a in applications if a["student_id"] == student["id"]]
            universities = {a["university_id"]: a["university"] for a in child_apps if a.get("university")}

            children.append({
                "student": student,
                "name": child_name,
                "applications": child_apps,
                "summary": application_summary(child_apps, today, settings.UPCOMING_DEADLINE_DAYS),
                "financial": financial_summary(child_apps, universities),
            })

            for item in upcoming_items(child_apps, today, settings.UPCOMING_DEADLINE_DAYS):
                all_upcoming.append({**item, "child_name": child_name})

        # 合并后按截止日期排序（sort 稳定，同一天保持孩子顺序）
        all_upcoming.sort(key=lambda i: i["days_until"])

        return {
            "children": children,
            "summary": application_summary(applications, today, settings.UPCOMING_DEADLINE_DAYS),
            "upcoming": all_upcoming,
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取孩子申请概况失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取孩子申请概况失败: {str(e)}")
