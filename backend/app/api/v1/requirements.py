# app/api/v1/requirements.py
"""
申请材料清单
文书、成绩单、推荐信等，每一项单独标记完成状态
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from typing import Optional
from datetime import datetime, timezone
import logging

from app.api.deps import get_current_student
from app.api.v1.applications import get_owned_application
from app.schemas.requirement import Requirement, RequirementCreate, RequirementStatus, RequirementUpdate
from app.services.date_utils import normalize_date
from app.services.status_engine import completion_to_dict, requirement_completion
from app.services.supabase_client import get_supabase

router = APIRouter(tags=["Requirements"])
logger = logging.getLogger(__name__)

# 进入这些状态时记录完成日期
_DONE_STATUSES = {RequirementStatus.COMPLETED.value, RequirementStatus.SUBMITTED.value}


@router.get("/applications/{application_id}/requirements")
def list_requirements(
    application_id: str,
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """获取申请的材料清单"""
    try:
        get_owned_application(supabase, application_id, student["id"])

        requirements = supabase.table("application_requirements").select("*").eq(
            "application_id", application_id
        ).order("created_at").execute().data or []

        return {
            "count": len(requirements),
            "items": requirements,
            "completion": completion_to_dict(requirement_completion(requirements)),
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取材料清单失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取材料清单失败: {str(e)}")


@router.get("/applications/{application_id}/requirements/completion")
def get_requirement_completion(
    application_id: str,
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """材料完成度（waived 也算完成）"""
    try:
        get_owned_application(supabase, application_id, student["id"])

        requirements = supabase.table("application_requirements").select("status,is_required").eq(
            "application_id", application_id
        ).execute().data or []

        return completion_to_dict(requirement_completion(requirements))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取材料完成度失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取材料完成度失败: {str(e)}")


def _checked_deadline(raw: Optional[str]) -> Optional[str]:
    """空值表示不设截止日期；填了但解析不了直接 422，不能悄悄存成 None"""
    if raw is None or not raw.strip():
        return None
    deadline = normalize_date(raw)
    if not deadline:
        raise HTTPException(status_code=422, detail="截止日期格式不正确")
    return deadline


@router.post("/applications/{application_id}/requirements", status_code=201)
def create_requirement(
    application_id: str,
    requirement: RequirementCreate,
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """添加一项材料"""
    deadline = _checked_deadline(requirement.deadline)

    try:
        get_owned_application(supabase, application_id, student["id"])

        now = datetime.now(timezone.utc).isoformat()
        record = Requirement(
            application_id=application_id,
            requirement_type=requirement.requirement_type,
            title=requirement.title,
            description=requirement.description or None,
            status=RequirementStatus.NOT_STARTED,
            deadline=deadline,
            word_count_min=requirement.word_count_min,
            word_count_max=requirement.word_count_max,
            is_required=requirement.is_required,
            created_at=now,
            updated_at=now,
        )
        data = record.model_dump(mode="json", exclude={"id"})

        result = supabase.table("application_requirements").insert(data).execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="添加材料失败")

        return {"requirement": result.data[0]}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"添加材料失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"添加材料失败: {str(e)}")


@router.put("/requirements/{requirement_id}")
def update_requirement(
    requirement_id: str,
    update: RequirementUpdate,
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """
    更新材料（勾选完成 / 取消完成、备注、字数要求等）
    """
    try:
        existing = supabase.table("application_requirements").select("*").eq(
            "id", requirement_id
        ).execute()
        if not existing.data:
            raise HTTPException(status_code=404, detail="材料不存在")
        current = existing.data[0]

        # 确认材料所属的申请是当前学生的
        get_owned_application(supabase, current["application_id"], student["id"])

        update_data = update.model_dump(exclude_none=True, mode="json")

        if "deadline" in update_data:
            update_data["deadline"] = _checked_deadline(update_data["deadline"])

        # 合并后整条记录再校验一次（字数上下限要和已存的值一起看）
        try:
            Requirement(**{**current, **update_data})
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=f"材料数据不合法: {e.errors()[0]['msg']}")

        now = datetime.now(timezone.utc)
        new_status = update_data.get("status")
        if new_status is not None and new_status != current.get("status"):
            if new_status in _DONE_STATUSES:
                update_data["completed_date"] = now.date().isoformat()
            elif new_status != RequirementStatus.WAIVED.value:
                update_data["completed_date"] = None
        update_data["updated_at"] = now.isoformat()

        result = supabase.table("application_requirements").update(update_data).eq(
            "id", requirement_id
        ).execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="更新材料失败")

        siblings = supabase.table("application_requirements").select("status,is_required").eq(
            "application_id", current["application_id"]
        ).execute().data or []

        return {
            "requirement": result.data[0],
            "completion": completion_to_dict(requirement_completion(siblings)),
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新材料失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"更新材料失败: {str(e)}")
