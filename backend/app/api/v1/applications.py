# app/api/v1/applications.py
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, Dict, List, Optional
from collections import defaultdict
from datetime import date, datetime, timezone
import logging

from app.api.deps import get_current_student, get_current_user, get_today, load_student
from app.config import settings
from app.schemas.application import (
    Application,
    ApplicationCreate,
    ApplicationStatus,
    ApplicationUpdate,
    StatusOverrideRequest,
    StatusUpdateRequest,
)
from app.schemas.user import CurrentUser, UserRole
from app.services.dashboard_stats import application_summary, upcoming_items
from app.services.date_utils import normalize_date
from app.services.status_engine import (
    DECISION_STATUSES,
    InvalidTransition,
    StatusChange,
    compute_progress,
    override_status,
    requirement_completion,
    transition,
    workflow_view,
    workflow_view_to_dict,
    completion_to_dict,
)
from app.services.supabase_client import get_supabase

router = APIRouter(prefix="/applications", tags=["Applications"])
logger = logging.getLogger(__name__)


# ===============================
# 工具函数
# ===============================
def get_owned_application(supabase, application_id: str, student_id: str) -> Dict[str, Any]:
    """读取申请并确认属于当前学生，否则 404"""
    result = supabase.table("applications").select("*").eq(
        "id", application_id
    ).eq("student_id", student_id).execute()

    if not result.data:
        raise HTTPException(status_code=404, detail="申请不存在")
    return result.data[0]


def attach_related(supabase, applications: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    给申请列表补上 university / requirements / 进度
    分两次批量查询，避免每个申请单独查一次
    """
    if not applications:
        return []

    application_ids = [a["id"] for a in applications]
    university_ids = list({a["university_id"] for a in applications if a.get("university_id")})

    requirements = supabase.table("application_requirements").select("*").in_(
        "application_id", application_ids
    ).order("created_at").execute().data or []

    universities = []
    if university_ids:
        universities = supabase.table("universities").select("*").in_(
            "id", university_ids
        ).execute().data or []

    requirements_by_app: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for requirement in requirements:
        requirements_by_app[requirement["application_id"]].append(requirement)
    universities_by_id = {u["id"]: u for u in universities}

    items = []
    for application in applications:
        app_requirements = requirements_by_app.get(application["id"], [])
        progress = compute_progress(application.get("status"))
        items.append({
            **application,
            "university": universities_by_id.get(application.get("university_id")),
            "requirements": app_requirements,
            "progress": {"step_index": progress.step_index, "percentage": progress.percentage},
            "completion": completion_to_dict(requirement_completion(app_requirements)),
        })
    return items


def persist_status_change(
    supabase,
    change: StatusChange,
    actor_id: str,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """
    写回 (status, updated_at)，并记录 application_events
    """
    updated_at = change.updated_at.isoformat()
    update_data = {"status": change.new_status.value, "updated_at": updated_at}

    if change.new_status == ApplicationStatus.SUBMITTED:
        update_data["submitted_date"] = change.updated_at.date().isoformat()
    if change.new_status in DECISION_STATUSES:
        update_data["decision_date"] = change.updated_at.date().isoformat()

    result = supabase.table("applications").update(update_data).eq(
        "id", change.application_id
    ).execute()

    if not result.data:
        raise HTTPException(status_code=500, detail="更新申请状态失败")

    event_type = "status_override" if change.overridden else "status_change"
    try:
        supabase.table("application_events").insert({
            "application_id": change.application_id,
            "event_type": event_type,
            "event_description": f"{change.previous_status.value} → {change.new_status.value}",
            "event_data": {
                "from": change.previous_status.value,
                "to": change.new_status.value,
                "actor_id": actor_id,
                "reason": reason,
            },
            "created_at": updated_at,
        }).execute()
    except Exception:
        # 事件记录失败不影响状态更新
        logger.exception(f"application_events 写入失败: {change.application_id}")

    return result.data[0]


def status_response(application: Dict[str, Any], change: StatusChange, supabase) -> Dict[str, Any]:
    requirements = supabase.table("application_requirements").select("*").eq(
        "application_id", application["id"]
    ).execute().data or []
    return {
        "application": application,
        "change": {
            "application_id": change.application_id,
            "previous_status": change.previous_status.value,
            "new_status": change.new_status.value,
            "updated_at": change.updated_at.isoformat(),
            "overridden": change.overridden,
        },
        "workflow": workflow_view_to_dict(workflow_view(application["status"], requirements)),
    }


# ===============================
# API 端点
# ===============================
@router.get("/")
def list_applications(
    status: Optional[ApplicationStatus] = Query(None, description="筛选状态"),
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """
    获取当前学生的申请列表（按截止日期升序）
    """
    try:
        query = supabase.table("applications").select("*").eq("student_id", student["id"])
        if status:
            query = query.eq("status", status.value)
        result = query.order("deadline").execute()

        items = attach_related(supabase, result.data or [])
        return {"count": len(items), "items": items}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取申请列表失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取申请列表失败: {str(e)}")


@router.post("/", status_code=201)
def create_application(
    application: ApplicationCreate,
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """
    添加学校到申请列表，状态从 not_started 开始
    """
    deadline = normalize_date(application.deadline)
    if not deadline:
        raise HTTPException(status_code=422, detail="截止日期格式不正确")

    try:
        now = datetime.now(timezone.utc).isoformat()
        record = Application(
            student_id=student["id"],
            university_id=application.university_id,
            application_type=application.application_type,
            intended_major=application.intended_major or None,
            deadline=deadline,
            status=ApplicationStatus.NOT_STARTED,
            financial_aid_requested=application.financial_aid_requested,
            scholarship_applied=application.scholarship_applied,
            notes=application.notes or None,
            priority_level=application.priority_level,
            created_at=now,
            updated_at=now,
        )
        data = record.model_dump(mode="json", exclude={"id"})

        result = supabase.table("applications").insert(data).execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="创建申请失败")

        logger.info(f"新增申请: student={student['id']} university={application.university_id}")
        return {"application": result.data[0]}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"创建申请失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"创建申请失败: {str(e)}")


@router.get("/stats/summary")
def get_application_stats(
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
    today: date = Depends(get_today),
):
    """
    首页统计：总数 / 已提交 / 已录取 / 即将截止
    """
    try:
        result = supabase.table("applications").select("*").eq(
            "student_id", student["id"]
        ).execute()
        return application_summary(result.data or [], today, settings.UPCOMING_DEADLINE_DAYS)

    except Exception as e:
        logger.error(f"获取统计信息失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取统计信息失败: {str(e)}")


@router.get("/upcoming")
def list_upcoming_deadlines(
    days: int = Query(settings.UPCOMING_DEADLINE_DAYS, ge=0, le=365, description="未来多少天内"),
    limit: Optional[int] = Query(None, ge=1, description="最多返回几条"),
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
    today: date = Depends(get_today),
):
    """
    即将截止且还没提交的申请
    """
    try:
        result = supabase.table("applications").select("*").eq(
            "student_id", student["id"]
        ).order("deadline").execute()

        items = upcoming_items(result.data or [], today, days, limit)
        return {"count": len(items), "days": days, "items": items}

    except Exception as e:
        logger.error(f"获取即将截止列表失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取即将截止列表失败: {str(e)}")


@router.get("/{application_id}")
def get_application(
    application_id: str,
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """
    获取单个申请详情（含流程进度和材料完成度）
    """
    try:
        application = get_owned_application(supabase, application_id, student["id"])
        item = attach_related(supabase, [application])[0]

        events = supabase.table("application_events").select("*").eq(
            "application_id", application_id
        ).order("created_at", desc=True).execute().data or []

        return {
            "application": item,
            "events": events,
            "workflow": workflow_view_to_dict(
                workflow_view(application.get("status"), item["requirements"])
            ),
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取申请详情失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取申请详情失败: {str(e)}")


@router.put("/{application_id}")
def update_application(
    application_id: str,
    update: ApplicationUpdate,
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """
    更新申请信息（类型、截止日期、优先级、备注等，不含状态）
    """
    try:
        get_owned_application(supabase, application_id, student["id"])

        update_data = update.model_dump(exclude_none=True, mode="json")
        if "deadline" in update_data:
            deadline = normalize_date(update_data["deadline"])
            if not deadline:
                raise HTTPException(status_code=422, detail="截止日期格式不正确")
            update_data["deadline"] = deadline
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

        result = supabase.table("applications").update(update_data).eq(
            "id", application_id
        ).eq("student_id", student["id"]).execute()

        if not result.data:
            raise HTTPException(status_code=500, detail="更新申请失败")

        return {"application": result.data[0]}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新申请失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"更新申请失败: {str(e)}")


@router.post("/{application_id}/status")
def update_application_status(
    application_id: str,
    request: StatusUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    student=Depends(get_current_student),
    supabase=Depends(get_supabase),
):
    """
    按流程推进申请状态，不合法的变更返回 409
    """
    try:
        # 每次都重新读当前状态再校验
        application = get_owned_application(supabase, application_id, student["id"])
        change = transition(application.get("status"), request.status, application_id=application_id)

        updated = persist_status_change(supabase, change, actor_id=user.id)
        logger.info(f"申请 {application_id} 状态: {change.previous_status.value} → {change.new_status.value}")
        return status_response(updated, change, supabase)

    except (HTTPException, InvalidTransition):
        raise
    except Exception as e:
        logger.error(f"更新申请状态失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"更新申请状态失败: {str(e)}")


@router.post("/{application_id}/status/override")
def override_application_status(
    application_id: str,
    request: StatusOverrideRequest,
    user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_supabase),
):
    """
    直接改写状态（跳过流程校验），用于纠正误操作
    管理员可以改任意申请，学生只能改自己的
    """
    try:
        if UserRole.ADMIN in user.roles:
            result = supabase.table("applications").select("*").eq("id", application_id).execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="申请不存在")
            application = result.data[0]
        else:
            student = load_student(supabase, user.id)
            if not student:
                raise HTTPException(status_code=403, detail="没有访问权限")
            application = get_owned_application(supabase, application_id, student["id"])

        change = override_status(application.get("status"), request.status, application_id=application_id)
        updated = persist_status_change(supabase, change, actor_id=user.id, reason=request.reason)

        logger.warning(
            f"申请 {application_id} 状态被改写: {change.previous_status.value} → "
            f"{change.new_status.value}（操作人 {user.id}，原因: {request.reason}）"
        )
        return status_response(updated, change, supabase)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"改写申请状态失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"改写申请状态失败: {str(e)}")
