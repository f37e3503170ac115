# app/api/v1/auth.py
"""
用户认证模块
登录本身走 Supabase Auth（前端拿 token），这里只负责当前用户信息和首次资料设置
"""
from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone
import logging

from app.api.deps import get_current_user, load_student
from app.schemas.user import CurrentUser, MeResponse, Profile, SetupRequest, Student, UserRole
from app.services.supabase_client import get_supabase

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)


def _build_me(supabase, user: CurrentUser) -> MeResponse:
    profiles = supabase.table("profiles").select("*").eq("id", user.id).execute().data
    profile = Profile(**profiles[0]) if profiles else None

    student_row = load_student(supabase, user.id)
    student = Student(**student_row) if student_row else None

    # 学生要有学生档案；其他角色有资料和角色即可
    if UserRole.STUDENT in user.roles:
        onboarded = profile is not None and student is not None
    else:
        onboarded = profile is not None and len(user.roles) > 0

    return MeResponse(user=user, profile=profile, student=student, onboarded=onboarded)


@router.get("/me", response_model=MeResponse)
def get_me(
    user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_supabase),
):
    """
    当前用户信息（资料、角色、是否完成设置）
    """
    try:
        return _build_me(supabase, user)
    except Exception as e:
        logger.error(f"获取用户信息失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取用户信息失败: {str(e)}")


@router.post("/setup", response_model=MeResponse)
def setup_account(
    request: SetupRequest,
    user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_supabase),
):
    """
    首次登录后的资料设置：写 profiles / user_roles，学生再建 students 档案
    重复调用不会重复建角色和档案
    """
    if request.role == UserRole.STUDENT and request.graduation_year is None:
        raise HTTPException(status_code=422, detail="学生需要填写毕业年份")

    try:
        now = datetime.now(timezone.utc).isoformat()

        supabase.table("profiles").upsert({
            "id": user.id,
            "email": request.email,
            "full_name": request.full_name,
            "phone": request.phone,
            "updated_at": now,
        }).execute()

        if request.role not in user.roles:
            supabase.table("user_roles").insert({
                "user_id": user.id,
                "role": request.role.value,
                "created_at": now,
            }).execute()
            user = user.model_copy(update={"roles": [*user.roles, request.role]})

        if request.role == UserRole.STUDENT and load_student(supabase, user.id) is None:
            supabase.table("students").insert({
                "user_id": user.id,
                "graduation_year": request.graduation_year,
                "gpa": request.gpa,
                "sat_score": request.sat_score,
                "act_score": request.act_score,
                "high_school": request.high_school,
                "intended_majors": request.intended_majors,
                "target_countries": request.target_countries,
                "created_at": now,
                "updated_at": now,
            }).execute()

        logger.info(f"用户 {user.id} 完成资料设置，角色: {request.role.value}")
        return _build_me(supabase, user)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"资料设置失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"资料设置失败: {str(e)}")
