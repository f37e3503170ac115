# app/api/deps.py
"""
路由公共依赖：Supabase 客户端、登录校验、角色校验、资料设置（onboarding）校验
"""
from datetime import date
from typing import Any, Dict, Optional
import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.schemas.user import CurrentUser, UserRole
from app.services.supabase_client import get_supabase

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_today() -> date:
    """当前日期（测试里可以覆盖）"""
    return date.today()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    supabase=Depends(get_supabase),
) -> CurrentUser:
    """
    用 Supabase Auth 校验 Bearer token，并读取用户角色
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="未登录")

    try:
        response = supabase.auth.get_user(credentials.credentials)
        user = response.user if response else None
    except Exception as e:
        logger.warning(f"token 校验失败: {e}")
        user = None

    if user is None:
        raise HTTPException(status_code=401, detail="登录已失效，请重新登录")

    try:
        rows = supabase.table("user_roles").select("role").eq("user_id", user.id).execute().data or []
    except Exception as e:
        logger.error(f"读取用户角色失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"读取用户角色失败: {str(e)}")

    roles = []
    for row in rows:
        try:
            roles.append(UserRole(row.get("role")))
        except ValueError:
            logger.warning(f"忽略未知角色: {row.get('role')}")

    return CurrentUser(id=str(user.id), email=getattr(user, "email", None), roles=roles)


def require_role(*allowed: UserRole):
    """
    角色校验依赖
    用法: user = Depends(require_role(UserRole.PARENT))
    """
    def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not any(role in user.roles for role in allowed):
            raise HTTPException(status_code=403, detail="没有访问权限")
        return user

    return checker


def load_student(supabase, user_id: str) -> Optional[Dict[str, Any]]:
    result = supabase.table("students").select("*").eq("user_id", user_id).execute()
    return result.data[0] if result.data else None


def get_current_student(
    user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_supabase),
) -> Dict[str, Any]:
    """
    当前学生档案；没有档案说明还没完成资料设置
    """
    try:
        student = load_student(supabase, user.id)
    except Exception as e:
        logger.error(f"读取学生档案失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"读取学生档案失败: {str(e)}")

    if not student:
        raise HTTPException(
            status_code=403,
            detail={
                "message": "请先完成资料设置",
                "code": "ONBOARDING_REQUIRED",
            },
        )
    return student
