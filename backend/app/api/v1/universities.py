# app/api/v1/universities.py

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import math
import logging

from app.schemas.application import ApplicationType
from app.schemas.university import University
from app.services.supabase_client import get_supabase
from app.services.university_search import rank_universities

router = APIRouter(prefix="/universities", tags=["Universities"])
logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"name", "us_news_ranking", "acceptance_rate", "application_fee", "tuition_out_state"}


@router.get("/")
def list_universities(
    search: Optional[str] = Query(None, description="学校名称 / 简称 / 城市 / 州（模糊搜索）"),
    country: Optional[str] = Query(None, description="国家"),
    state: Optional[str] = Query(None, description="州 / 省"),
    min_ranking: Optional[int] = Query(None, ge=1, description="US News 排名下限"),
    max_ranking: Optional[int] = Query(None, ge=1, description="US News 排名上限"),
    min_acceptance: Optional[float] = Query(None, ge=0, le=100, description="录取率下限"),
    max_acceptance: Optional[float] = Query(None, ge=0, le=100, description="录取率上限"),
    sort_by: str = Query("name", description="排序字段"),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200, description="每页数量"),
    supabase=Depends(get_supabase),
):
    """
    学校列表（筛选 + 排序 + 分页）
    """
    if sort_by not in SORTABLE_FIELDS:
        raise HTTPException(status_code=400, detail=f"不支持的排序字段: {sort_by}")

    try:
        query = supabase.table("universities").select("*", count="exact")

        # 🔍 关键词
        if search:
            query = query.or_(
                f"name.ilike.%{search}%,short_name.ilike.%{search}%,"
                f"city.ilike.%{search}%,state.ilike.%{search}%"
            )

        if country:
            query = query.eq("country", country)
        if state:
            query = query.eq("state", state)

        # 排名 / 录取率区间
        if min_ranking is not None:
            query = query.gte("us_news_ranking", min_ranking)
        if max_ranking is not None:
            query = query.lte("us_news_ranking", max_ranking)
        if min_acceptance is not None:
            query = query.gte("acceptance_rate", min_acceptance)
        if max_acceptance is not None:
            query = query.lte("acceptance_rate", max_acceptance)

        query = query.order(sort_by, desc=(sort_order == "desc"))

        # 分页
        offset = (page - 1) * limit
        query = query.range(offset, offset + limit - 1)

        result = query.execute()
        items = result.data or []
        total = result.count or 0

        # 有搜索词时按相似度重新排序
        if search:
            items = rank_universities(search, items)

        return {
            "items": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
            },
        }

    except Exception as e:
        logger.error(f"获取学校列表失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取学校列表失败: {str(e)}")


def _get_university(supabase, university_id: str) -> University:
    result = supabase.table("universities").select("*").eq("id", university_id).execute()
    if not result.data:
        raise HTTPException(status_code=404, detail="学校不存在")
    return University(**result.data[0])


@router.get("/{university_id}", response_model=University)
def get_university(university_id: str, supabase=Depends(get_supabase)):
    """获取学校详情"""
    try:
        return _get_university(supabase, university_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取学校详情失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取学校详情失败: {str(e)}")


@router.get("/{university_id}/deadline")
def get_university_deadline(
    university_id: str,
    application_type: ApplicationType = Query(..., description="申请类型"),
    supabase=Depends(get_supabase),
):
    """
    按申请类型查截止日期（新建申请时自动填充用）
    """
    try:
        university = _get_university(supabase, university_id)
        deadline = university.deadlines.deadline_for(application_type)
        if deadline is None:
            raise HTTPException(status_code=404, detail="该学校没有这种申请类型的截止日期")

        return {
            "university_id": university_id,
            "application_type": application_type.value,
            "deadline": deadline,
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取截止日期失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"获取截止日期失败: {str(e)}")
