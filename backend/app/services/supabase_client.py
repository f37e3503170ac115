# app/services/supabase_client.py
"""
Supabase 客户端
通过 get_supabase() 按需创建，路由里用 Depends 注入
"""
from functools import lru_cache
import logging

from supabase import Client, create_client

from app.config import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    返回共享的 Supabase 客户端（首次调用时创建）
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        raise RuntimeError("SUPABASE_URL / SUPABASE_KEY 未配置，请检查 backend/.env")

    logger.info(f"连接 Supabase: {settings.SUPABASE_URL}")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
