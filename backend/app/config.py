# app/config.py
"""
全局配置
从 backend/.env 和环境变量读取
"""
import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
load_dotenv(os.path.join(BACKEND_DIR, ".env"))


class Settings(BaseModel):
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")

    # 前端地址，逗号分隔
    CORS_ALLOW_ORIGINS: List[str] = os.getenv(
        "CORS_ALLOW_ORIGINS", "http://localhost:3000"
    ).split(",")

    # 首页“即将截止”窗口（天）
    UPCOMING_DEADLINE_DAYS: int = int(os.getenv("UPCOMING_DEADLINE_DAYS", "30"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
