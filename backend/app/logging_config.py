# app/logging_config.py
import logging
import sys

from app.config import settings


def configure_logging() -> None:
    """
    统一日志格式，应用启动时调用一次
    """
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
