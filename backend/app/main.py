# app/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from app.config import settings
from app.logging_config import configure_logging
from app.api.v1.auth import router as auth_router
from app.api.v1.applications import router as applications_router
from app.api.v1.requirements import router as requirements_router
from app.api.v1.universities import router as universities_router
from app.api.v1.parents import router as parents_router
from app.services.status_engine import InvalidTransition, legal_next_states

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="University Application Tracker Backend",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidTransition)
def invalid_transition_handler(request: Request, exc: InvalidTransition):
    """不合法的状态变更 → 409，前端提示后重新选择"""
    logger.info(f"拒绝状态变更 {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={
            "detail": {
                "message": str(exc),
                "code": "INVALID_TRANSITION",
                "current": exc.current,
                "requested": exc.requested,
                "allowed": sorted(s.value for s in legal_next_states(exc.current)),
            }
        },
    )


@app.get("/health")
def health_check():
    return {"status": "ok"}


# 注册路由
app.include_router(auth_router)
app.include_router(applications_router)
app.include_router(requirements_router)
app.include_router(universities_router)
app.include_router(parents_router)
