# app/schemas/application.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from enum import Enum


class ApplicationStatus(str, Enum):
    """申请状态（与数据库中的枚举值完全一致）"""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"
    DEFERRED = "deferred"


class ApplicationType(str, Enum):
    EARLY_DECISION = "early_decision"
    EARLY_ACTION = "early_action"
    REGULAR_DECISION = "regular_decision"
    ROLLING_ADMISSION = "rolling_admission"


class Application(BaseModel):
    id: Optional[str] = None
    student_id: str
    university_id: str
    application_type: ApplicationType
    intended_major: Optional[str] = None
    deadline: str  # YYYY-MM-DD
    status: ApplicationStatus = ApplicationStatus.NOT_STARTED
    submitted_date: Optional[str] = None
    decision_date: Optional[str] = None
    decision_type: Optional[str] = None
    financial_aid_requested: bool = False
    scholarship_applied: bool = False
    notes: Optional[str] = None
    priority_level: int = 3  # 1=最低, 5=最高
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ApplicationCreate(BaseModel):
    """新增申请（状态固定从 not_started 开始）"""
    university_id: str
    application_type: ApplicationType
    deadline: str
    intended_major: Optional[str] = None
    financial_aid_requested: bool = False
    scholarship_applied: bool = False
    notes: Optional[str] = None
    priority_level: int = Field(3, ge=1, le=5)


class ApplicationUpdate(BaseModel):
    """更新申请信息，状态请走 /status 接口"""
    application_type: Optional[ApplicationType] = None
    intended_major: Optional[str] = None
    deadline: Optional[str] = None
    financial_aid_requested: Optional[bool] = None
    scholarship_applied: Optional[bool] = None
    notes: Optional[str] = None
    priority_level: Optional[int] = Field(None, ge=1, le=5)


class StatusUpdateRequest(BaseModel):
    status: ApplicationStatus


class StatusOverrideRequest(BaseModel):
    """管理员直接改写状态（跳过流程校验），必须写明原因"""
    status: ApplicationStatus
    reason: str = Field(..., min_length=1)
