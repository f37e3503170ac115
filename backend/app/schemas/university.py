# app/schemas/university.py
from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional, Dict, Any
import logging

from app.schemas.application import ApplicationType

logger = logging.getLogger(__name__)


class UniversityDeadlines(BaseModel):
    """
    各申请类型的截止日期
    数据库里是一个 JSON 字段，这里只保留已知的四种申请类型
    """
    early_decision: Optional[str] = None
    early_action: Optional[str] = None
    regular_decision: Optional[str] = None
    rolling_admission: Optional[str] = None

    @classmethod
    def from_json(cls, raw: Optional[Dict[str, Any]]) -> "UniversityDeadlines":
        if not raw:
            return cls()

        known = {t.value for t in ApplicationType}
        data = {}
        for key, value in raw.items():
            if key in known:
                data[key] = str(value) if value else None
            else:
                logger.warning(f"忽略未知的截止日期类型: {key}")
        return cls(**data)

    def deadline_for(self, application_type: ApplicationType) -> Optional[str]:
        return getattr(self, ApplicationType(application_type).value)


class University(BaseModel):
    id: str
    name: str
    short_name: Optional[str] = None
    country: str
    state: Optional[str] = None
    city: Optional[str] = None
    website_url: Optional[str] = None
    logo_url: Optional[str] = None
    us_news_ranking: Optional[int] = None
    acceptance_rate: Optional[float] = None
    application_system: Optional[str] = None
    application_fee: Optional[float] = None
    tuition_in_state: Optional[float] = None
    tuition_out_state: Optional[float] = None
    room_board: Optional[float] = None
    deadlines: UniversityDeadlines = UniversityDeadlines()
    student_population: Optional[int] = None
    location_type: Optional[str] = None
    school_type: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("deadlines", mode="before")
    @classmethod
    def parse_deadlines(cls, value):
        if isinstance(value, UniversityDeadlines):
            return value
        return UniversityDeadlines.from_json(value)
