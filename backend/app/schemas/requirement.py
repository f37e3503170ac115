# app/schemas/requirement.py
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List
from enum import Enum


class RequirementType(str, Enum):
    PERSONAL_ESSAY = "personal_essay"
    SUPPLEMENTAL_ESSAY = "supplemental_essay"
    TRANSCRIPT = "transcript"
    RECOMMENDATION_LETTER = "recommendation_letter"
    TEST_SCORES = "test_scores"
    PORTFOLIO = "portfolio"
    INTERVIEW = "interview"
    APPLICATION_FEE = "application_fee"
    FAFSA = "fafsa"
    CSS_PROFILE = "css_profile"
    OTHER = "other"


class RequirementStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SUBMITTED = "submitted"
    WAIVED = "waived"


def _check_word_count(min_count: Optional[int], max_count: Optional[int]):
    if min_count is not None and max_count is not None and min_count > max_count:
        raise ValueError("word_count_min 不能大于 word_count_max")


class Requirement(BaseModel):
    id: Optional[str] = None
    application_id: str
    requirement_type: RequirementType
    title: str
    description: Optional[str] = None
    status: RequirementStatus = RequirementStatus.NOT_STARTED
    deadline: Optional[str] = None
    completed_date: Optional[str] = None
    file_urls: Optional[List[str]] = []
    word_count_min: Optional[int] = None
    word_count_max: Optional[int] = None
    is_required: bool = True
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def word_count_range(self):
        _check_word_count(self.word_count_min, self.word_count_max)
        return self


class RequirementCreate(BaseModel):
    requirement_type: RequirementType
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    deadline: Optional[str] = None
    word_count_min: Optional[int] = Field(None, ge=0)
    word_count_max: Optional[int] = Field(None, ge=0)
    is_required: bool = True

    @model_validator(mode="after")
    def word_count_range(self):
        _check_word_count(self.word_count_min, self.word_count_max)
        return self


class RequirementUpdate(BaseModel):
    status: Optional[RequirementStatus] = None
    title: Optional[str] = None
    description: Optional[str] = None
    deadline: Optional[str] = None
    notes: Optional[str] = None
    is_required: Optional[bool] = None
    word_count_min: Optional[int] = Field(None, ge=0)
    word_count_max: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def word_count_range(self):
        _check_word_count(self.word_count_min, self.word_count_max)
        return self
