# app/schemas/user.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from enum import Enum


class UserRole(str, Enum):
    STUDENT = "student"
    PARENT = "parent"
    TEACHER = "teacher"
    ADMIN = "admin"


class Profile(BaseModel):
    id: str
    email: str
    full_name: str
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Student(BaseModel):
    id: str
    user_id: str
    graduation_year: int
    gpa: Optional[float] = None
    sat_score: Optional[int] = None
    act_score: Optional[int] = None
    target_countries: List[str] = []
    intended_majors: List[str] = []
    high_school: Optional[str] = None
    counselor_email: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CurrentUser(BaseModel):
    """已登录用户（token 校验之后）"""
    id: str
    email: Optional[str] = None
    roles: List[UserRole] = []


class SetupRequest(BaseModel):
    """首次登录后的资料填写（onboarding）"""
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    role: UserRole
    phone: Optional[str] = None
    # 以下仅学生需要
    graduation_year: Optional[int] = Field(None, ge=2000, le=2100)
    high_school: Optional[str] = None
    gpa: Optional[float] = Field(None, ge=0, le=5)
    sat_score: Optional[int] = Field(None, ge=400, le=1600)
    act_score: Optional[int] = Field(None, ge=1, le=36)
    intended_majors: List[str] = []
    target_countries: List[str] = []


class MeResponse(BaseModel):
    user: CurrentUser
    profile: Optional[Profile] = None
    student: Optional[Student] = None
    onboarded: bool
