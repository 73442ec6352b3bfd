from datetime import datetime
from typing import Optional
from pydantic import Field

from directchat.schemas.message import CamelModel


class UserCreate(CamelModel):
    """회원가입 스키마"""
    full_name: str = Field(..., description="이름")
    email: str = Field(..., description="이메일")
    password: str = Field(..., description="비밀번호 (6자 이상)")


class UserLogin(CamelModel):
    """로그인 스키마"""
    email: str
    password: str


class ProfileUpdate(CamelModel):
    """프로필 수정 스키마"""
    full_name: Optional[str] = None
    profile_pic: Optional[str] = Field(None, description="base64 프로필 이미지")


class UserResponse(CamelModel):
    """사용자 응답 스키마"""
    id: str
    full_name: str
    email: str
    profile_pic: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthResponse(UserResponse):
    """로그인/회원가입 응답 (토큰 포함)"""
    token: str


class SidebarUser(UserResponse):
    """사이드바 사용자 (presence 포함)"""
    status: str = Field(..., description="online | away | busy | recently-online | offline")
    last_seen_at: Optional[datetime] = None
