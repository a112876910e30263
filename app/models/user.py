"""
用户和认证相关数据模型
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_MAX_BYTES = 72


def _clean_email(value: str) -> str:
    value = value.strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


# bcrypt 按字节计算长度，多字节字符会超出72字节上限
def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return value


class UserCreate(BaseModel):
    """注册请求"""
    email: str
    password: str = Field(..., min_length=6, max_length=72)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return _clean_email(value)

    @field_validator("password")
    @classmethod
    def _limit_password(cls, value: str) -> str:
        return _check_password_bytes(value)


class UserLogin(BaseModel):
    """登录请求"""
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.strip().lower()


class UserUpdate(BaseModel):
    """更新用户（只更新传入的字段）"""
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=72)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    role: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: Optional[str]) -> Optional[str]:
        return _clean_email(value) if value is not None else None

    @field_validator("password")
    @classmethod
    def _limit_password(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value) if value is not None else None


class UserProfile(BaseModel):
    """对外暴露的用户信息（不含密码哈希）"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str


class AuthResult(BaseModel):
    user: UserProfile
    token: str


class TokenPayload(BaseModel):
    """JWT载荷"""
    sub: str
    email: str
    role: str
    iat: int
    exp: int

    @property
    def user_id(self) -> int:
        return int(self.sub)
