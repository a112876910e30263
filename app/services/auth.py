"""
认证服务
注册、登录和JWT签发/校验
"""

import time
from typing import Optional, Tuple

import jwt
from loguru import logger
from sqlalchemy.orm import Session

from app.config import settings
from app.database.schemas import UserDB
from app.exceptions import AuthenticationError, BadRequestError
from app.models.user import TokenPayload, UserCreate
from app.services.users import UserService, verify_password


def create_access_token(user: UserDB, expires_in: Optional[int] = None) -> str:
    """
    签发JWT

    Args:
        user: 用户记录
        expires_in: 有效期（秒），默认读取 JWT_EXPIRES_IN
    """
    now = int(time.time())
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "iat": now,
        "exp": now + (expires_in if expires_in is not None else settings.jwt_expires_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenPayload:
    """
    校验并解析JWT

    Raises:
        AuthenticationError: token无效或已过期
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenPayload.model_validate(payload)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Unauthorized - Token expired")
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.warning(f"Token校验失败: {e}")
        raise AuthenticationError("Unauthorized - Invalid token")


class AuthService:
    """认证服务"""

    def __init__(self, db_session: Session):
        self.users = UserService(db_session)

    def register(self, data: UserCreate) -> Tuple[UserDB, str]:
        """
        注册新用户

        Raises:
            BadRequestError: 邮箱已被注册
        """
        if self.users.get_by_email(data.email):
            raise BadRequestError("User with this email already exists")

        user = self.users.create(data)
        return user, create_access_token(user)

    def login(self, email: str, password: str) -> Tuple[UserDB, str]:
        """
        用户登录

        Raises:
            AuthenticationError: 邮箱不存在或密码错误（不区分两种情况）
        """
        user = self.users.get_by_email(email)
        if not user or not verify_password(password, user.password):
            logger.info(f"登录失败: {email}")
            raise AuthenticationError("Invalid credentials")

        logger.info(f"用户登录: {user.email}")
        return user, create_access_token(user)

    def get_user(self, user_id: int) -> Optional[UserDB]:
        return self.users.get_by_id(user_id)
