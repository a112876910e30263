"""
路由公共依赖
"""

import hmac
from typing import Callable, Optional

from fastapi import Depends, Header, Request

from app.config import settings
from app.exceptions import AuthenticationError, PermissionDeniedError
from app.models.user import TokenPayload
from app.services.auth import decode_access_token
from app.services.stock_api import StockApiService


def get_stock_service(request: Request) -> StockApiService:
    """应用共享的上游API服务（在 lifespan 中创建）"""
    return request.app.state.stock_service


def get_current_user(authorization: Optional[str] = Header(default=None)) -> TokenPayload:
    """
    解析 Authorization: Bearer <token>

    Raises:
        AuthenticationError: 缺少token或token无效
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Authorization token required")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthenticationError("Authorization token required")
    return decode_access_token(token)


def require_role(*roles: str) -> Callable[..., TokenPayload]:
    """要求当前用户具有指定角色之一"""

    def checker(user: TokenPayload = Depends(get_current_user)) -> TokenPayload:
        if user.role not in roles:
            raise PermissionDeniedError()
        return user

    return checker


def verify_admin_password(x_admin_password: Optional[str] = Header(default=None)) -> None:
    """API key 管理接口的管理员口令校验"""
    if not x_admin_password or not hmac.compare_digest(
        x_admin_password.encode("utf-8"), settings.admin_password.encode("utf-8")
    ):
        raise AuthenticationError("Unauthorized. Admin password required.")
