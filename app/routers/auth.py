"""用户认证接口"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.exceptions import NotFoundError
from app.models.response import success
from app.models.user import AuthResult, TokenPayload, UserCreate, UserLogin, UserProfile
from app.routers.deps import get_current_user
from app.services.auth import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201)
async def register(data: UserCreate, db: Session = Depends(get_db)):
    """
    注册新用户

    - 邮箱已存在返回 400
    """
    user, token = AuthService(db).register(data)
    return success(AuthResult(user=UserProfile.model_validate(user), token=token), "User registered successfully")


@router.post("/login")
async def login(data: UserLogin, db: Session = Depends(get_db)):
    """
    用户登录

    - 邮箱不存在或密码错误返回 401
    """
    user, token = AuthService(db).login(data.email, data.password)
    return success(AuthResult(user=UserProfile.model_validate(user), token=token), "Login successful")


@router.get("/me")
async def get_me(current: TokenPayload = Depends(get_current_user), db: Session = Depends(get_db)):
    """获取当前用户信息（需要 Bearer token）"""
    user = AuthService(db).get_user(current.user_id)
    if not user:
        raise NotFoundError("User not found")
    return success({"user": UserProfile.model_validate(user)})
