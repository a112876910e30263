"""
用户管理服务
负责用户表的增删改查
"""

from datetime import datetime
from typing import Optional

import bcrypt
from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database.schemas import UserDB, WatchlistDB
from app.models.user import UserCreate, UserUpdate


def hash_password(password: str) -> str:
    """bcrypt哈希密码"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """校验密码，哈希格式错误视为校验失败"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


class UserService:
    """用户管理服务"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, data: UserCreate, role: str = "user") -> UserDB:
        """
        创建用户

        Args:
            data: 注册信息（明文密码在此处哈希）
            role: 用户角色
        """
        user = UserDB(
            email=data.email,
            password=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=role,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"创建用户: {user.email} (id={user.id}, role={user.role})")
        return user

    def get_by_email(self, email: str) -> Optional[UserDB]:
        """按邮箱查找（不区分大小写）"""
        return self.db.query(UserDB).filter(
            func.lower(UserDB.email) == email.strip().lower()
        ).first()

    def get_by_id(self, user_id: int) -> Optional[UserDB]:
        return self.db.get(UserDB, user_id)

    def update(self, user_id: int, data: UserUpdate) -> Optional[UserDB]:
        """只更新传入的字段"""
        user = self.get_by_id(user_id)
        if not user:
            return None

        changes = data.model_dump(exclude_unset=True)
        if "password" in changes:
            changes["password"] = hash_password(changes["password"])

        for field, value in changes.items():
            setattr(user, field, value)
        user.updated_at = datetime.now()

        self.db.commit()
        self.db.refresh(user)
        return user

    def delete(self, user_id: int) -> bool:
        self.db.query(WatchlistDB).filter(WatchlistDB.user_id == user_id).delete()
        deleted = self.db.query(UserDB).filter(UserDB.id == user_id).delete()
        self.db.commit()
        if deleted:
            logger.info(f"删除用户: id={user_id}")
        return deleted > 0
