"""
数据库连接和管理
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database.schemas import Base


class DatabaseManager:
    """数据库管理器"""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.database_url
        url = make_url(self.database_url)

        engine_kwargs = {"echo": settings.db_echo}
        if url.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                # 内存库必须共享同一个连接
                engine_kwargs["poolclass"] = StaticPool
            else:
                # 确保数据目录存在
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        else:
            engine_kwargs.update(
                pool_size=settings.db_pool_size,
                pool_timeout=settings.db_pool_timeout,
                pool_recycle=settings.db_pool_recycle,
                pool_pre_ping=True,
            )

        # 创建引擎
        self.engine = create_engine(self.database_url, **engine_kwargs)

        # 创建会话工厂
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine
        )

        logger.info(f"数据库连接初始化完成: {url.render_as_string(hide_password=True)}")

    def init_db(self) -> None:
        """初始化数据库，创建所有表"""
        Base.metadata.create_all(bind=self.engine)
        logger.info("数据库表创建完成")

    def ping(self) -> bool:
        """检查数据库是否可达"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"数据库连接检查失败: {e}")
            return False

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """获取数据库会话的上下文管理器"""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"数据库操作失败: {e}")
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


# 全局数据库管理器实例
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """获取数据库管理器实例"""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
        _db_manager.init_db()
    return _db_manager


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    """替换全局数据库管理器（测试或多库部署时使用）"""
    global _db_manager
    _db_manager = manager


def get_db() -> Generator[Session, None, None]:
    """FastAPI依赖注入用的数据库会话生成器"""
    db_manager = get_db_manager()
    session = db_manager.SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
