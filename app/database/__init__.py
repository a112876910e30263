"""数据库模块"""

from app.database.db import DatabaseManager, get_db, get_db_manager, set_db_manager
from app.database.schemas import Base, UserDB, SectorDB, StockDB, StockDataDB, WatchlistDB

__all__ = [
    "DatabaseManager",
    "get_db",
    "get_db_manager",
    "set_db_manager",
    "Base",
    "UserDB",
    "SectorDB",
    "StockDB",
    "StockDataDB",
    "WatchlistDB"
]
