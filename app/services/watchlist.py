"""
自选股管理服务
每个用户维护自己的自选股列表，股票来自本地目录
"""

from typing import List

from loguru import logger
from sqlalchemy.orm import Session, joinedload

from app.database.schemas import StockDB, WatchlistDB
from app.exceptions import ConflictError, NotFoundError


class WatchlistService:
    """
    自选股管理服务

    功能：
    1. 获取用户的自选股列表
    2. 添加股票到自选股
    3. 从自选股删除股票
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def list(self, user_id: int) -> List[WatchlistDB]:
        """按添加顺序返回自选股（附带股票信息）"""
        return (
            self.db.query(WatchlistDB)
            .options(joinedload(WatchlistDB.stock).joinedload(StockDB.sector))
            .filter(WatchlistDB.user_id == user_id)
            .order_by(WatchlistDB.added_at, WatchlistDB.id)
            .all()
        )

    def add(self, user_id: int, stock_id: int) -> WatchlistDB:
        """
        添加自选股

        Raises:
            NotFoundError: 股票不在目录中
            ConflictError: 已在自选股中
        """
        stock = self.db.query(StockDB).filter(StockDB.id == stock_id).first()
        if stock is None:
            raise NotFoundError(f"Stock {stock_id} not found")

        existing = self.db.query(WatchlistDB).filter(
            WatchlistDB.user_id == user_id,
            WatchlistDB.stock_id == stock_id
        ).first()
        if existing:
            raise ConflictError("Stock already in watchlist")

        item = WatchlistDB(user_id=user_id, stock_id=stock_id)
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)

        logger.info(f"用户 {user_id} 添加自选股: {stock.symbol}")
        return item

    def remove(self, user_id: int, stock_id: int) -> None:
        """
        删除自选股

        Raises:
            NotFoundError: 不在自选股中
        """
        deleted = self.db.query(WatchlistDB).filter(
            WatchlistDB.user_id == user_id,
            WatchlistDB.stock_id == stock_id
        ).delete()
        self.db.commit()

        if not deleted:
            raise NotFoundError("Stock not in watchlist")
        logger.info(f"用户 {user_id} 删除自选股: stock_id={stock_id}")
