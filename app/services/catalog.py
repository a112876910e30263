"""
股票目录服务
维护本地 stocks / sectors 表
"""

from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.database.schemas import SectorDB, StockDB, WatchlistDB
from app.exceptions import ConflictError, NotFoundError
from app.models.stock import StockCreate, StockUpdate


class StockCatalogService:
    """
    股票目录服务

    功能：
    1. 新增/更新/删除股票
    2. 按代码或ID查询（附带行业名称）
    3. 按行业、关键字分页查询
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def _query(self):
        return self.db.query(StockDB).options(joinedload(StockDB.sector))

    def _check_sector(self, sector_id: Optional[int]) -> None:
        if sector_id is not None and self.db.get(SectorDB, sector_id) is None:
            raise NotFoundError(f"Sector {sector_id} not found")

    def _check_symbol_free(self, symbol: str, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(StockDB).filter(StockDB.symbol == symbol)
        if exclude_id is not None:
            query = query.filter(StockDB.id != exclude_id)
        if query.first():
            raise ConflictError(f"Stock {symbol} already exists")

    def create(self, data: StockCreate) -> StockDB:
        """
        新增股票

        Raises:
            ConflictError: 代码已存在
            NotFoundError: 行业不存在
        """
        values = data.model_dump()
        values["symbol"] = values["symbol"].strip().upper()

        self._check_symbol_free(values["symbol"])
        self._check_sector(values.get("sector_id"))

        stock = StockDB(**values)
        self.db.add(stock)
        self.db.commit()
        self.db.refresh(stock)

        logger.info(f"新增股票目录: {stock.symbol} ({stock.company_name})")
        return stock

    def get_by_id(self, stock_id: int) -> Optional[StockDB]:
        return self._query().filter(StockDB.id == stock_id).first()

    def get_by_symbol(self, symbol: str) -> Optional[StockDB]:
        return self._query().filter(StockDB.symbol == symbol.strip().upper()).first()

    def list(
        self,
        sector_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[StockDB], int]:
        """
        分页查询

        Returns:
            (当前页股票, 总数)
        """
        limit = max(1, min(limit, 100))
        offset = max(0, offset)

        query = self.db.query(StockDB)
        if sector_id is not None:
            query = query.filter(StockDB.sector_id == sector_id)
        if search:
            # 用户输入中的通配符按字面匹配
            term = search.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            pattern = f"%{term}%"
            query = query.filter(or_(
                StockDB.symbol.ilike(pattern, escape="\\"),
                StockDB.company_name.ilike(pattern, escape="\\"),
            ))

        total = query.count()
        items = (
            query.options(joinedload(StockDB.sector))
            .order_by(StockDB.company_name.asc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return items, total

    def update(self, stock_id: int, data: StockUpdate) -> StockDB:
        """
        只更新传入的字段

        Raises:
            NotFoundError: 股票或行业不存在
            ConflictError: 新代码已被占用
        """
        stock = self.get_by_id(stock_id)
        if not stock:
            raise NotFoundError(f"Stock {stock_id} not found")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("symbol"):
            changes["symbol"] = changes["symbol"].strip().upper()
            self._check_symbol_free(changes["symbol"], exclude_id=stock_id)
        if "sector_id" in changes:
            self._check_sector(changes["sector_id"])

        for field, value in changes.items():
            setattr(stock, field, value)
        stock.updated_at = datetime.now()

        self.db.commit()
        self.db.refresh(stock)
        return stock

    def delete(self, stock_id: int) -> bool:
        self.db.query(WatchlistDB).filter(WatchlistDB.stock_id == stock_id).delete()
        deleted = self.db.query(StockDB).filter(StockDB.id == stock_id).delete()
        self.db.commit()
        if deleted:
            logger.info(f"删除股票目录: id={stock_id}")
        return deleted > 0

    def get_or_create_sector(self, name: str, description: Optional[str] = None) -> SectorDB:
        """获取或创建行业"""
        sector = self.db.query(SectorDB).filter(SectorDB.name == name).first()
        if sector:
            return sector

        sector = SectorDB(name=name, description=description)
        self.db.add(sector)
        self.db.commit()
        self.db.refresh(sector)
        logger.info(f"新增行业: {name}")
        return sector
