"""
本地股票目录接口

读接口公开，写接口需要 admin 角色
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.exceptions import NotFoundError
from app.models.response import success
from app.models.stock import StockCreate, StockOut, StockPage, StockUpdate
from app.routers.deps import require_role
from app.services.catalog import StockCatalogService

router = APIRouter(prefix="/api/catalog", tags=["catalog"])

require_admin = require_role("admin")


@router.get("/stocks")
async def list_stocks(
    sector_id: Optional[int] = Query(default=None),
    search: Optional[str] = Query(default=None, description="按代码或公司名称模糊匹配"),
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    """分页查询股票目录"""
    items, total = StockCatalogService(db).list(sector_id=sector_id, search=search, limit=limit, offset=offset)
    page = StockPage(
        items=[StockOut.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )
    return success(page)


@router.get("/stocks/{symbol}")
async def get_stock(symbol: str, db: Session = Depends(get_db)):
    stock = StockCatalogService(db).get_by_symbol(symbol)
    if not stock:
        raise NotFoundError(f"Stock {symbol} not found")
    return success(StockOut.model_validate(stock))


@router.post("/stocks", status_code=201, dependencies=[Depends(require_admin)])
async def create_stock(data: StockCreate, db: Session = Depends(get_db)):
    """
    新增股票

    - 代码重复返回 409
    - 行业不存在返回 404
    """
    stock = StockCatalogService(db).create(data)
    return success(StockOut.model_validate(stock), "Stock created successfully")


@router.put("/stocks/{stock_id}", dependencies=[Depends(require_admin)])
async def update_stock(stock_id: int, data: StockUpdate, db: Session = Depends(get_db)):
    stock = StockCatalogService(db).update(stock_id, data)
    return success(StockOut.model_validate(stock), "Stock updated successfully")


@router.delete("/stocks/{stock_id}", dependencies=[Depends(require_admin)])
async def delete_stock(stock_id: int, db: Session = Depends(get_db)):
    if not StockCatalogService(db).delete(stock_id):
        raise NotFoundError(f"Stock {stock_id} not found")
    return success(message="Stock deleted successfully")
