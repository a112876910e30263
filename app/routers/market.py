"""市场数据接口"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.models.response import success
from app.routers.deps import get_stock_service
from app.services.stock_api import StockApiService
from app.utils.helpers import IST, get_market_status

router = APIRouter(prefix="/api", tags=["market"])


@router.get("/ipo")
async def get_ipo(service: StockApiService = Depends(get_stock_service)):
    """IPO列表（已展开状态分组）"""
    return success(await service.get_ipo_data())


@router.get("/news")
async def get_news(service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_market_news())


@router.get("/market-indices")
async def get_market_indices(service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_market_indices())


@router.get("/52-week-high-low")
async def get_52_week_high_low(service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_52_week_high_low())


@router.get("/most-active")
async def get_most_active(
    exchange: str = Query(default="NSE", description="NSE 或 BSE"),
    service: StockApiService = Depends(get_stock_service),
):
    """最活跃股票，exchange 非 NSE/BSE 返回 400"""
    return success(await service.get_most_active(exchange))


@router.get("/price-shockers")
async def get_price_shockers(service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_price_shockers())


@router.get("/commodities")
async def get_commodities(service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_commodities())


@router.get("/mutual-funds")
async def get_mutual_funds(service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_mutual_funds())


@router.get("/mutual-funds/search")
async def search_mutual_funds(
    query: Optional[str] = Query(default=None, description="基金名称，至少2个字符"),
    service: StockApiService = Depends(get_stock_service),
):
    return success(await service.search_mutual_funds(query))


@router.get("/industry-search")
async def search_industry(
    query: Optional[str] = Query(default=None, description="行业名称，至少2个字符"),
    service: StockApiService = Depends(get_stock_service),
):
    """按行业搜索股票"""
    return success(await service.search_industry(query))


@router.get("/market-status")
async def market_status():
    """NSE 交易状态（印度时间）"""
    now = datetime.now(IST)
    status, message = get_market_status(now)
    return success({
        "status": status,
        "message": message,
        "is_open": status == "open",
        "timestamp": now.isoformat(),
        "timezone": "Asia/Kolkata",
    })


@router.get("/cache/stats")
async def cache_stats(service: StockApiService = Depends(get_stock_service)):
    return success(service.get_cache_stats())
