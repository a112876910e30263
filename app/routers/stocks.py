"""
股票行情接口（上游 indianapi）

注意：固定路径（search/top-gainers/top-losers）必须在 /stocks/{symbol} 之前注册
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.exceptions import NotFoundError
from app.models.response import success
from app.routers.deps import get_stock_service
from app.services.stock_api import StockApiService

router = APIRouter(prefix="/api", tags=["stocks"])


@router.get("/stocks")
async def get_all_stocks(service: StockApiService = Depends(get_stock_service)):
    """涨跌榜原始数据"""
    return success(await service.get_all_stocks())


@router.get("/stocks/search")
async def search_stocks(
    query: Optional[str] = Query(default=None, description="公司名称或代码，至少2个字符"),
    service: StockApiService = Depends(get_stock_service),
):
    """
    搜索股票

    - **query**: 少于2个字符返回空结果
    """
    return success(await service.search_stocks(query))


@router.get("/stocks/top-gainers")
async def get_top_gainers(service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_top_gainers())


@router.get("/stocks/top-losers")
async def get_top_losers(service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_top_losers())


@router.get("/stocks/{symbol}/historical")
async def get_historical_data(
    symbol: str,
    period: str = Query(default="1yr", description="1m, 6m, 1yr, 3yr, 5yr, 10yr, max"),
    filter: str = Query(default="price", description="default, price, pe, sm, evebitda, ptb, mcs"),
    service: StockApiService = Depends(get_stock_service),
):
    """
    获取历史数据

    - **symbol**: 股票名称或代码
    - **period**: 时间周期
    - **filter**: 数据类型
    """
    points = await service.get_historical_data(symbol, period=period, filter=filter)
    return success({"symbol": symbol, "period": period, "filter": filter, "data": points})


@router.get("/stocks/{symbol}/ratios")
async def get_financial_ratios(symbol: str, service: StockApiService = Depends(get_stock_service)):
    """
    财务比率

    返回 pe_ratio, pb_ratio, ev_ebitda, roe, net_profit_margin, gross_profit_margin，缺失的为 null
    """
    return success(await service.get_financial_ratios(symbol))


@router.get("/stocks/{symbol}/financials/{statement_type}")
async def get_financial_statement(
    symbol: str,
    statement_type: str,
    service: StockApiService = Depends(get_stock_service),
):
    """
    财务报表

    - **statement_type**: cashflow, yoy_results, quarter_results, balancesheet
    """
    return success(await service.get_financial_statement(symbol, statement_type))


@router.get("/stocks/{symbol}/corporate-actions")
async def get_corporate_actions(symbol: str, service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_corporate_actions(symbol))


@router.get("/stocks/{symbol}/announcements")
async def get_announcements(symbol: str, service: StockApiService = Depends(get_stock_service)):
    return success(await service.get_recent_announcements(symbol))


@router.get("/stocks/{symbol}")
async def get_stock(symbol: str, service: StockApiService = Depends(get_stock_service)):
    """
    获取个股详情

    - **symbol**: 股票代码，如 RELIANCE, TCS
    """
    stock = await service.get_stock_by_symbol(symbol)
    if stock is None:
        raise NotFoundError(f"Stock {symbol} not found")
    return success(stock)


@router.get("/stock/{symbol}")
async def get_stock_alias(symbol: str, service: StockApiService = Depends(get_stock_service)):
    """/stocks/{symbol} 的别名"""
    return await get_stock(symbol, service)
