"""
股票相关数据模型
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SearchResult(BaseModel):
    """股票搜索结果"""
    symbol: str
    company_name: str = ""
    latest_price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    sector: Optional[str] = None


class SearchResponse(BaseModel):
    results: List[SearchResult] = Field(default_factory=list)


class HistoricalDataPoint(BaseModel):
    """历史数据点"""
    date: str
    price: Optional[float] = None
    volume: Optional[float] = None


class NewsItem(BaseModel):
    """市场新闻"""
    model_config = ConfigDict(extra="allow")

    id: Optional[Union[str, int]] = None
    title: str = ""
    description: str = ""
    url: str = ""
    date: str = ""
    source: Optional[str] = None
    image_url: Optional[str] = None


class IpoItem(BaseModel):
    """IPO信息，上游字段较多，未列出的字段原样保留"""
    model_config = ConfigDict(extra="allow")

    company_name: str = ""
    symbol: Optional[str] = None
    issue_size: Optional[str] = None
    issue_price: Optional[str] = None
    listing_date: Optional[str] = None
    listing_gain: Optional[str] = None
    status: Optional[str] = None

    @field_validator("symbol", "issue_size", "issue_price", "listing_gain", "listing_date", "status", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)


class TrendingStocks(BaseModel):
    """涨跌榜"""
    top_gainers: List[Dict[str, Any]] = Field(default_factory=list)
    top_losers: List[Dict[str, Any]] = Field(default_factory=list)


# ==================== 本地股票目录 ====================

class StockCreate(BaseModel):
    """新增股票目录"""
    symbol: str = Field(..., min_length=1, max_length=20)
    company_name: str = Field(..., min_length=1, max_length=255)
    sector_id: Optional[int] = None
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    pe_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    description: Optional[str] = None
    founded_year: Optional[int] = None


class StockUpdate(BaseModel):
    """更新股票目录（只更新传入的字段）"""
    symbol: Optional[str] = Field(default=None, min_length=1, max_length=20)
    company_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    sector_id: Optional[int] = None
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    pe_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    description: Optional[str] = None
    founded_year: Optional[int] = None


class StockOut(BaseModel):
    """股票目录响应"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    company_name: str
    sector_id: Optional[int] = None
    sector_name: Optional[str] = None
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    pe_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    description: Optional[str] = None
    founded_year: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StockPage(BaseModel):
    items: List[StockOut]
    total: int
    limit: int
    offset: int


class WatchlistAdd(BaseModel):
    """添加自选股请求"""
    stock_id: int = Field(..., ge=1, description="股票目录ID")


class WatchlistItem(BaseModel):
    """自选股条目"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    stock_id: int
    added_at: Optional[datetime] = None
    stock: StockOut
