"""数据模型模块"""

from app.models.stock import (
    SearchResult,
    SearchResponse,
    HistoricalDataPoint,
    NewsItem,
    IpoItem,
    TrendingStocks,
    StockCreate,
    StockUpdate,
    StockOut,
    StockPage
)
from app.models.user import UserCreate, UserLogin, UserUpdate, UserProfile, AuthResult, TokenPayload

__all__ = [
    "SearchResult",
    "SearchResponse",
    "HistoricalDataPoint",
    "NewsItem",
    "IpoItem",
    "TrendingStocks",
    "StockCreate",
    "StockUpdate",
    "StockOut",
    "StockPage",
    "UserCreate",
    "UserLogin",
    "UserUpdate",
    "UserProfile",
    "AuthResult",
    "TokenPayload"
]
