"""业务服务模块"""

from app.services.cache import CacheService, DataType, cache_service
from app.services.api_keys import ApiKeyManager
from app.services.stock_api import StockApiService
from app.services.auth import AuthService
from app.services.users import UserService
from app.services.catalog import StockCatalogService

__all__ = [
    "CacheService",
    "DataType",
    "cache_service",
    "ApiKeyManager",
    "StockApiService",
    "AuthService",
    "UserService",
    "StockCatalogService"
]
