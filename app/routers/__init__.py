"""
API路由模块
按业务分组：health / auth / stocks / catalog / watchlist / market / keys
"""

from app.routers import auth, catalog, health, keys, market, stocks, watchlist

__all__ = ["auth", "catalog", "health", "keys", "market", "stocks", "watchlist"]
