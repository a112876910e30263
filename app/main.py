"""
FastAPI 主入口
提供印度股市数据的RESTful API接口
"""

import sys
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import __version__
from app.config import settings
from app.database.db import get_db_manager
from app.exceptions import StockSenseError
from app.models.response import error, success
from app.routers import auth, catalog, health, keys, market, stocks, watchlist
from app.services.cache import cache_service
from app.services.stock_api import create_stock_api_service

# 配置日志
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=settings.log_level
)
logger.add(
    settings.logs_dir / "app_{time:YYYY-MM-DD}.log",
    rotation="1 day",
    retention="30 days",
    level="DEBUG"
)


def _error_response(status_code: int, message: str, data: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(error(message, data)))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭"""
    logger.info(f"Stock Sense API 启动中... (环境: {settings.app_env})")
    db_manager = get_db_manager()
    logger.info("数据库初始化完成")

    # 测试中可以预先注入服务
    owns_service = getattr(app.state, "stock_service", None) is None
    if owns_service:
        app.state.stock_service = create_stock_api_service(db_manager)
    app.state.started_at = time.monotonic()
    cache_service.start_cleanup()

    yield

    await cache_service.stop_cleanup()
    await app.state.stock_service.key_manager.flush()
    if owns_service:
        await app.state.stock_service.aclose()
        app.state.stock_service = None
    logger.info("Stock Sense API 已关闭")


def create_app() -> FastAPI:
    """创建FastAPI应用"""
    app = FastAPI(
        title="Stock Sense API",
        description="印度股市数据服务 - 行情代理、缓存与API key轮换",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.stock_service = None
    app.state.started_at = time.monotonic()

    # 配置CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed:.1f}ms)")
        return response

    @app.exception_handler(StockSenseError)
    async def handle_business_error(request: Request, exc: StockSenseError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} 失败: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return _error_response(422, "Validation failed", exc.errors())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"{request.method} {request.url.path} 未处理的异常: {exc}")
        message = "Internal server error" if settings.is_production else str(exc)
        return _error_response(500, message)

    @app.get("/")
    async def root():
        """根路由"""
        return success({
            "name": "Stock Sense API",
            "version": __version__,
            "status": "running",
            "docs": "/docs"
        })

    for module in (health, auth, stocks, catalog, watchlist, market, keys):
        app.include_router(module.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production
    )
