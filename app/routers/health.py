"""健康检查和配置信息"""

import time
from datetime import datetime

from fastapi import APIRouter, Depends, Request

from app import __version__
from app.config import settings
from app.database.db import get_db_manager
from app.models.response import success
from app.routers.deps import get_stock_service
from app.services.api_keys import mask_api_key
from app.services.stock_api import StockApiService

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """健康检查"""
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return success({
        "status": "UP",
        "timestamp": datetime.now().isoformat(),
        "uptime": round(time.monotonic() - started_at, 3),
        "environment": settings.app_env,
        "database": "UP" if get_db_manager().ping() else "DOWN",
    })


@router.get("/config")
async def get_config(service: StockApiService = Depends(get_stock_service)):
    """当前配置（API key 已脱敏）"""
    current = service.key_manager.current
    return success({
        "api_key": mask_api_key(current.key) if current else "Not configured",
        "available_keys": service.key_manager.available_count(),
        "version": __version__,
        "environment": settings.app_env,
    })
