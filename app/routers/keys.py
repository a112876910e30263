"""
上游 API key 管理接口

所有接口需要 x-admin-password 请求头
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.exceptions import BadRequestError, ConflictError, NoApiKeyAvailableError, NotFoundError
from app.models.response import success
from app.routers.deps import get_stock_service, verify_admin_password
from app.services.api_keys import mask_api_key
from app.services.stock_api import StockApiService

router = APIRouter(prefix="/api/keys", tags=["keys"], dependencies=[Depends(verify_admin_password)])

KEY_PREFIX = "sk-"
KEY_MIN_LENGTH = 20


class ApiKeyRequest(BaseModel):
    api_key: str


@router.get("")
async def list_keys(service: StockApiService = Depends(get_stock_service)):
    """所有key的状态（已脱敏）"""
    manager = service.key_manager
    return success({
        "keys": manager.get_all_keys(),
        "total": len(manager.keys),
        "available": manager.available_count(),
    })


@router.post("", status_code=201)
async def add_key(body: ApiKeyRequest, service: StockApiService = Depends(get_stock_service)):
    """
    添加key

    - 格式不正确返回 400
    - 已存在返回 409
    """
    key = body.api_key.strip()
    if not key.startswith(KEY_PREFIX) or len(key) < KEY_MIN_LENGTH:
        raise BadRequestError(f"Invalid API key format. Keys start with '{KEY_PREFIX}' and have at least {KEY_MIN_LENGTH} characters")
    if not service.key_manager.add_key(key):
        raise ConflictError("API key already exists")
    await service.key_manager.flush()
    return success({"key": mask_api_key(key)}, "API key added successfully")


@router.delete("")
async def remove_key(body: ApiKeyRequest, service: StockApiService = Depends(get_stock_service)):
    key = body.api_key.strip()
    if not service.key_manager.remove_key(key):
        raise NotFoundError("API key not found")
    await service.key_manager.flush()
    return success({"key": mask_api_key(key)}, "API key removed successfully")


@router.post("/rotate")
async def rotate_key(service: StockApiService = Depends(get_stock_service)):
    """手动切换到下一个可用key，没有可用key时返回 503"""
    manager = service.key_manager
    if not manager.rotate_to_next_available_key():
        raise NoApiKeyAvailableError()
    await manager.flush()
    return success({"current_key": mask_api_key(manager.current.key)}, "Rotated to next available API key")
