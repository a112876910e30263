"""
自选股接口

所有接口需要登录
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.models.response import success
from app.models.stock import WatchlistAdd, WatchlistItem
from app.models.user import TokenPayload
from app.routers.deps import get_current_user
from app.services.watchlist import WatchlistService

router = APIRouter(prefix="/api/watchlist", tags=["watchlist"])


@router.get("")
async def get_watchlist(user: TokenPayload = Depends(get_current_user), db: Session = Depends(get_db)):
    """当前用户的自选股列表"""
    items = WatchlistService(db).list(user.user_id)
    return success([WatchlistItem.model_validate(item) for item in items])


@router.post("", status_code=201)
async def add_to_watchlist(
    body: WatchlistAdd,
    user: TokenPayload = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    添加自选股

    - 股票不在目录中返回 404
    - 已在自选股中返回 409
    """
    item = WatchlistService(db).add(user.user_id, body.stock_id)
    return success(WatchlistItem.model_validate(item), "Stock added to watchlist")


@router.delete("/{stock_id}")
async def remove_from_watchlist(
    stock_id: int,
    user: TokenPayload = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    WatchlistService(db).remove(user.user_id, stock_id)
    return success(message="Stock removed from watchlist")
