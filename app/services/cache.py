"""
内存缓存服务
按数据类型设置不同的有效期（TTL），并合并同一key的并发未命中请求
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from loguru import logger

from app.config import settings


class DataType(str, Enum):
    """缓存数据类型"""
    DEFAULT = "DEFAULT"
    MARKET_DATA = "MARKET_DATA"            # 行情类，变化较快
    STOCK_DATA = "STOCK_DATA"              # 个股详情
    SEARCH_RESULTS = "SEARCH_RESULTS"      # 搜索结果
    HISTORICAL_DATA = "HISTORICAL_DATA"    # 历史数据，变化较慢
    FINANCIAL_DATA = "FINANCIAL_DATA"      # 财务数据，变化最慢


DEFAULT_TTL: Dict[DataType, int] = {
    DataType.DEFAULT: settings.cache_ttl_default,
    DataType.MARKET_DATA: settings.cache_ttl_market_data,
    DataType.STOCK_DATA: settings.cache_ttl_stock_data,
    DataType.SEARCH_RESULTS: settings.cache_ttl_search_results,
    DataType.HISTORICAL_DATA: settings.cache_ttl_historical_data,
    DataType.FINANCIAL_DATA: settings.cache_ttl_financial_data,
}


class _LoaderCancelled(Exception):
    """加载中的请求被取消，通知等待者重试"""


@dataclass
class CacheEntry:
    """缓存条目"""
    value: Any
    expires_at: Optional[float]  # None 表示永不过期
    created_at: float = field(default_factory=time.time)

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now if now is not None else time.time())


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    cleanups: int = 0


class CacheService:
    """
    简单的键值TTL缓存

    - get 时惰性删除过期条目
    - cleanup 定期批量清理
    - get_or_set 合并并发未命中：同一key只会有一个加载中的请求
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._store: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Future] = {}
        self._stats = CacheStats()
        self._clock = clock
        self._cleanup_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    @staticmethod
    def resolve_ttl(ttl: Union[DataType, int, None]) -> Optional[int]:
        """DataType 转换为秒数，整数原样返回"""
        if isinstance(ttl, DataType):
            return DEFAULT_TTL[ttl]
        return ttl

    def get(self, key: str) -> Any:
        """
        获取缓存值

        Returns:
            缓存值，不存在或已过期返回 None
        """
        entry = self._store.get(key)

        if entry is None:
            self._stats.misses += 1
            return None

        if entry.is_expired(self._clock()):
            del self._store[key]
            self._stats.misses += 1
            return None

        self._stats.hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Union[DataType, int, None] = DataType.DEFAULT) -> None:
        """
        写入缓存

        Args:
            key: 缓存key
            value: 缓存值
            ttl: 有效期（秒）或数据类型，0/None 表示永不过期
        """
        seconds = self.resolve_ttl(ttl)
        now = self._clock()
        expires_at = now + seconds if seconds else None
        self._store[key] = CacheEntry(value=value, expires_at=expires_at, created_at=now)
        self._stats.sets += 1

    def delete(self, key: str) -> bool:
        """删除缓存，返回是否存在"""
        if self._store.pop(key, None) is not None:
            self._stats.deletes += 1
            return True
        return False

    def clear(self) -> None:
        """清空全部缓存"""
        self._store.clear()
        logger.info("缓存已清空")

    def cleanup(self) -> int:
        """清理所有过期条目，返回清理数量"""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]

        if expired:
            self._stats.cleanups += 1
            logger.info(f"缓存清理: 移除 {len(expired)} 条过期数据，当前 {len(self._store)} 条")
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """获取缓存统计"""
        lookups = self._stats.hits + self._stats.misses
        hit_rate = f"{self._stats.hits / lookups * 100:.2f}%" if lookups else "0%"
        return {
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "sets": self._stats.sets,
            "deletes": self._stats.deletes,
            "cleanups": self._stats.cleanups,
            "items": len(self._store),
            "inflight": len(self._inflight),
            "hit_rate": hit_rate,
        }

    async def get_or_set(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: Union[DataType, int, None] = DataType.DEFAULT,
    ) -> Any:
        """
        读取缓存，未命中时调用 loader 加载并写入

        同一key并发未命中时，只有第一个调用者执行 loader，
        其余调用者等待同一结果（包括异常）。loader 失败时不写入缓存。
        第一个调用者被取消时，等待者重新竞争执行 loader。

        Args:
            key: 缓存key
            loader: 无参异步加载函数
            ttl: 有效期（秒）或数据类型
        """
        while True:
            cached = self.get(key)
            if cached is not None:
                return cached

            pending = self._inflight.get(key)
            if pending is None:
                break
            logger.debug(f"等待进行中的请求: {key}")
            try:
                return await asyncio.shield(pending)
            except _LoaderCancelled:
                logger.debug(f"进行中的请求被取消，重试: {key}")

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await loader()
        except asyncio.CancelledError:
            future.set_exception(_LoaderCancelled())
            future.exception()
            raise
        except Exception as e:
            future.set_exception(e)
            # 没有其他等待者时避免 "exception was never retrieved" 警告
            future.exception()
            raise
        else:
            if value is not None:
                self.set(key, value, ttl)
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    # ==================== 定期清理 ====================

    def start_cleanup(self, interval: Optional[int] = None) -> None:
        """启动后台定期清理任务（需在事件循环中调用）"""
        if self._cleanup_task and not self._cleanup_task.done():
            return
        self._stop_event = asyncio.Event()
        self._cleanup_task = asyncio.create_task(
            self._cleanup_loop(interval or settings.cache_cleanup_interval)
        )

    async def stop_cleanup(self) -> None:
        """停止后台清理任务"""
        if not self._cleanup_task:
            return
        self._stop_event.set()
        await self._cleanup_task
        self._cleanup_task = None

    async def _cleanup_loop(self, interval: float) -> None:
        logger.info(f"缓存清理任务启动，间隔 {interval} 秒")
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass
            try:
                self.cleanup()
            except Exception as e:
                logger.error(f"缓存清理异常: {e}")
        logger.info("缓存清理任务结束")


# 全局共享缓存实例
cache_service = CacheService()
