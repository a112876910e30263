"""
API key 轮换管理
维护多个上游API key，遇到限速或月度配额用尽时自动切换
"""

import asyncio
import json
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger

from app.exceptions import NoApiKeyAvailableError

PLACEHOLDER_PREFIX = "YOUR_API_KEY"


def _current_month(now: float) -> str:
    return datetime.fromtimestamp(now, tz=timezone.utc).strftime("%Y-%m")


def mask_api_key(key: str) -> str:
    """只显示key的首尾部分"""
    if not key or len(key) <= 14:
        return "***"
    return f"{key[:10]}...{key[-4:]}"


@dataclass
class ApiKeyState:
    """单个API key的状态"""
    key: str
    rate_limit_reset_at: float = 0        # 限速解除时间（epoch秒）
    is_available: bool = True
    usage_count: int = 0
    monthly_usage: int = 0
    last_month_reset: str = ""            # YYYY-MM
    last_error_at: float = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiKeyState":
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


class ApiKeyManager:
    """
    API key 管理器

    功能：
    1. 记录每个key的限速状态和月度用量
    2. 限速到期后自动恢复可用
    3. 按顺序轮换到下一个可用key
    4. 可选地将状态持久化到JSON文件

    autosave=False 时只标记状态已变更，由 flush() 在线程池中写文件，
    避免在事件循环里做阻塞IO
    """

    def __init__(
        self,
        keys_file: Optional[str] = None,
        initial_keys: Iterable[str] = (),
        monthly_limit: int = 500,
        clock: Callable[[], float] = time.time,
        autosave: bool = True,
    ):
        self.keys_file = Path(keys_file) if keys_file else None
        self.monthly_limit = monthly_limit
        self._clock = clock
        self.autosave = autosave
        self._dirty = False
        self._flush_lock: Optional[asyncio.Lock] = None
        self.keys: List[ApiKeyState] = []
        self.current_index = 0
        self._load_keys(list(initial_keys))

    # ==================== 加载/保存 ====================

    def _load_keys(self, initial_keys: List[str]) -> None:
        """从配置文件加载key，文件不存在时使用初始key"""
        month = _current_month(self._clock())
        loaded: List[ApiKeyState] = []

        if self.keys_file and self.keys_file.exists():
            try:
                config = json.loads(self.keys_file.read_text(encoding="utf-8"))
                loaded = [ApiKeyState.from_dict(item) for item in config.get("keys", [])]
            except (OSError, ValueError, TypeError) as e:
                logger.error(f"读取API key配置失败: {self.keys_file}, 错误: {e}")

        if not loaded:
            loaded = [ApiKeyState(key=k, last_month_reset=month) for k in initial_keys]

        # 过滤占位符和重复key
        seen = set()
        for state in loaded:
            if not state.key or state.key.startswith(PLACEHOLDER_PREFIX) or state.key in seen:
                continue
            seen.add(state.key)
            if not state.last_month_reset:
                state.last_month_reset = month
            self.keys.append(state)

        self._refresh_availability()
        self._check_monthly_reset()
        self.save_keys()

        logger.info(f"加载 {len(self.keys)} 个API key，其中 {self.available_count()} 个可用")

        if self.keys and not self._is_usable(self.keys[self.current_index]):
            self.rotate_to_next_available_key()

    def _dump_state(self) -> str:
        return json.dumps({"keys": [asdict(state) for state in self.keys]}, indent=2)

    def _write_state(self, text: str) -> None:
        try:
            self.keys_file.parent.mkdir(parents=True, exist_ok=True)
            self.keys_file.write_text(text, encoding="utf-8")
        except OSError as e:
            logger.error(f"保存API key配置失败: {e}")

    def save_keys(self) -> None:
        """同步保存key状态到配置文件"""
        self._dirty = False
        if not self.keys_file:
            return
        self._write_state(self._dump_state())

    async def flush(self) -> None:
        """有未保存的变更时，在线程池中写入配置文件"""
        if self._flush_lock is None:
            self._flush_lock = asyncio.Lock()
        async with self._flush_lock:
            if not self._dirty:
                return
            self._dirty = False
            if not self.keys_file:
                return
            text = self._dump_state()
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._write_state, text)

    def _changed(self) -> None:
        self._dirty = True
        if self.autosave:
            self.save_keys()

    # ==================== 状态维护 ====================

    def _is_usable(self, state: ApiKeyState) -> bool:
        return state.is_available and state.monthly_usage < self.monthly_limit

    def _refresh_availability(self) -> None:
        """限速时间已过的key恢复可用"""
        now = self._clock()
        for state in self.keys:
            if not state.is_available and state.rate_limit_reset_at <= now:
                state.is_available = True

    def _check_monthly_reset(self) -> None:
        """跨月时重置月度用量"""
        month = _current_month(self._clock())
        reset = False
        for state in self.keys:
            if state.last_month_reset != month:
                state.monthly_usage = 0
                state.last_month_reset = month
                reset = True
        if reset:
            logger.info(f"月度用量已重置: {month}")
            self._changed()

    def available_count(self) -> int:
        return sum(1 for state in self.keys if self._is_usable(state))

    # ==================== 对外接口 ====================

    @property
    def current(self) -> Optional[ApiKeyState]:
        if not self.keys:
            return None
        if self.current_index >= len(self.keys):
            self.current_index = 0
        return self.keys[self.current_index]

    def get_current_key(self) -> str:
        """
        获取当前可用的key

        Raises:
            NoApiKeyAvailableError: 没有配置key，或全部被限速/用完配额
        """
        self._refresh_availability()
        self._check_monthly_reset()

        state = self.current
        if state is None:
            raise NoApiKeyAvailableError("No stock API key configured")

        if not self._is_usable(state):
            logger.warning(f"当前API key不可用: {mask_api_key(state.key)}")
            if not self.rotate_to_next_available_key():
                raise NoApiKeyAvailableError()

        return self.keys[self.current_index].key

    def rotate_to_next_available_key(self) -> bool:
        """
        从当前key的下一个开始循环查找可用key

        Returns:
            是否找到可用key
        """
        self._refresh_availability()
        self._check_monthly_reset()

        if not self.keys:
            return False

        total = len(self.keys)
        start = (self.current_index + 1) % total
        for offset in range(total):
            index = (start + offset) % total
            if self._is_usable(self.keys[index]):
                if index != self.current_index:
                    logger.info(
                        f"API key 轮换: {self.current_index} -> {index} ({mask_api_key(self.keys[index].key)})"
                    )
                self.current_index = index
                return True

        limited = [s for s in self.keys if not s.is_available and s.monthly_usage < self.monthly_limit]
        if limited:
            wait = max(0.0, min(s.rate_limit_reset_at for s in limited) - self._clock())
            logger.warning(f"所有API key均被限速，最早 {wait:.0f} 秒后恢复")
        else:
            logger.error("所有API key已用完月度配额")
        return False

    def mark_current_key_rate_limited(self, reset_seconds: float = 60) -> bool:
        """
        标记当前key被限速，并尝试切换

        Returns:
            是否切换到了其他可用key
        """
        state = self.current
        if state is None:
            return False

        now = self._clock()
        state.is_available = False
        state.rate_limit_reset_at = now + reset_seconds
        state.last_error_at = now
        logger.warning(f"API key 被限速 {reset_seconds:.0f} 秒: {mask_api_key(state.key)}")

        rotated = self.rotate_to_next_available_key()
        self._changed()
        return rotated

    def record_successful_request(self) -> None:
        """记录当前key成功调用一次"""
        state = self.current
        if state is None:
            return
        state.usage_count += 1
        state.monthly_usage += 1
        if state.monthly_usage >= self.monthly_limit:
            logger.warning(f"API key 已达到月度配额 {self.monthly_limit}: {mask_api_key(state.key)}")
        self._changed()

    def add_key(self, key: str) -> bool:
        """添加key，已存在返回 False"""
        if any(state.key == key for state in self.keys):
            return False
        self.keys.append(ApiKeyState(key=key, last_month_reset=_current_month(self._clock())))
        self._changed()
        logger.info(f"添加API key: {mask_api_key(key)}")
        return True

    def remove_key(self, key: str) -> bool:
        """删除key，不存在返回 False"""
        for index, state in enumerate(self.keys):
            if state.key == key:
                break
        else:
            return False

        current_key = self.current.key if self.current else None
        del self.keys[index]

        # 保持当前key不变；删除的正是当前key时从同一位置继续
        if current_key and current_key != key:
            self.current_index = next(i for i, s in enumerate(self.keys) if s.key == current_key)
        elif self.current_index >= len(self.keys):
            self.current_index = 0

        self._changed()
        logger.info(f"删除API key: {mask_api_key(key)}")
        return True

    def get_all_keys(self) -> List[Dict[str, Any]]:
        """获取所有key状态（key已脱敏）"""
        self._refresh_availability()
        self._check_monthly_reset()

        now = self._clock()
        current = self.current
        result = []
        for state in self.keys:
            reset_time = (
                datetime.fromtimestamp(state.rate_limit_reset_at, tz=timezone.utc).isoformat()
                if state.rate_limit_reset_at > now
                else "Available now"
            )
            result.append({
                "key": mask_api_key(state.key),
                "is_available": state.is_available,
                "reset_time": reset_time,
                "usage_count": state.usage_count,
                "monthly_usage": state.monthly_usage,
                "monthly_limit": self.monthly_limit,
                "monthly_remaining": max(0, self.monthly_limit - state.monthly_usage),
                "monthly_usage_percent": round(state.monthly_usage / self.monthly_limit * 100),
                "is_current": current is not None and state.key == current.key,
            })
        return result
