"""
通用工具函数
"""

import re
from datetime import datetime, time
from typing import List, Optional, Tuple

import pytz

IST = pytz.timezone("Asia/Kolkata")

_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$", re.IGNORECASE)


def normalize_symbol(name: str) -> str:
    """
    规范化股票代码：去掉空格和特殊字符并转为大写

    Args:
        name: 股票代码或名称，如 "Tata Motors", "m&m"

    Returns:
        如 "TATAMOTORS", "MM"
    """
    return re.sub(r"[^a-zA-Z0-9]", "", name.strip()).upper()


def symbol_variations(name: str) -> List[str]:
    """返回上游API可能识别的几种写法（保持顺序去重）"""
    clean = name.strip()
    candidates = [clean, clean.upper(), clean.lower(), normalize_symbol(clean)]
    result: List[str] = []
    for item in candidates:
        if item and item not in result:
            result.append(item)
    return result


def parse_duration(text) -> int:
    """
    解析时长字符串为秒数

    Args:
        text: 如 "7d", "12h", "30m", "45s" 或纯数字（秒）
    """
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        if text <= 0:
            raise ValueError(f"无效的时长: {text}")
        return int(text)

    match = _DURATION_RE.match(str(text))
    if not match:
        raise ValueError(f"无效的时长: {text!r}")

    amount = int(match.group(1))
    unit = (match.group(2) or "s").lower()
    seconds = amount * _DURATION_UNITS[unit]
    if seconds <= 0:
        raise ValueError(f"无效的时长: {text!r}")
    return seconds


def format_number(value: Optional[float], decimals: int = 2) -> str:
    """格式化数字（印度计数单位：Cr / L / K）"""
    if value is None:
        return "N/A"

    if abs(value) >= 1e7:
        return f"{value/1e7:.{decimals}f}Cr"
    if abs(value) >= 1e5:
        return f"{value/1e5:.{decimals}f}L"
    if abs(value) >= 1e3:
        return f"{value/1e3:.{decimals}f}K"

    return f"{value:.{decimals}f}"


def format_inr(value: Optional[float], decimals: int = 2) -> str:
    """
    按印度习惯分组格式化卢比金额

    例如 12345678.9 -> ₹1,23,45,678.90
    """
    if value is None:
        return "N/A"

    sign = "-" if value < 0 else ""
    whole, _, frac = f"{abs(value):.{decimals}f}".partition(".")

    # 最后三位一组，其余两位一组
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    return f"{sign}₹{whole}" + (f".{frac}" if frac else "")


def format_percent(value: Optional[float], decimals: int = 2) -> str:
    """格式化百分比"""
    if value is None:
        return "N/A"
    return f"{value:+.{decimals}f}%"


def get_market_status(now: Optional[datetime] = None) -> Tuple[str, str]:
    """
    获取NSE市场状态

    Args:
        now: 指定时间（测试用），默认当前印度时间

    Returns:
        (状态, 描述): 如 ("open", "Market open"), ("closed", "Weekend")
    """
    if now is None:
        ist_now = datetime.now(IST)
    elif now.tzinfo is None:
        ist_now = IST.localize(now)
    else:
        ist_now = now.astimezone(IST)

    # 周末休市
    if ist_now.weekday() >= 5:
        return "closed", "Weekend"

    pre_open = time(9, 0)
    market_open = time(9, 15)
    market_close = time(15, 30)
    current_time = ist_now.time()

    if market_open <= current_time <= market_close:
        return "open", "Market open"
    if pre_open <= current_time < market_open:
        return "pre_open", "Pre-open session"
    return "closed", "Market closed"
