"""
统一响应格式 {status, data, message}
"""

from typing import Any


def success(data: Any = None, message: str = "Request successful") -> dict:
    """成功响应"""
    return {"status": "success", "data": data, "message": message}


def error(message: str = "Request failed", data: Any = None) -> dict:
    """失败响应"""
    return {"status": "error", "data": data, "message": message}
