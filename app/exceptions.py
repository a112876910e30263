"""
业务异常定义
每个异常携带对应的HTTP状态码，由 app.main 中的全局处理器转换为统一响应
"""

from typing import Optional


class StockSenseError(Exception):
    """业务异常基类"""

    status_code: int = 500
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class UpstreamAPIError(StockSenseError):
    """上游股票API调用失败"""
    status_code = 502
    default_message = "Upstream stock API request failed"


class NoApiKeyAvailableError(StockSenseError):
    """所有API key均被限速或用完月度配额"""
    status_code = 503
    default_message = "No available API keys. All keys are rate limited or over quota."


class BadRequestError(StockSenseError):
    status_code = 400
    default_message = "Bad request"


class AuthenticationError(StockSenseError):
    status_code = 401
    default_message = "Unauthorized"


class PermissionDeniedError(StockSenseError):
    status_code = 403
    default_message = "Forbidden - Insufficient privileges"


class NotFoundError(StockSenseError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(StockSenseError):
    status_code = 409
    default_message = "Resource already exists"
