"""
配置管理模块
使用pydantic-settings管理环境变量和应用配置
"""

from pathlib import Path
from typing import List, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from app.utils.helpers import parse_duration


class Settings(BaseSettings):
    """应用配置类"""

    # 运行环境
    app_env: Literal["development", "production", "test"] = Field(default="development", alias="APP_ENV")
    port: int = Field(default=5000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    logs_path: str = Field(default="./logs", alias="LOGS_DIR")

    # 数据库配置
    database_url: str = Field(default="sqlite:///./data/stock_sense.db", alias="DATABASE_URL")
    db_echo: bool = Field(default=False, alias="DB_ECHO")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")
    db_pool_timeout: int = Field(default=2, alias="DB_POOL_TIMEOUT")  # 等待连接（秒）
    db_pool_recycle: int = Field(default=30, alias="DB_POOL_RECYCLE")  # 空闲回收（秒）

    # JWT配置
    jwt_secret: str = Field(default="development_jwt_secret_key_2025", alias="JWT_SECRET")
    jwt_expires_in: str = Field(default="7d", alias="JWT_EXPIRES_IN")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    cors_origin: str = Field(default="http://localhost:3000", alias="CORS_ORIGIN")

    # 上游股票API配置
    stock_api_key: str = Field(default="", alias="STOCK_API_KEY")
    stock_api_keys: str = Field(default="", alias="STOCK_API_KEYS")  # 逗号分隔的备用key
    stock_api_base_url: str = Field(default="https://stock.indianapi.in", alias="STOCK_API_BASE_URL")
    stock_api_timeout: float = Field(default=10.0, alias="STOCK_API_TIMEOUT")

    # API key 轮换
    api_keys_file: str = Field(default="", alias="API_KEYS_FILE")
    api_monthly_limit: int = Field(default=500, alias="API_MONTHLY_LIMIT")
    admin_password: str = Field(default="admin123", alias="ADMIN_PASSWORD")

    # 缓存有效期（秒）
    cache_ttl_default: int = Field(default=300, alias="CACHE_TTL_DEFAULT")
    cache_ttl_market_data: int = Field(default=900, alias="CACHE_TTL_MARKET_DATA")
    cache_ttl_stock_data: int = Field(default=1800, alias="CACHE_TTL_STOCK_DATA")
    cache_ttl_search_results: int = Field(default=60, alias="CACHE_TTL_SEARCH_RESULTS")
    cache_ttl_historical_data: int = Field(default=3600, alias="CACHE_TTL_HISTORICAL_DATA")
    cache_ttl_financial_data: int = Field(default=7200, alias="CACHE_TTL_FINANCIAL_DATA")
    cache_cleanup_interval: int = Field(default=300, alias="CACHE_CLEANUP_INTERVAL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError(f"PORT 超出范围: {value}")
        return value

    @field_validator(
        "cache_ttl_default",
        "cache_ttl_market_data",
        "cache_ttl_stock_data",
        "cache_ttl_search_results",
        "cache_ttl_historical_data",
        "cache_ttl_financial_data",
        "cache_cleanup_interval",
        "api_monthly_limit",
    )
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("必须为正整数")
        return value

    @field_validator("jwt_expires_in")
    @classmethod
    def _check_expires_in(cls, value: str) -> str:
        parse_duration(value)
        return value

    @model_validator(mode="after")
    def _check_production(self) -> "Settings":
        if self.app_env == "production" and not self.jwt_secret.strip():
            raise ValueError("生产环境必须配置 JWT_SECRET")
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def jwt_expires_seconds(self) -> int:
        return parse_duration(self.jwt_expires_in)

    @property
    def initial_api_keys(self) -> List[str]:
        """主key在前，备用key按配置顺序"""
        keys = [self.stock_api_key] if self.stock_api_key else []
        keys.extend(k.strip() for k in self.stock_api_keys.split(",") if k.strip())
        return keys

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]

    @property
    def logs_dir(self) -> Path:
        """日志目录"""
        path = Path(self.logs_path)
        path.mkdir(parents=True, exist_ok=True)
        return path


# 全局配置实例
settings = Settings()
