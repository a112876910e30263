"""
数据库表结构定义
使用SQLAlchemy ORM
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UserDB(Base):
    """用户表"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)  # bcrypt哈希
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(String(50), nullable=False, default="user")
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class SectorDB(Base):
    """行业板块表"""
    __tablename__ = "sectors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    stocks = relationship("StockDB", back_populates="sector")

    def __repr__(self):
        return f"<Sector(name={self.name})>"


class StockDB(Base):
    """股票目录表"""
    __tablename__ = "stocks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String(20), unique=True, nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    sector_id = Column(Integer, ForeignKey("sectors.id"), nullable=True)
    current_price = Column(Float, nullable=True)
    market_cap = Column(Float, nullable=True)
    pe_ratio = Column(Float, nullable=True)
    dividend_yield = Column(Float, nullable=True)
    logo_url = Column(String(500), nullable=True)
    website_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    founded_year = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    sector = relationship("SectorDB", back_populates="stocks")

    @property
    def sector_name(self):
        return self.sector.name if self.sector else None

    def __repr__(self):
        return f"<Stock(symbol={self.symbol}, name={self.company_name})>"


class StockDataDB(Base):
    """上游API响应存档表（上游失败时的兜底数据）"""
    __tablename__ = "stock_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    query = Column(String(255), unique=True, nullable=False)
    data = Column(JSON, nullable=False)
    fetched_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, index=True)

    __table_args__ = (
        Index('idx_stock_data_query', 'query'),
    )

    def __repr__(self):
        return f"<StockData(query={self.query}, fetched_at={self.fetched_at})>"


class WatchlistDB(Base):
    """用户自选股表"""
    __tablename__ = "watchlist"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    stock_id = Column(Integer, ForeignKey("stocks.id", ondelete="CASCADE"), nullable=False)
    added_at = Column(DateTime, default=datetime.now)

    stock = relationship("StockDB")

    __table_args__ = (
        UniqueConstraint("user_id", "stock_id", name="uq_watchlist_user_stock"),
    )

    def __repr__(self):
        return f"<Watchlist(user_id={self.user_id}, stock_id={self.stock_id})>"
