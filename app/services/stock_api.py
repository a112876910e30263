"""
上游股票API客户端
封装 stock.indianapi.in 的调用：缓存、API key轮换、响应归一化、失败兜底
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from loguru import logger

from app.config import settings
from app.database.db import DatabaseManager
from app.database.schemas import StockDataDB
from app.exceptions import BadRequestError, NoApiKeyAvailableError, UpstreamAPIError
from app.models.stock import (
    HistoricalDataPoint,
    IpoItem,
    NewsItem,
    SearchResponse,
    SearchResult,
    TrendingStocks,
)
from app.services.api_keys import ApiKeyManager
from app.services.cache import CacheService, DataType, cache_service
from app.utils.helpers import symbol_variations

HISTORICAL_PERIODS = ("1m", "6m", "1yr", "3yr", "5yr", "10yr", "max")
HISTORICAL_FILTERS = ("default", "price", "pe", "sm", "evebitda", "ptb", "mcs")
EXCHANGES = ("NSE", "BSE")
STATEMENT_TYPES = ("cashflow", "yoy_results", "quarter_results", "balancesheet")


def _unwrap(body: Any) -> Any:
    """上游响应有时包一层 data"""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _first(item: Dict[str, Any], *names: str) -> Any:
    """按顺序取第一个非空字段"""
    for name in names:
        value = item.get(name)
        if value not in (None, ""):
            return value
    return None


def _to_float(value: Any) -> Optional[float]:
    """安全地转换为浮点数，兼容 {"NSE": "..", "BSE": ".."} 形式的价格"""
    if isinstance(value, dict):
        value = _first(value, "NSE", "BSE")
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        value = value.replace(",", "").replace("%", "").strip()
        if value in ("", "-", "N/A", "None", "null"):
            return None
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_text(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _as_list(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        return [data] if data else []
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    return []


class StockApiService:
    """
    上游股票API服务

    关键点：
    1. 所有请求经过共享缓存，按数据类型设置TTL
    2. 同一缓存key的并发未命中只发一次上游请求
    3. 遇到429自动切换API key并重试一次
    4. 成功的响应写入 stock_data 表，上游失败时作为兜底数据返回
    """

    def __init__(
        self,
        cache: Optional[CacheService] = None,
        key_manager: Optional[ApiKeyManager] = None,
        db_manager: Optional[DatabaseManager] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache = cache if cache is not None else cache_service
        self.key_manager = key_manager or ApiKeyManager(
            keys_file=settings.api_keys_file or None,
            initial_keys=settings.initial_api_keys,
            monthly_limit=settings.api_monthly_limit,
            autosave=False,
        )
        self.db_manager = db_manager
        self.base_url = (base_url or settings.stock_api_base_url).rstrip("/")

        self.http_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.stock_api_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.http_client.aclose()

    # ==================== 底层请求 ====================

    @staticmethod
    def build_cache_key(
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data_type: DataType = DataType.DEFAULT,
    ) -> str:
        """
        缓存key与参数顺序无关

        包含数据类型：同一上游地址按不同TTL缓存时互不覆盖
        """
        prefix = f"api:{data_type.value}:{path}"
        if not params:
            return prefix
        query = urlencode(sorted((k, str(v)) for k, v in params.items()))
        return f"{prefix}?{query}"

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        发送上游请求，429时切换key重试一次

        Raises:
            UpstreamAPIError: 网络错误或非2xx响应
            NoApiKeyAvailableError: 没有可用key
        """
        for attempt in range(2):
            api_key = self.key_manager.get_current_key()

            try:
                response = await self.http_client.get(path, params=params, headers={"x-api-key": api_key})
            except httpx.TimeoutException as e:
                logger.error(f"上游请求超时: {path}, 错误: {e}")
                raise UpstreamAPIError("Upstream stock API timed out", 504) from e
            except httpx.HTTPError as e:
                logger.error(f"上游请求失败: {path}, 错误: {e}")
                raise UpstreamAPIError(f"Upstream stock API unreachable: {e}", 502) from e

            if response.status_code == 429:
                reset_seconds = self._retry_after(response)
                rotated = self.key_manager.mark_current_key_rate_limited(reset_seconds)
                if rotated and attempt == 0:
                    logger.info(f"上游限速，切换key后重试: {path}")
                    continue
                raise UpstreamAPIError("Upstream rate limit exceeded", 429)

            if response.status_code >= 400:
                message = self._error_message(response)
                logger.error(f"上游返回错误: {path}, 状态码: {response.status_code}, {message}")
                raise UpstreamAPIError(message, response.status_code)

            self.key_manager.record_successful_request()
            try:
                return response.json()
            except ValueError as e:
                raise UpstreamAPIError("Upstream stock API returned invalid JSON", 502) from e

        raise UpstreamAPIError("Upstream rate limit exceeded", 429)

    @staticmethod
    def _retry_after(response: httpx.Response) -> float:
        value = response.headers.get("retry-after")
        try:
            return max(1.0, float(value)) if value else 60.0
        except ValueError:
            return 60.0

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = _first(body, "message", "error", "detail")
            if isinstance(message, str):
                return message
        return f"Upstream stock API returned {response.status_code}"

    async def fetch_with_cache(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data_type: DataType = DataType.DEFAULT,
    ) -> Any:
        """
        带缓存的上游请求

        缓存未命中时请求上游；上游失败时返回 stock_data 中的旧数据（不写回缓存），
        没有旧数据则抛出异常。
        """
        cache_key = self.build_cache_key(path, params, data_type)
        loop = asyncio.get_event_loop()

        async def load() -> Any:
            logger.debug(f"缓存未命中，请求上游: {cache_key}")
            try:
                data = await self._request(path, params)
            finally:
                await self.key_manager.flush()
            await loop.run_in_executor(None, self._save_snapshot, cache_key, data)
            return data

        try:
            return await self.cache.get_or_set(cache_key, load, data_type)
        except (UpstreamAPIError, NoApiKeyAvailableError):
            stale = await loop.run_in_executor(None, self._load_snapshot, cache_key)
            if stale is not None:
                logger.warning(f"上游失败，使用存档数据: {cache_key}")
                return stale
            raise

    def _save_snapshot(self, cache_key: str, data: Any) -> None:
        """保存上游响应到 stock_data 表"""
        if self.db_manager is None or data is None:
            return
        try:
            with self.db_manager.get_session() as session:
                row = session.query(StockDataDB).filter(StockDataDB.query == cache_key).first()
                if row:
                    row.data = data
                    row.fetched_at = datetime.now()
                else:
                    session.add(StockDataDB(query=cache_key, data=data, fetched_at=datetime.now()))
        except Exception as e:
            # 存档失败不影响正常返回
            logger.warning(f"保存存档数据失败: {cache_key}, 错误: {e}")

    def _load_snapshot(self, cache_key: str) -> Any:
        """读取 stock_data 中的存档数据"""
        if self.db_manager is None:
            return None
        try:
            with self.db_manager.get_session() as session:
                row = session.query(StockDataDB).filter(StockDataDB.query == cache_key).first()
                return row.data if row else None
        except Exception as e:
            logger.warning(f"读取存档数据失败: {cache_key}, 错误: {e}")
            return None

    # ==================== 搜索与个股 ====================

    async def search_stocks(self, query: Optional[str]) -> SearchResponse:
        """
        搜索股票

        查询少于2个字符时直接返回空结果，不请求上游
        """
        query = (query or "").strip()
        if len(query) < 2:
            return SearchResponse()

        body = await self.fetch_with_cache("/stock", {"name": query}, DataType.SEARCH_RESULTS)
        results = [self._to_search_result(item) for item in _as_list(_unwrap(body))]
        return SearchResponse(results=[r for r in results if r.symbol])

    @staticmethod
    def _to_search_result(item: Dict[str, Any]) -> SearchResult:
        return SearchResult(
            symbol=str(_first(item, "symbol", "tickerId", "name", "companyName") or ""),
            company_name=str(_first(item, "company_name", "companyName", "name") or ""),
            latest_price=_to_float(_first(item, "current_price", "currentPrice", "price")),
            change=_to_float(item.get("change")),
            change_percent=_to_float(_first(item, "percent_change", "percentChange")),
            sector=_as_text(_first(item, "sector", "industry")),
        )

    async def get_stock_by_symbol(self, symbol: str) -> Optional[Dict[str, Any]]:
        """
        获取个股详情

        依次尝试原始/大写/小写/规范化写法，只有上游404时才尝试下一个；
        上游返回空结果说明股票不存在，直接返回 None
        """
        last_error: Optional[UpstreamAPIError] = None
        for name in symbol_variations(symbol):
            try:
                body = await self.fetch_with_cache("/stock", {"name": name}, DataType.STOCK_DATA)
            except UpstreamAPIError as e:
                if e.status_code != 404:
                    raise
                last_error = e
                continue

            items = _as_list(_unwrap(body))
            if not items:
                logger.info(f"未找到股票: {symbol}")
                return None
            return items[0]

        if last_error:
            logger.info(f"未找到股票: {symbol}")
        return None

    async def get_historical_data(
        self,
        symbol: str,
        period: str = "1yr",
        filter: str = "price",
    ) -> List[HistoricalDataPoint]:
        """
        获取历史数据

        Args:
            symbol: 股票名称或代码
            period: 1m, 6m, 1yr, 3yr, 5yr, 10yr, max
            filter: default, price, pe, sm, evebitda, ptb, mcs
        """
        if period not in HISTORICAL_PERIODS:
            raise BadRequestError(f"Invalid period '{period}'. Allowed: {', '.join(HISTORICAL_PERIODS)}")
        if filter not in HISTORICAL_FILTERS:
            raise BadRequestError(f"Invalid filter '{filter}'. Allowed: {', '.join(HISTORICAL_FILTERS)}")

        body = await self.fetch_with_cache(
            "/historical_data",
            {"stock_name": symbol.strip(), "period": period, "filter": filter},
            DataType.HISTORICAL_DATA,
        )
        data = _unwrap(body)
        if not isinstance(data, dict):
            return []

        # 列式结构 {dates, prices, volumes}
        if isinstance(data.get("dates"), list) and isinstance(data.get("prices"), list):
            volumes = data.get("volumes") if isinstance(data.get("volumes"), list) else []
            return [
                HistoricalDataPoint(
                    date=str(date),
                    price=_to_float(price),
                    volume=_to_float(volumes[i]) if i < len(volumes) else None,
                )
                for i, (date, price) in enumerate(zip(data["dates"], data["prices"]))
            ]

        # datasets 结构 [{metric, values: [[date, value], ...]}]
        datasets = [d for d in data.get("datasets") or [] if isinstance(d, dict)]
        if not datasets:
            return []

        by_metric = {str(d.get("metric", "")).lower(): d.get("values") or [] for d in datasets}
        price_values = by_metric.get("price") or by_metric.get(filter) or (datasets[0].get("values") or [])
        volume_by_date = {
            str(row[0]): _to_float(row[1])
            for row in by_metric.get("volume", [])
            if isinstance(row, (list, tuple)) and len(row) >= 2
        }
        return [
            HistoricalDataPoint(date=str(row[0]), price=_to_float(row[1]), volume=volume_by_date.get(str(row[0])))
            for row in price_values
            if isinstance(row, (list, tuple)) and len(row) >= 2
        ]

    # ==================== 财务数据 ====================

    async def get_financial_statement(self, symbol: str, statement_type: str) -> Any:
        """
        获取财务报表

        Args:
            symbol: 股票名称或代码
            statement_type: cashflow, yoy_results, quarter_results, balancesheet
        """
        if statement_type not in STATEMENT_TYPES:
            raise BadRequestError(f"Invalid statement type. Use one of: {', '.join(STATEMENT_TYPES)}")
        data = _unwrap(await self.fetch_with_cache(
            "/statement",
            {"stock_name": symbol.strip(), "stats": statement_type},
            DataType.FINANCIAL_DATA,
        ))
        return data if data is not None else {}

    async def get_corporate_actions(self, symbol: str) -> Any:
        """分红、配股等公司行为"""
        data = _unwrap(await self.fetch_with_cache(
            "/corporate_actions", {"stock_name": symbol.strip()}, DataType.FINANCIAL_DATA
        ))
        return data if data is not None else {}

    async def get_recent_announcements(self, symbol: str) -> Any:
        data = _unwrap(await self.fetch_with_cache(
            "/recent_announcements", {"stock_name": symbol.strip()}, DataType.FINANCIAL_DATA
        ))
        return data if data is not None else []

    async def _latest_ratio(self, symbol: str, filter: str, metric: str) -> Optional[float]:
        """历史估值数据中指定指标的最新值"""
        data = _unwrap(await self.fetch_with_cache(
            "/historical_data",
            {"stock_name": symbol.strip(), "period": "1yr", "filter": filter},
            DataType.HISTORICAL_DATA,
        ))
        if not isinstance(data, dict):
            return None
        for dataset in data.get("datasets") or []:
            if isinstance(dataset, dict) and dataset.get("metric") == metric:
                values = [row for row in dataset.get("values") or [] if isinstance(row, (list, tuple)) and len(row) >= 2]
                if values:
                    return _to_float(values[-1][1])
        return None

    @staticmethod
    def _margins(results: Any) -> Dict[str, Optional[float]]:
        """根据季度业绩计算净利率和毛利率（营业利润/营收）"""
        margins = {"net_profit_margin": None, "gross_profit_margin": None}
        if not isinstance(results, dict):
            return margins
        # 按季度分组时取最近一期
        if "sales" not in results:
            periods = [v for v in results.values() if isinstance(v, dict)]
            results = periods[-1] if periods else {}

        sales = _to_float(results.get("sales"))
        if not sales or sales <= 0:
            return margins
        net_profit = _to_float(results.get("net_profit"))
        operating_profit = _to_float(results.get("operating_profit"))
        if net_profit is not None:
            margins["net_profit_margin"] = net_profit * 100 / sales
        if operating_profit is not None:
            margins["gross_profit_margin"] = operating_profit * 100 / sales
        return margins

    async def get_financial_ratios(self, symbol: str) -> Dict[str, Optional[float]]:
        """
        汇总财务比率

        数据来源：
        1. 个股详情中的 pe/pb/ev_ebitda/roe
        2. 一年期历史估值数据的最新值（覆盖详情中的值）
        3. 季度业绩计算利润率

        部分来源失败时返回其余数据，全部失败时抛出第一个错误
        """
        symbol = symbol.strip()

        async def load() -> Dict[str, Optional[float]]:
            details, pe, pb, ev_ebitda, quarter = await asyncio.gather(
                self.get_stock_by_symbol(symbol),
                self._latest_ratio(symbol, "pe", "Price to Earning"),
                self._latest_ratio(symbol, "ptb", "Price to book value"),
                self._latest_ratio(symbol, "evebitda", "EV Multiple"),
                self.get_financial_statement(symbol, "quarter_results"),
                return_exceptions=True,
            )
            parts = {"details": details, "pe": pe, "pb": pb, "ev_ebitda": ev_ebitda, "quarter_results": quarter}
            errors = [value for value in parts.values() if isinstance(value, Exception)]
            for name, value in parts.items():
                if isinstance(value, Exception):
                    logger.warning(f"获取 {symbol} 的 {name} 失败: {value}")
            if len(errors) == len(parts):
                raise errors[0]

            result: Dict[str, Optional[float]] = {
                "pe_ratio": None,
                "pb_ratio": None,
                "ev_ebitda": None,
                "roe": None,
                "net_profit_margin": None,
                "gross_profit_margin": None,
            }
            if isinstance(details, dict):
                for field_name in ("pe_ratio", "pb_ratio", "ev_ebitda", "roe"):
                    result[field_name] = _to_float(details.get(field_name))
            for field_name, value in (("pe_ratio", pe), ("pb_ratio", pb), ("ev_ebitda", ev_ebitda)):
                if isinstance(value, float):
                    result[field_name] = value
            if not isinstance(quarter, Exception):
                result.update(self._margins(quarter))
            return result

        cache_key = self.build_cache_key("ratios", {"stock_name": symbol}, DataType.FINANCIAL_DATA)
        return await self.cache.get_or_set(cache_key, load, DataType.FINANCIAL_DATA)

    # ==================== 市场数据 ====================

    async def get_ipo_data(self) -> List[IpoItem]:
        """获取IPO数据，按状态分组的结构会被展开并补充 status 字段"""
        data = _unwrap(await self.fetch_with_cache("/ipo", None, DataType.MARKET_DATA))

        items: List[Dict[str, Any]] = []
        if isinstance(data, list):
            items = _as_list(data)
        elif isinstance(data, dict):
            for status, group in data.items():
                for item in _as_list(group) if isinstance(group, list) else []:
                    items.append({"status": status, **item})

        return [self._to_ipo(item) for item in items]

    @staticmethod
    def _to_ipo(item: Dict[str, Any]) -> IpoItem:
        payload = dict(item)
        payload["company_name"] = str(_first(item, "company_name", "companyName", "name") or "")
        return IpoItem.model_validate(payload)

    async def get_market_news(self) -> List[NewsItem]:
        """获取市场新闻"""
        data = _unwrap(await self.fetch_with_cache("/news", None, DataType.MARKET_DATA))
        news = []
        for index, item in enumerate(_as_list(data) if isinstance(data, list) else []):
            news.append(NewsItem(
                id=_first(item, "id") or index,
                title=str(item.get("title") or ""),
                description=str(_first(item, "description", "summary") or ""),
                url=str(item.get("url") or ""),
                date=str(_first(item, "date", "pub_date", "published_at") or ""),
                source=_as_text(_first(item, "source")),
                image_url=_as_text(_first(item, "image_url", "imageUrl", "thumbnail")),
            ))
        return news

    async def get_trending(self) -> TrendingStocks:
        """获取涨跌榜"""
        data = _unwrap(await self.fetch_with_cache("/trending", None, DataType.MARKET_DATA))
        if isinstance(data, dict) and isinstance(data.get("trending_stocks"), dict):
            data = data["trending_stocks"]
        if not isinstance(data, dict):
            return TrendingStocks()
        return TrendingStocks(
            top_gainers=_as_list(data.get("top_gainers") or []),
            top_losers=_as_list(data.get("top_losers") or []),
        )

    async def get_top_gainers(self) -> List[Dict[str, Any]]:
        return (await self.get_trending()).top_gainers

    async def get_top_losers(self) -> List[Dict[str, Any]]:
        return (await self.get_trending()).top_losers

    async def get_all_stocks(self) -> Any:
        """涨跌榜原始数据"""
        data = _unwrap(await self.fetch_with_cache("/trending", None, DataType.MARKET_DATA))
        return data if data is not None else {}

    async def get_market_indices(self) -> Any:
        data = _unwrap(await self.fetch_with_cache("/indices", None, DataType.MARKET_DATA))
        return data if data is not None else {}

    async def get_52_week_high_low(self) -> Any:
        data = _unwrap(await self.fetch_with_cache("/fetch_52_week_high_low_data", None, DataType.MARKET_DATA))
        return data if data is not None else {}

    async def get_most_active(self, exchange: str = "NSE") -> Any:
        """获取 NSE/BSE 最活跃股票"""
        exchange = exchange.upper()
        if exchange not in EXCHANGES:
            raise BadRequestError(f"Invalid exchange '{exchange}'. Allowed: NSE, BSE")
        data = _unwrap(await self.fetch_with_cache(f"/{exchange}_most_active", None, DataType.MARKET_DATA))
        return data if data is not None else []

    async def get_price_shockers(self) -> Any:
        data = _unwrap(await self.fetch_with_cache("/price_shockers", None, DataType.MARKET_DATA))
        return data if data is not None else []

    async def get_commodities(self) -> Any:
        data = _unwrap(await self.fetch_with_cache("/commodities", None, DataType.MARKET_DATA))
        return data if data is not None else []

    async def get_mutual_funds(self) -> Any:
        """共同基金列表（按类别分组）"""
        data = _unwrap(await self.fetch_with_cache("/mutual_funds", None, DataType.MARKET_DATA))
        return data if data is not None else {}

    async def search_mutual_funds(self, query: Optional[str]) -> List[Dict[str, Any]]:
        """搜索共同基金，查询少于2个字符时返回空列表"""
        query = (query or "").strip()
        if len(query) < 2:
            return []
        body = await self.fetch_with_cache("/mutual_fund_search", {"query": query}, DataType.SEARCH_RESULTS)
        return _as_list(_unwrap(body))

    async def search_industry(self, query: Optional[str]) -> List[Dict[str, Any]]:
        """按行业搜索股票"""
        query = (query or "").strip()
        if len(query) < 2:
            return []
        body = await self.fetch_with_cache("/industry_search", {"query": query}, DataType.SEARCH_RESULTS)
        return _as_list(_unwrap(body))

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()


def create_stock_api_service(db_manager: Optional[DatabaseManager] = None) -> StockApiService:
    """创建上游API服务实例"""
    return StockApiService(db_manager=db_manager)
