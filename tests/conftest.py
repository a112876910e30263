import os
import tempfile

# 必须在导入 app 之前设置
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOGS_DIR"] = tempfile.mkdtemp(prefix="stock_sense_logs_")
os.environ["STOCK_API_KEY"] = "sk-test-primary-key-0001"
os.environ["STOCK_API_KEYS"] = ""
os.environ["API_KEYS_FILE"] = ""
os.environ["ADMIN_PASSWORD"] = "test-admin-password"
os.environ["JWT_SECRET"] = "test-jwt-secret"

import httpx
import pytest
from fastapi.testclient import TestClient

from app.database.db import DatabaseManager, set_db_manager
from app.services.api_keys import ApiKeyManager
from app.services.cache import CacheService
from app.services.stock_api import StockApiService

PRIMARY_KEY = "sk-test-primary-key-0001"
BACKUP_KEY = "sk-test-backup-key-0002"
ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]


class FakeUpstream:
    """按路径返回预设响应的上游API，记录每次调用"""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, path, json=None, status_code=200, headers=None):
        self.routes[path] = lambda request: httpx.Response(status_code, json=json, headers=headers)

    def add_handler(self, path, handler):
        self.routes[path] = handler

    def calls_to(self, path):
        return [r for r in self.calls if r.url.path == path]

    def handler(self, request):
        self.calls.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        return route(request)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def db_manager():
    manager = DatabaseManager("sqlite://")
    manager.init_db()
    set_db_manager(manager)
    yield manager
    set_db_manager(None)
    manager.dispose()


@pytest.fixture
def key_manager():
    return ApiKeyManager(initial_keys=[PRIMARY_KEY, BACKUP_KEY], monthly_limit=500)


@pytest.fixture
def stock_service(upstream, key_manager, db_manager):
    return StockApiService(
        cache=CacheService(),
        key_manager=key_manager,
        db_manager=db_manager,
        base_url="https://upstream.test",
        transport=httpx.MockTransport(upstream.handler),
    )


@pytest.fixture
def client(stock_service, db_manager):
    from app.main import create_app

    application = create_app()
    application.state.stock_service = stock_service
    with TestClient(application) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(db_manager):
    from app.models.user import UserCreate
    from app.services.auth import create_access_token
    from app.services.users import UserService

    with db_manager.get_session() as session:
        user = UserService(session).create(
            UserCreate(email="admin@example.com", password="admin-password"), role="admin"
        )
        token = create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(client):
    response = client.post("/api/auth/register", json={"email": "user@example.com", "password": "secret123"})
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}
