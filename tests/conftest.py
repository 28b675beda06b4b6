# tests/conftest.py
from datetime import datetime, timezone
from uuid import uuid4

import fakeredis
import httpx
import pytest
import pytest_asyncio

from orders_api.backend import RedisBackend
from orders_api.config import Config
from orders_api.main import create_app
from orders_api.memory_backend import MemoryBackend
from orders_api.models import LineItem, Order
from orders_api.store import OrderStore


@pytest_asyncio.fixture(params=["memory", "redis"])
async def backend(request):
    """
    ストアのテストは両方のバックエンドで実行する。
    redis 側は fakeredis 上の RedisBackend (テストごとに独立したサーバー)。
    """
    if request.param == "memory":
        b = MemoryBackend()
    else:
        client = fakeredis.FakeAsyncRedis(
            server=fakeredis.FakeServer(), decode_responses=True
        )
        b = RedisBackend(client)
    yield b
    await b.close()


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    return OrderStore(backend)


@pytest.fixture
def order_factory():
    def make(order_id: int, quantity: int = 1) -> Order:
        return Order(
            order_id=order_id,
            customer_id=uuid4(),
            line_items=[LineItem(item_id=uuid4(), quantity=quantity)],
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
    return make


@pytest_asyncio.fixture
async def client(backend):
    """
    バックエンドを注入したアプリに対する HTTP クライアント。
    """
    app = create_app(Config(), backend=backend)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
