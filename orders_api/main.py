"""
Orders API — FastAPI エントリーポイント

注文の CRUD を提供する。永続化は Redis 上の OrderStore に委ねる。
バックエンドのハンドルは lifespan で 1 つだけ生成して全リクエストで共有し、
app.state 経由でハンドラに渡す(モジュールレベルのグローバルは持たない)。
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import handlers
from .backend import KeyValueBackend, RedisBackend
from .config import Config, load_config
from .errors import OrderStoreError
from .memory_backend import MemoryBackend
from .store import OrderStore

logger = logging.getLogger(__name__)


def build_backend(config: Config) -> KeyValueBackend:
    if config.backend == "memory":
        logger.warning(
            "Using in-memory backend: data is lost on restart and listing may skip "
            "orders deleted during a scan; use it for tests and local runs only"
        )
        return MemoryBackend()
    logger.info("Connecting to Redis at %s", config.redis_url)
    return RedisBackend.from_url(config.redis_url)


def create_app(
    config: Config | None = None,
    backend: KeyValueBackend | None = None,
) -> FastAPI:
    """
    アプリケーションを生成する。

    backend を渡した場合はそれを使い、クローズも呼び出し側に任せる(テスト用)。
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if backend is not None:
            yield
            return
        owned = build_backend(config)
        app.state.store = OrderStore(owned, config.index_key, config.store_timeout)
        yield
        await owned.close()

    app = FastAPI(title="Order Service", lifespan=lifespan)
    if backend is not None:
        app.state.store = OrderStore(backend, config.index_key, config.store_timeout)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "invalid request"})

    app.include_router(handlers.router)

    @app.get("/health")
    async def health(request: Request):
        store: OrderStore = request.app.state.store
        try:
            await store.backend.ping()
        except OrderStoreError as exc:
            logger.warning("Health check failed: %s", exc)
            return JSONResponse(
                status_code=503,
                content={"status": "unavailable", "service": "order-service"},
            )
        return {"status": "ok", "service": "order-service"}

    return app
