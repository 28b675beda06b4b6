"""
Orders API — 設定

環境変数から読み込む。不正な値は無視してデフォルトを使う。
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    redis_url: str = "redis://localhost:6379"
    host: str = "0.0.0.0"
    port: int = 3000
    index_key: str = "orders"
    store_timeout: float | None = None
    backend: str = "redis"
    log_level: str = "INFO"


def _redis_url(environ) -> str:
    if "REDIS_URL" in environ:
        return environ["REDIS_URL"]
    # 旧来の host:port 形式
    if "REDIS_ADDR" in environ:
        return f"redis://{environ['REDIS_ADDR']}"
    return Config.redis_url


def load_config(environ=None) -> Config:
    environ = os.environ if environ is None else environ

    port = Config.port
    if "ORDERS_SERVICE_SERVER_PORT" in environ:
        try:
            value = int(environ["ORDERS_SERVICE_SERVER_PORT"])
        except ValueError:
            value = -1
        if 0 < value < 65536:
            port = value
        else:
            logger.warning(
                "Ignoring invalid ORDERS_SERVICE_SERVER_PORT=%r",
                environ["ORDERS_SERVICE_SERVER_PORT"],
            )

    store_timeout = None
    if environ.get("ORDERS_STORE_TIMEOUT"):
        try:
            store_timeout = float(environ["ORDERS_STORE_TIMEOUT"])
        except ValueError:
            logger.warning(
                "Ignoring invalid ORDERS_STORE_TIMEOUT=%r", environ["ORDERS_STORE_TIMEOUT"]
            )

    backend = environ.get("ORDERS_BACKEND", Config.backend).lower()
    if backend not in ("redis", "memory"):
        logger.warning("Unknown ORDERS_BACKEND=%r, using redis", backend)
        backend = "redis"

    return Config(
        redis_url=_redis_url(environ),
        host=environ.get("ORDERS_SERVICE_HOST", Config.host),
        port=port,
        index_key=environ.get("ORDERS_INDEX_KEY", Config.index_key),
        store_timeout=store_timeout,
        backend=backend,
        log_level=environ.get("LOG_LEVEL", Config.log_level).upper(),
    )
