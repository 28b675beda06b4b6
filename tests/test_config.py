# tests/test_config.py
import logging

from orders_api.config import Config, load_config
from orders_api.main import build_backend
from orders_api.memory_backend import MemoryBackend


def test_defaults():
    cfg = load_config({})
    assert cfg.redis_url == "redis://localhost:6379"
    assert cfg.port == 3000
    assert cfg.index_key == "orders"
    assert cfg.store_timeout is None
    assert cfg.backend == "redis"


def test_redis_addr_fallback():
    assert load_config({"REDIS_ADDR": "cache:6380"}).redis_url == "redis://cache:6380"
    cfg = load_config({"REDIS_ADDR": "cache:6380", "REDIS_URL": "redis://other:1/2"})
    assert cfg.redis_url == "redis://other:1/2"


def test_invalid_values_are_ignored():
    cfg = load_config({
        "ORDERS_SERVICE_SERVER_PORT": "not-a-port",
        "ORDERS_STORE_TIMEOUT": "soon",
        "ORDERS_BACKEND": "etcd",
    })
    assert cfg.port == 3000
    assert cfg.store_timeout is None
    assert cfg.backend == "redis"


def test_overrides():
    cfg = load_config({
        "ORDERS_SERVICE_SERVER_PORT": "8080",
        "ORDERS_STORE_TIMEOUT": "2.5",
        "ORDERS_BACKEND": "Memory",
        "ORDERS_INDEX_KEY": "orders:v1",
        "LOG_LEVEL": "debug",
    })
    assert cfg.port == 8080
    assert cfg.store_timeout == 2.5
    assert cfg.backend == "memory"
    assert cfg.index_key == "orders:v1"
    assert cfg.log_level == "DEBUG"


def test_memory_backend_warns_at_startup(caplog):
    caplog.set_level(logging.WARNING, logger="orders_api.main")
    backend = build_backend(Config(backend="memory"))

    assert isinstance(backend, MemoryBackend)
    assert "in-memory backend" in caplog.text
