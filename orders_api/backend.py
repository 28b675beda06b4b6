"""
Orders API — キーバリューバックエンド

ストアが必要とする最小限の操作(単一キー操作・セット操作・アトミックバッチ)
を抽象化する。Redis 実装では、バッチは MULTI/EXEC 1 往復で実現する。

  ┌────────────┐   begin_batch()    ┌───────┐
  │ OrderStore │ ─────────────────▶ │ Batch │  コマンドを積むだけ
  │            │   commit(batch)    └───┬───┘  (ネットワーク通信なし)
  │            │ ─────────────────────▶ │
  └────────────┘                        ▼
                              MULTI → 積んだコマンド → EXEC

条件付きコマンド (SET NX / DEL) の成否は EXEC の応答で判定する。
"""

import abc
import logging
from contextlib import contextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .errors import BatchError, TransportError

logger = logging.getLogger(__name__)

# バッチに積めるコマンド
BATCH_COMMANDS = frozenset(
    {"set_if_absent", "set_if_present", "delete", "add_to_set", "remove_from_set"}
)


class Batch:
    """
    アトミックバッチのハンドル。

    コマンドはクライアント側に積まれるだけで、commit までバックエンドには
    何も送られない。commit / discard はどちらか一度だけ。
    """

    def __init__(self) -> None:
        self.commands: list[tuple[str, tuple]] = []
        self.closed = False

    def _queue(self, op: str, *args) -> "Batch":
        if self.closed:
            raise BatchError("batch already committed or discarded")
        self.commands.append((op, args))
        return self

    # ── コマンド ───────────────────────────────────

    def set_if_absent(self, key: str, value: str) -> "Batch":
        return self._queue("set_if_absent", key, value)

    def set_if_present(self, key: str, value: str) -> "Batch":
        return self._queue("set_if_present", key, value)

    def delete(self, key: str) -> "Batch":
        return self._queue("delete", key)

    def add_to_set(self, name: str, member: str) -> "Batch":
        return self._queue("add_to_set", name, member)

    def remove_from_set(self, name: str, member: str) -> "Batch":
        return self._queue("remove_from_set", name, member)

    def close(self) -> None:
        if self.closed:
            raise BatchError("batch already committed or discarded")
        self.closed = True


class KeyValueBackend(abc.ABC):
    """
    ストアが消費するバックエンド契約。

    値は JSON テキスト、真偽値の戻り値は「条件が成立したか」
    (書き込めた / キーが存在した / メンバーが増減した)を表す。
    """

    @abc.abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abc.abstractmethod
    async def set_if_absent(self, key: str, value: str) -> bool: ...

    @abc.abstractmethod
    async def set_if_present(self, key: str, value: str) -> bool: ...

    @abc.abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abc.abstractmethod
    async def add_to_set(self, name: str, member: str) -> bool: ...

    @abc.abstractmethod
    async def remove_from_set(self, name: str, member: str) -> bool: ...

    @abc.abstractmethod
    async def scan_set(self, name: str, cursor: int, count: int) -> tuple[int, list[str]]:
        """インクリメンタルスキャンを一歩進め、(次のカーソル, メンバー) を返す。"""

    @abc.abstractmethod
    async def multi_get(self, keys: list[str]) -> list[str | None]:
        """keys と位置を揃えた値のリストを返す(存在しないキーは None)。"""

    def begin_batch(self) -> Batch:
        return Batch()

    @abc.abstractmethod
    async def commit(self, batch: Batch) -> list[bool]:
        """
        バッチを全か無かで適用し、コマンドごとの結果を返す。

        条件付きコマンドが不成立でもバッチは中断されず、結果が False になる。
        """

    async def discard(self, batch: Batch) -> None:
        """未送信のバッチを破棄する。commit 済みなら何もしない。"""
        if batch.closed:
            return
        batch.close()
        logger.debug("Discarded batch of %d commands", len(batch.commands))

    @abc.abstractmethod
    async def ping(self) -> bool: ...

    @abc.abstractmethod
    async def close(self) -> None: ...


@contextmanager
def _translate_errors():
    """Redis の例外を TransportError に変換する。"""
    try:
        yield
    except RedisError as exc:
        raise TransportError(str(exc) or exc.__class__.__name__) from exc


def _queue_redis(pipe, op: str, args: tuple) -> None:
    if op == "set_if_absent":
        key, value = args
        pipe.set(key, value, nx=True)
    elif op == "set_if_present":
        key, value = args
        pipe.set(key, value, xx=True)
    elif op == "delete":
        pipe.delete(*args)
    elif op == "add_to_set":
        pipe.sadd(*args)
    elif op == "remove_from_set":
        pipe.srem(*args)
    else:
        raise BatchError(f"unsupported batch command: {op}")


class RedisBackend(KeyValueBackend):
    """redis.asyncio クライアント上の実装。クライアントは全リクエストで共有する。"""

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        with _translate_errors():
            return await self._redis.get(key)

    async def set_if_absent(self, key: str, value: str) -> bool:
        with _translate_errors():
            return bool(await self._redis.set(key, value, nx=True))

    async def set_if_present(self, key: str, value: str) -> bool:
        with _translate_errors():
            return bool(await self._redis.set(key, value, xx=True))

    async def delete(self, key: str) -> bool:
        with _translate_errors():
            return await self._redis.delete(key) > 0

    async def add_to_set(self, name: str, member: str) -> bool:
        with _translate_errors():
            return await self._redis.sadd(name, member) > 0

    async def remove_from_set(self, name: str, member: str) -> bool:
        with _translate_errors():
            return await self._redis.srem(name, member) > 0

    async def scan_set(self, name: str, cursor: int, count: int) -> tuple[int, list[str]]:
        with _translate_errors():
            next_cursor, members = await self._redis.sscan(name, cursor=cursor, count=count)
        return int(next_cursor), list(members)

    async def multi_get(self, keys: list[str]) -> list[str | None]:
        if not keys:
            return []
        with _translate_errors():
            return await self._redis.mget(keys)

    async def commit(self, batch: Batch) -> list[bool]:
        batch.close()
        with _translate_errors():
            async with self._redis.pipeline(transaction=True) as pipe:
                for op, args in batch.commands:
                    _queue_redis(pipe, op, args)
                results = await pipe.execute()
        return [bool(r) for r in results]

    async def ping(self) -> bool:
        with _translate_errors():
            return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("Redis connection closed")
