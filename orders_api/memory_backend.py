"""
Orders API — インメモリバックエンド

Redis と同じ契約をプロセス内の dict / set で満たす。
テストとローカル開発用 (ORDERS_BACKEND=memory)。本番では使わない。
選択時は build_backend が起動ログに警告を出す。
"""

import asyncio

from .backend import BATCH_COMMANDS, Batch, KeyValueBackend
from .errors import BatchError


class MemoryBackend(KeyValueBackend):
    """
    asyncio.Lock で全操作を直列化する。

    scan_set のカーソルはソート済みメンバー列へのオフセット。
    スキャン中に削除があると要素がずれるため、重複や取りこぼしが
    起こりうる点は SSCAN より弱い。
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._sets: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    def _apply(self, op: str, args: tuple) -> bool:
        if op == "set_if_absent":
            key, value = args
            if key in self._values:
                return False
            self._values[key] = value
            return True
        if op == "set_if_present":
            key, value = args
            if key not in self._values:
                return False
            self._values[key] = value
            return True
        if op == "delete":
            (key,) = args
            return self._values.pop(key, None) is not None
        if op == "add_to_set":
            name, member = args
            members = self._sets.setdefault(name, set())
            if member in members:
                return False
            members.add(member)
            return True
        if op == "remove_from_set":
            name, member = args
            members = self._sets.get(name, set())
            if member not in members:
                return False
            members.discard(member)
            if not members:
                self._sets.pop(name, None)
            return True
        raise BatchError(f"unsupported batch command: {op}")

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._values.get(key)

    async def set_if_absent(self, key: str, value: str) -> bool:
        async with self._lock:
            return self._apply("set_if_absent", (key, value))

    async def set_if_present(self, key: str, value: str) -> bool:
        async with self._lock:
            return self._apply("set_if_present", (key, value))

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._apply("delete", (key,))

    async def add_to_set(self, name: str, member: str) -> bool:
        async with self._lock:
            return self._apply("add_to_set", (name, member))

    async def remove_from_set(self, name: str, member: str) -> bool:
        async with self._lock:
            return self._apply("remove_from_set", (name, member))

    async def scan_set(self, name: str, cursor: int, count: int) -> tuple[int, list[str]]:
        async with self._lock:
            members = sorted(self._sets.get(name, ()))
        chunk = members[cursor:cursor + count]
        next_cursor = cursor + count
        if next_cursor >= len(members):
            next_cursor = 0
        return next_cursor, chunk

    async def multi_get(self, keys: list[str]) -> list[str | None]:
        async with self._lock:
            return [self._values.get(key) for key in keys]

    async def commit(self, batch: Batch) -> list[bool]:
        batch.close()
        for op, _ in batch.commands:
            if op not in BATCH_COMMANDS:
                raise BatchError(f"unsupported batch command: {op}")
        async with self._lock:
            return [self._apply(op, args) for op, args in batch.commands]

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        async with self._lock:
            self._values.clear()
            self._sets.clear()
