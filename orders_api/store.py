"""
Orders API — 注文ストア

プライマリマッピング (order:<id> → JSON) と、全キーを保持する
セカンダリインデックス (セット "orders") の 2 つの構造を維持する。

不変条件:
  操作が完了した後、インデックスのメンバーとプライマリのキー集合は常に一致する。
  両者を変更する Insert / Delete はアトミックバッチ 1 回 (MULTI/EXEC 1 往復) で行う。

  ┌────────────┐  Insert: SET NX + SADD               ┌──────────────┐
  │ OrderStore │ ───────────────────────────────────▶ │    Redis     │
  │            │  Delete: DEL + SREM                  │ order:<id>   │
  │            │  Update: SET XX (インデックスは不変) │ orders (set) │
  │            │  GetAll: SSCAN → MGET (非アトミック) │              │
  └────────────┘                                      └──────────────┘

SET NX / DEL が不成立(キーが既にある / 無い)のとき、同じバッチの
SADD / SREM は不変条件により何も変えない。判定は EXEC の応答で行い、
事前の読み込みはしない。
"""

import asyncio
import logging

from pydantic import ValidationError

from .backend import Batch, KeyValueBackend
from .errors import ConflictError, CorruptError, NotFoundError, OperationCancelledError
from .models import GetAllResult, Order, Page

logger = logging.getLogger(__name__)

DEFAULT_INDEX_KEY = "orders"


class UseStoreDefault:
    """timeout 引数の既定値。ストア生成時の timeout を使う。"""

    def __repr__(self) -> str:
        return "USE_STORE_DEFAULT"


USE_STORE_DEFAULT = UseStoreDefault()

Timeout = float | None | UseStoreDefault


def order_id_key(order_id: int) -> str:
    """注文 ID からプライマリキー兼インデックスメンバーを導出する。"""
    return f"order:{order_id}"


def _encode(order: Order) -> str:
    return order.model_dump_json()


def _decode(key: str, payload: str) -> Order:
    try:
        return Order.model_validate_json(payload)
    except ValidationError as exc:
        raise CorruptError(key) from exc


class OrderStore:
    """
    キーバリューバックエンド上の注文ストア。

    プロセス内の可変状態もロックも持たない。整合性はバックエンドの
    アトミックバッチに委ねる。バックエンドのハンドルは全リクエストで共有する。

    各操作の timeout は省略するとストアの既定値、None を渡すと期限なし。
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        index_key: str = DEFAULT_INDEX_KEY,
        timeout: float | None = None,
    ) -> None:
        self._backend = backend
        self._index_key = index_key
        self._timeout = timeout

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    async def _run(self, coro, timeout: Timeout):
        """期限付きで実行する。期限切れは OperationCancelledError。"""
        if isinstance(timeout, UseStoreDefault):
            timeout = self._timeout
        if timeout is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout)
        except asyncio.TimeoutError as exc:
            raise OperationCancelledError(
                f"operation timed out after {timeout}s"
            ) from exc

    async def _commit(self, batch: Batch) -> list[bool]:
        try:
            return await self._backend.commit(batch)
        finally:
            # commit 前に中断された場合もバッチを残さない
            await self._backend.discard(batch)

    # ── Insert ──────────────────────────────────────

    async def insert(self, order: Order, timeout: Timeout = USE_STORE_DEFAULT) -> None:
        """
        注文を新規保存する。

        SET NX と SADD は同じ MULTI/EXEC で適用される。
        キーが既に存在すれば何も変わらず ConflictError。
        """
        await self._run(self._insert(order), timeout)

    async def _insert(self, order: Order) -> None:
        key = order_id_key(order.order_id)
        batch = self._backend.begin_batch()
        try:
            payload = _encode(order)
            batch.set_if_absent(key, payload)
            batch.add_to_set(self._index_key, key)
        except Exception:
            await self._backend.discard(batch)
            raise

        written, _ = await self._commit(batch)
        if not written:
            raise ConflictError(order.order_id)
        logger.debug("Inserted %s", key)

    # ── Get ─────────────────────────────────────────

    async def get(self, order_id: int, timeout: Timeout = USE_STORE_DEFAULT) -> Order:
        return await self._run(self._get(order_id), timeout)

    async def _get(self, order_id: int) -> Order:
        key = order_id_key(order_id)
        payload = await self._backend.get(key)
        if payload is None:
            raise NotFoundError(order_id)
        return _decode(key, payload)

    # ── Update ──────────────────────────────────────

    async def update(
        self, order_id: int, order: Order, timeout: Timeout = USE_STORE_DEFAULT
    ) -> None:
        """
        レコード全体を上書きする。キーが存在しなければ何も作らず NotFoundError。
        前の値は読まない(読み込み→変更→書き込みは呼び出し側で行う)。
        """
        await self._run(self._update(order_id, order), timeout)

    async def _update(self, order_id: int, order: Order) -> None:
        key = order_id_key(order_id)
        if not await self._backend.set_if_present(key, _encode(order)):
            raise NotFoundError(order_id)
        logger.debug("Updated %s", key)

    # ── Delete ──────────────────────────────────────

    async def delete(self, order_id: int, timeout: Timeout = USE_STORE_DEFAULT) -> None:
        """
        プライマリのキーとインデックスのメンバーを同じバッチで削除する。
        キーが無ければ何も変わらず NotFoundError。同じキーへの並行 Update とは
        バックエンドのコマンド順で決まり、ストアは順序付けをしない。
        """
        await self._run(self._delete(order_id), timeout)

    async def _delete(self, order_id: int) -> None:
        key = order_id_key(order_id)
        batch = self._backend.begin_batch()
        try:
            batch.delete(key)
            batch.remove_from_set(self._index_key, key)
        except Exception:
            await self._backend.discard(batch)
            raise

        deleted, _ = await self._commit(batch)
        if not deleted:
            raise NotFoundError(order_id)
        logger.debug("Deleted %s", key)

    # ── GetAll ──────────────────────────────────────

    async def get_all(self, page: Page, timeout: Timeout = USE_STORE_DEFAULT) -> GetAllResult:
        """
        インデックスを 1 ステップだけスキャンし、得たキーを MGET で解決する。

        返すカーソルが 0 なら列挙は完了(先頭に戻れという意味ではない)。
        スキャン結果が空なら、スキャン側のカーソルに関わらず完了として扱う。
        スキャンと MGET の間に削除されたキーは警告を出して読み飛ばす。
        """
        return await self._run(self._get_all(page), timeout)

    async def _get_all(self, page: Page) -> GetAllResult:
        cursor, keys = await self._backend.scan_set(self._index_key, page.cursor, page.count)
        if not keys:
            return GetAllResult(orders=[], cursor=0)

        payloads = await self._backend.multi_get(keys)
        orders = []
        for key, payload in zip(keys, payloads):
            if payload is None:
                logger.warning("Skipping stale index entry %s", key)
                continue
            orders.append(_decode(key, payload))
        return GetAllResult(orders=orders, cursor=cursor)
