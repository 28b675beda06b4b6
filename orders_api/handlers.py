"""
Orders API — HTTP ハンドラ

リクエストをストア呼び出しに変換し、結果を JSON で返す。
ストアのエラー分類をそのまま HTTP ステータスに対応させる。
ステータス遷移(shipped → completed)の検証はこの層の責務。
"""

import logging
import random
from datetime import datetime, timezone
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request
from pydantic import BaseModel, Field, field_validator

from .errors import (
    ConflictError,
    CorruptError,
    NotFoundError,
    OperationCancelledError,
    OrderStoreError,
    TransportError,
)
from .models import MAX_ORDER_ID, GetAllResult, LineItem, Order, Page
from .store import OrderStore

logger = logging.getLogger(__name__)

PAGE_SIZE = 10

router = APIRouter(prefix="/orders", tags=["orders"])

_STATUS_CODES = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (CorruptError, 500),
    (TransportError, 503),
    (OperationCancelledError, 504),
)


def get_store(request: Request) -> OrderStore:
    return request.app.state.store


def _http_error(exc: OrderStoreError) -> HTTPException:
    for cls, status in _STATUS_CODES:
        if isinstance(exc, cls):
            if status >= 500:
                logger.error("Store failure: %s", exc)
            return HTTPException(status, str(exc))
    logger.exception("Unexpected store failure")
    return HTTPException(500, "something went wrong")


# ── Request Models ───────────────────────────────


class LineItemRequest(BaseModel):
    item_id: UUID
    quantity: int = Field(gt=0)

    @field_validator("item_id")
    @classmethod
    def _not_nil(cls, value: UUID) -> UUID:
        if value.int == 0:
            raise ValueError("item_id must not be nil")
        return value


class CreateOrderRequest(BaseModel):
    customer_id: UUID
    line_items: list[LineItemRequest] = Field(min_length=1)

    @field_validator("customer_id")
    @classmethod
    def _not_nil(cls, value: UUID) -> UUID:
        if value.int == 0:
            raise ValueError("customer_id must not be nil")
        return value


class UpdateStatusRequest(BaseModel):
    status: Literal["shipped", "completed"]


OrderId = Annotated[int, Path(ge=0, le=MAX_ORDER_ID)]


# ── Endpoints ────────────────────────────────────


@router.post("", status_code=201, response_model=Order)
async def create_order(req: CreateOrderRequest, store: OrderStore = Depends(get_store)):
    """注文作成。ID はランダムな 64bit 整数を割り当てる。"""
    order = Order(
        order_id=random.getrandbits(64),
        customer_id=req.customer_id,
        line_items=[LineItem(**item.model_dump()) for item in req.line_items],
        created_at=datetime.now(timezone.utc),
    )
    try:
        await store.insert(order)
    except OrderStoreError as exc:
        raise _http_error(exc) from exc
    logger.info("Created order %d", order.order_id)
    return order


@router.get("", response_model=GetAllResult)
async def list_orders(
    page: int = Query(0, ge=0),
    store: OrderStore = Depends(get_store),
):
    """注文一覧。返った cursor を次の page に渡す。cursor=0 で終わり。"""
    try:
        return await store.get_all(Page(cursor=page, count=PAGE_SIZE))
    except OrderStoreError as exc:
        raise _http_error(exc) from exc


@router.get("/{order_id}", response_model=Order)
async def get_order(order_id: OrderId, store: OrderStore = Depends(get_store)):
    try:
        return await store.get(order_id)
    except OrderStoreError as exc:
        raise _http_error(exc) from exc


@router.put("/{order_id}", response_model=Order)
async def update_order(
    req: UpdateStatusRequest,
    order_id: OrderId,
    store: OrderStore = Depends(get_store),
):
    """
    ステータス更新

    shipped:   未出荷のときのみ
    completed: 出荷済みかつ未完了のときのみ
    """
    try:
        order = await store.get(order_id)
    except OrderStoreError as exc:
        raise _http_error(exc) from exc

    now = datetime.now(timezone.utc)
    if req.status == "shipped":
        if order.shipped_at is not None:
            raise HTTPException(400, "order already shipped")
        order.shipped_at = now
    else:
        if order.shipped_at is None or order.completed_at is not None:
            raise HTTPException(400, "order must be shipped and not completed")
        order.completed_at = now

    try:
        await store.update(order_id, order)
    except OrderStoreError as exc:
        raise _http_error(exc) from exc
    logger.info("Order %d marked %s", order_id, req.status)
    return order


@router.delete("/{order_id}")
async def delete_order(order_id: OrderId, store: OrderStore = Depends(get_store)):
    try:
        await store.delete(order_id)
    except OrderStoreError as exc:
        raise _http_error(exc) from exc
    logger.info("Deleted order %d", order_id)
    return {"message": "order deleted"}
