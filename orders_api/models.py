"""
Orders API — データモデル

ストアに保存される注文レコードと、ページングの入出力を定義する。
ストア側からは注文はシリアライズ可能な不透明ペイロードとして扱う。
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

MAX_ORDER_ID = 2**64 - 1


class LineItem(BaseModel):
    """注文明細"""
    item_id: UUID
    quantity: int = Field(gt=0)


class Order(BaseModel):
    """
    注文レコード

    created_at / shipped_at / completed_at の有無がライフサイクルを表すが、
    順序の検証はハンドラ層の責務でストアは関知しない。
    """
    order_id: int = Field(ge=0, le=MAX_ORDER_ID)
    customer_id: UUID
    line_items: list[LineItem]
    created_at: datetime | None = None
    shipped_at: datetime | None = None
    completed_at: datetime | None = None


class Page(BaseModel):
    """SSCAN カーソルと件数ヒント。cursor=0 は「先頭から」。"""
    cursor: int = Field(default=0, ge=0)
    count: int = Field(default=10, gt=0)


class GetAllResult(BaseModel):
    """一覧結果。cursor=0 は「これ以上ページはない」を意味する。"""
    orders: list[Order]
    cursor: int
