"""
Orders API — エラー分類

呼び出し側(HTTP 層)がステータスに変換できるよう、
ストアの失敗を区別可能なクラスで表す。
"""


class OrderStoreError(Exception):
    """ストア操作の失敗の基底クラス"""


class NotFoundError(OrderStoreError):
    """存在が必要なキーが存在しない"""

    def __init__(self, order_id: int) -> None:
        super().__init__(f"order {order_id} does not exist")
        self.order_id = order_id


class ConflictError(OrderStoreError):
    """存在してはならないキーが既に存在する"""

    def __init__(self, order_id: int) -> None:
        super().__init__(f"order {order_id} already exists")
        self.order_id = order_id


class CorruptError(OrderStoreError):
    """保存済みペイロードを注文にデコードできない"""

    def __init__(self, key: str) -> None:
        super().__init__(f"failed to decode order stored at {key}")
        self.key = key


class TransportError(OrderStoreError):
    """バックエンドとの通信失敗(データの状態とは無関係)"""


class OperationCancelledError(OrderStoreError):
    """呼び出し側の期限切れによる中断"""


# ── バッチの誤用 ──


class BatchError(Exception):
    """commit 済み・破棄済みバッチの再利用や未対応コマンド"""

