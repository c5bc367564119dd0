"""要素幾何層の例外階層.

致命的エラー（構造・設定・プロトコル不整合）は例外として送出する。
問い合わせ系のソフトな失敗（未対応の内部状態量、写像元が見つからない等）は
例外ではなく結果型（core.results）の「利用不可」フラグで返す。
"""

from __future__ import annotations


class ElementGeometryError(Exception):
    """要素幾何層の例外の基底クラス."""


class ConfigurationError(ElementGeometryError, ValueError):
    """入力・構成の不整合（節点に無い DOF、未知の番号、不正な入力レコード等）."""


class ElementStateError(ElementGeometryError, RuntimeError):
    """ライフサイクル違反（積分則構築前の走査、写像中のステップ進行等）."""


class ProtocolDesyncError(ElementGeometryError, RuntimeError):
    """パーティション間交換の不整合（積分点数・全体番号・バッファ長の不一致）."""


class BufferOverrunError(ProtocolDesyncError):
    """通信バッファの容量を超えた書き込み."""


class ContextIOError(ElementGeometryError, IOError):
    """保存コンテキストの読み書き失敗（途中で切れた、構造が一致しない）."""
