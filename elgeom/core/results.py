"""メソッド戻り値の型定義.

ソフトな失敗を持つ問い合わせ（ip_value, adaptive_map 等）の戻り値を
NamedTuple で統一的に定義する。
NamedTuple を採用する理由:
  - 名前付きフィールドアクセス（result.value, result.ok 等）
  - タプルアンパッキング（value, supported = elem.ip_value(...)）
  - 不変（immutable）で安全
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import numpy as np

if TYPE_CHECKING:
    from elgeom.elements.element import ElementGeometry
    from elgeom.integration.gauss_point import GaussPoint


class IPValueResult(NamedTuple):
    """積分点の内部状態量の問い合わせ結果.

    Attributes:
        value: 値ベクトル。未対応の場合は空配列。
        supported: 要素・材料の組合せがこの量を提供するか
    """

    value: np.ndarray
    supported: bool

    @classmethod
    def unsupported(cls) -> IPValueResult:
        """「利用不可」の結果を返す."""
        return cls(value=np.zeros(0, dtype=float), supported=False)


class SourcePoint(NamedTuple):
    """旧メッシュ上の写像元積分点.

    Attributes:
        element: 写像元要素
        rule_index: 写像元積分則の番号
        gp: 写像元積分点
        distance: 新しい積分点との距離
        fallback: 包含要素が無く最近傍要素で代用したか
    """

    element: ElementGeometry
    rule_index: int
    gp: GaussPoint
    distance: float
    fallback: bool


class MappingResult(NamedTuple):
    """1要素の状態写像の結果.

    Attributes:
        ok: 全積分点に写像元が見つかったか
        n_mapped: 写像できた積分点数
        n_fallback: 最近傍要素で代用した積分点数
        n_failed: 写像元が無かった積分点数
    """

    ok: bool
    n_mapped: int
    n_fallback: int
    n_failed: int


class DomainMappingResult(NamedTuple):
    """領域全体の状態写像の結果.

    Attributes:
        ok: 全要素の写像と更新が成功したか
        n_elements: 処理した要素数
        failed_elements: 写像に失敗した要素番号
    """

    ok: bool
    n_elements: int
    failed_elements: list[int]
