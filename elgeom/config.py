"""解析設定.

状態写像とパーティション間交換の調整パラメータをまとめる。
いずれも frozen dataclass で、不正値は生成時に ValueError とする。
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MappingConfig:
    """旧メッシュからの状態写像の設定.

    Attributes:
        n_candidates: 包含要素が無いとき代用候補とする近傍要素（重心）の数
        inside_tolerance: 局所座標での包含判定の許容差
        max_fallback_distance: 最近傍要素で代用する場合の最大距離。
            None なら制限しない。
    """

    n_candidates: int = 8
    inside_tolerance: float = 1e-8
    max_fallback_distance: float | None = None

    def __post_init__(self) -> None:
        if self.n_candidates < 1:
            raise ValueError(f"n_candidates は1以上: {self.n_candidates}")
        if self.inside_tolerance < 0.0:
            raise ValueError(f"inside_tolerance は0以上: {self.inside_tolerance}")
        if self.max_fallback_distance is not None and self.max_fallback_distance < 0.0:
            raise ValueError(
                f"max_fallback_distance は0以上: {self.max_fallback_distance}"
            )


@dataclass(frozen=True)
class CommunicationConfig:
    """パーティション間交換の設定.

    Attributes:
        initial_size: 通信バッファの初期容量 [byte]
        safety_bytes: 要素ごとの pack サイズ見積りに加える余裕 [byte]
    """

    initial_size: int = 1024
    safety_bytes: int = 0

    def __post_init__(self) -> None:
        if self.initial_size < 0:
            raise ValueError(f"initial_size は0以上: {self.initial_size}")
        if self.safety_bytes < 0:
            raise ValueError(f"safety_bytes は0以上: {self.safety_bytes}")
