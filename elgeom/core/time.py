"""解析ステップと時間関数.

要素の活性判定は時間関数を問い合わせ時刻で評価して行う。
時刻は TimeStep として明示的に渡し、暗黙のグローバル状態には依存しない。
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class TimeStep:
    """解析ステップ.

    Attributes:
        number: ステップ番号
        target_time: ステップ終端の時刻
        dt: ステップ幅
    """

    number: int
    target_time: float
    dt: float = 1.0

    def __post_init__(self) -> None:
        if self.dt <= 0.0:
            raise ValueError(f"dt は正値: {self.dt}")

    def next(self, dt: float | None = None) -> TimeStep:
        """次のステップを返す."""
        h = self.dt if dt is None else dt
        return TimeStep(number=self.number + 1, target_time=self.target_time + h, dt=h)


@dataclass(frozen=True)
class ConstantFunction:
    """定数の時間関数."""

    value: float = 1.0

    def evaluate(self, t: float) -> float:
        return self.value


@dataclass(frozen=True)
class HeavisideFunction:
    """origin より後で value、それ以前は 0 を返す時間関数."""

    origin: float
    value: float = 1.0

    def evaluate(self, t: float) -> float:
        return self.value if t > self.origin else 0.0


@dataclass(frozen=True)
class PiecewiseLinearFunction:
    """区分線形の時間関数.

    範囲外では端点の値で一定とする。

    Attributes:
        times: 単調増加の時刻列
        values: 各時刻の値
    """

    times: tuple[float, ...]
    values: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.times) != len(self.values):
            raise ValueError(
                f"times と values の長さが不一致: {len(self.times)} != {len(self.values)}"
            )
        if len(self.times) < 1:
            raise ValueError("時間関数は最低1点必要")
        if np.any(np.diff(self.times) < 0.0):
            raise ValueError(f"times は単調増加: {self.times}")

    def evaluate(self, t: float) -> float:
        return float(np.interp(t, self.times, self.values))
