"""状態変数（履歴変数）の管理.

材料モデルが積分点ごとに保持する内部変数を、平衡値（前ステップで収束した値）と
一時値（現在の試行値）の2組で持つ。要素層はこの状態を不透明なハンドルとして扱い、
ステップ開始時の初期化・収束後の commit・直列化・写像時のコピーだけを指示する。

状態ベクトルの並びは fields の順序で固定され、直列化の位置整合の前提となる。
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import numpy as np

from elgeom.core.enums import MaterialMode
from elgeom.core.errors import ConfigurationError, ContextIOError, ProtocolDesyncError

if TYPE_CHECKING:
    from elgeom.io.datastream import DataStream


class MaterialStatus:
    """積分点1個の材料状態.

    Args:
        fields: (名前, 成分数) の並び。状態ベクトルはこの順で連結される。

    Attributes:
        values: 平衡値 {名前: 配列}
        temp_values: 一時値 {名前: 配列}
    """

    def __init__(self, fields: Sequence[tuple[str, int]]) -> None:
        self.fields = tuple((name, int(size)) for name, size in fields)
        self.values = {name: np.zeros(size, dtype=float) for name, size in self.fields}
        self.temp_values = {name: np.zeros(size, dtype=float) for name, size in self.fields}

    @property
    def n_values(self) -> int:
        """状態ベクトルの長さ."""
        return sum(size for _, size in self.fields)

    def get(self, name: str, *, temp: bool = False) -> np.ndarray:
        """指定フィールドの値（コピー）を返す."""
        src = self.temp_values if temp else self.values
        return src[name].copy()

    def set_temp(self, name: str, value: Any) -> None:
        """一時値を設定する."""
        arr = np.atleast_1d(np.asarray(value, dtype=float))
        if arr.shape != self.temp_values[name].shape:
            raise ValueError(
                f"{name} の形状が不一致: {arr.shape} != {self.temp_values[name].shape}"
            )
        self.temp_values[name] = arr.copy()

    def init_temp_status(self) -> None:
        """一時値を平衡値で初期化する（ステップ開始・やり直し時）."""
        self.temp_values = {k: v.copy() for k, v in self.values.items()}

    def update_yourself(self, step: Any = None) -> None:
        """一時値を平衡値へ commit する."""
        self.values = {k: v.copy() for k, v in self.temp_values.items()}

    def to_vector(self, *, temp: bool = False) -> np.ndarray:
        """状態を fields の順に連結したベクトルを返す."""
        src = self.temp_values if temp else self.values
        if not self.fields:
            return np.zeros(0, dtype=float)
        return np.concatenate([src[name] for name, _ in self.fields])

    def set_from_vector(self, vec: np.ndarray, *, temp: bool = False) -> None:
        """連結ベクトルから状態を設定する."""
        vec = np.asarray(vec, dtype=float)
        if vec.size != self.n_values:
            raise ValueError(f"状態ベクトル長が不一致: {vec.size} != {self.n_values}")
        dst = self.temp_values if temp else self.values
        offset = 0
        for name, size in self.fields:
            dst[name] = vec[offset : offset + size].copy()
            offset += size

    # ------------------------------------------------------------------
    # パーティション間交換
    # ------------------------------------------------------------------

    def pack(self, buffer: DataStream) -> None:
        """n_values, 平衡値, 一時値 の順に書き込む."""
        buffer.write_int(self.n_values)
        buffer.write_raw_doubles(self.to_vector())
        buffer.write_raw_doubles(self.to_vector(temp=True))

    def unpack_values(self, buffer: DataStream) -> tuple[np.ndarray, np.ndarray]:
        """pack された値を読み出す（状態は変更しない）."""
        n = buffer.read_int()
        if n != self.n_values:
            raise ProtocolDesyncError(f"状態ベクトル長が不一致: 受信 {n} != 期待 {self.n_values}")
        return buffer.read_raw_doubles(n), buffer.read_raw_doubles(n)

    def apply_values(self, values: np.ndarray, temp_values: np.ndarray) -> None:
        """unpack_values の結果を状態に反映する."""
        self.set_from_vector(values)
        self.set_from_vector(temp_values, temp=True)

    def estimate_pack_size(self, buffer: DataStream) -> int:
        """pack が書き込むバイト数の上限."""
        return buffer.int_size() + 2 * self.n_values * buffer.double_size()

    # ------------------------------------------------------------------
    # コンテキスト保存・写像
    # ------------------------------------------------------------------

    def save_context(self, stream: DataStream) -> None:
        stream.write_doubles(self.to_vector())
        stream.write_doubles(self.to_vector(temp=True))

    def restore_context(self, stream: DataStream) -> None:
        values = stream.read_doubles()
        temp_values = stream.read_doubles()
        if values.size != self.n_values or temp_values.size != self.n_values:
            raise ContextIOError(
                f"保存された状態長が不一致: {values.size}/{temp_values.size} != {self.n_values}"
            )
        self.apply_values(values, temp_values)

    def copy_state_from(self, other: MaterialStatus) -> None:
        """他の積分点の平衡状態を一時値として取り込む（写像用）."""
        if type(other) is not type(self) or other.fields != self.fields:
            raise ConfigurationError(
                f"状態の型が一致しない: {type(other).__name__}{other.fields} -> "
                f"{type(self).__name__}{self.fields}"
            )
        self.temp_values = {k: v.copy() for k, v in other.values.items()}


class StructuralMaterialStatus(MaterialStatus):
    """応力・ひずみを保持する構造材料の状態.

    Voigt 成分数は材料モードで決まる（1D=1, 平面応力=3, 平面ひずみ=4, 3D=6）。
    """

    def __init__(self, mode: MaterialMode, extra: Sequence[tuple[str, int]] = ()) -> None:
        n = mode.n_components
        super().__init__([("stress", n), ("strain", n), *extra])
        self.mode = mode


class PlasticMaterialStatus(StructuralMaterialStatus):
    """弾塑性材料の状態.

    Attributes:
        plastic_strain: 塑性ひずみ
        kappa: 累積塑性ひずみ（等方硬化内部変数）
    """

    def __init__(self, mode: MaterialMode) -> None:
        super().__init__(mode, extra=[("plastic_strain", mode.n_components), ("kappa", 1)])
