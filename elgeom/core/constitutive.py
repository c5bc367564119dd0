"""材料・断面・時間関数の抽象インタフェース定義.

Protocol 定義:
  MaterialProtocol      : 積分点状態の所有者。物理量・直列化の中身を提供する。
  CrossSectionProtocol  : 材料と断面幾何の束。要素層からの問い合わせ窓口。
  TimeFunctionProtocol  : 要素の活性判定に使う時間のスカラー関数。

要素層は応力やひずみを計算しない。どの積分点をどの順で訪問し、
いつ状態を commit・直列化・写像するかだけを決め、中身はこれらの
協調オブジェクトに委ねる。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

import numpy as np

from elgeom.core.enums import Capability, InternalStateType, MaterialMode
from elgeom.core.results import IPValueResult
from elgeom.core.state import MaterialStatus
from elgeom.core.time import TimeStep

if TYPE_CHECKING:
    from elgeom.integration.gauss_point import GaussPoint
    from elgeom.io.datastream import DataStream


@runtime_checkable
class TimeFunctionProtocol(Protocol):
    """時間関数のインタフェース."""

    def evaluate(self, t: float) -> float:
        """時刻 t での値を返す."""
        ...


@runtime_checkable
class MaterialProtocol(Protocol):
    """材料モデルのインタフェース.

    適合クラス例:
      - IsotropicLinearElastic
      - Plasticity1D
    """

    number: int

    def has_material_mode_capability(self, mode: MaterialMode) -> bool:
        """材料モードに対応しているか."""
        ...

    def give_status(self, gp: GaussPoint) -> MaterialStatus:
        """積分点の状態を返す（未生成なら生成して積分点に登録する）."""
        ...

    def give_ip_value(
        self, gp: GaussPoint, kind: InternalStateType, step: TimeStep
    ) -> IPValueResult:
        """積分点の内部状態量を返す。未対応なら IPValueResult.unsupported()."""
        ...

    def pack_status(self, buffer: DataStream, step: TimeStep, gp: GaussPoint) -> None: ...

    def unpack_status(
        self, buffer: DataStream, step: TimeStep, gp: GaussPoint
    ) -> tuple[np.ndarray, np.ndarray]: ...

    def apply_unpacked_status(
        self, gp: GaussPoint, payload: tuple[np.ndarray, np.ndarray]
    ) -> None: ...

    def estimate_pack_size(self, buffer: DataStream, gp: GaussPoint) -> int: ...

    def map_status(self, new_gp: GaussPoint, old_gp: GaussPoint, step: TimeStep) -> None:
        """旧積分点の平衡状態を新積分点の一時値へ写す."""
        ...

    def print_output_at(self, file: TextIO, gp: GaussPoint, step: TimeStep) -> None: ...

    def predict_relative_computational_cost(self, gp: GaussPoint) -> float: ...


@runtime_checkable
class CrossSectionProtocol(Protocol):
    """断面モデルのインタフェース.

    適合クラス例:
      - SimpleCrossSection
    """

    number: int
    capabilities: Capability

    def give_material(self) -> MaterialProtocol: ...

    def is_characteristic_mode_supported(self, mode: MaterialMode) -> bool:
        """断面が材料モードに必要な能力を持つか."""
        ...

    def give_volume_factor(self, gp: GaussPoint) -> float:
        """積分点の体積重み係数（1D=断面積, 2D=厚み, 3D=1）."""
        ...

    def give_ip_value(
        self, gp: GaussPoint, kind: InternalStateType, step: TimeStep
    ) -> IPValueResult: ...

    def pack_unknowns(self, buffer: DataStream, step: TimeStep, gp: GaussPoint) -> None: ...

    def unpack_unknowns(
        self, buffer: DataStream, step: TimeStep, gp: GaussPoint
    ) -> tuple[np.ndarray, np.ndarray]: ...

    def apply_unpacked(self, gp: GaussPoint, payload: tuple[np.ndarray, np.ndarray]) -> None: ...

    def estimate_pack_size(self, buffer: DataStream, gp: GaussPoint) -> int: ...

    def map_status(self, new_gp: GaussPoint, old_gp: GaussPoint, step: TimeStep) -> None: ...

    def predict_relative_computational_cost(self, gp: GaussPoint) -> float: ...
