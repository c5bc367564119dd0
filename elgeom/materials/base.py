"""材料の共通処理.

積分点状態（MaterialStatus）の生成・直列化・写像・出力など、
構成則に依らない処理をまとめる。派生クラスは create_status と
supported_modes を与える。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

import numpy as np

from elgeom.core.enums import InternalStateType, MaterialMode
from elgeom.core.results import IPValueResult
from elgeom.core.state import MaterialStatus
from elgeom.core.time import TimeStep

if TYPE_CHECKING:
    from elgeom.integration.gauss_point import GaussPoint
    from elgeom.io.datastream import DataStream

# 内部状態種別 → 状態フィールド名
_IP_FIELDS = {
    InternalStateType.STRESS_TENSOR: "stress",
    InternalStateType.STRAIN_TENSOR: "strain",
    InternalStateType.PLASTIC_STRAIN_TENSOR: "plastic_strain",
    InternalStateType.CUMULATIVE_PLASTIC_STRAIN: "kappa",
}


class StatusMaterial:
    """積分点状態を所有する材料の基底クラス（MaterialProtocol 適合）.

    Attributes:
        number: 材料番号
        supported_modes: 対応する材料モード
        relative_cost: 積分点1個あたりの相対計算コスト
    """

    supported_modes: frozenset[MaterialMode] = frozenset(MaterialMode)
    relative_cost: float = 1.0

    def __init__(self, number: int) -> None:
        self.number = number

    def create_status(self, gp: GaussPoint) -> MaterialStatus:
        raise NotImplementedError

    def has_material_mode_capability(self, mode: MaterialMode) -> bool:
        return mode in self.supported_modes

    def give_status(self, gp: GaussPoint) -> MaterialStatus:
        """積分点の状態。未生成なら生成して積分点に登録する."""
        if gp.material_status is None:
            gp.material_status = self.create_status(gp)
        return gp.material_status

    def give_ip_value(
        self, gp: GaussPoint, kind: InternalStateType, step: TimeStep
    ) -> IPValueResult:
        """平衡状態から内部状態量を返す."""
        status = self.give_status(gp)
        name = _IP_FIELDS.get(kind)
        if name is None or name not in status.values:
            return IPValueResult.unsupported()
        return IPValueResult(value=status.get(name), supported=True)

    # --- パーティション間交換 ---

    def pack_status(self, buffer: DataStream, step: TimeStep, gp: GaussPoint) -> None:
        self.give_status(gp).pack(buffer)

    def unpack_status(
        self, buffer: DataStream, step: TimeStep, gp: GaussPoint
    ) -> tuple[np.ndarray, np.ndarray]:
        return self.give_status(gp).unpack_values(buffer)

    def apply_unpacked_status(
        self, gp: GaussPoint, payload: tuple[np.ndarray, np.ndarray]
    ) -> None:
        self.give_status(gp).apply_values(*payload)

    def estimate_pack_size(self, buffer: DataStream, gp: GaussPoint) -> int:
        return self.give_status(gp).estimate_pack_size(buffer)

    # --- 写像・出力 ---

    def map_status(self, new_gp: GaussPoint, old_gp: GaussPoint, step: TimeStep) -> None:
        """旧積分点の平衡状態を新積分点の一時状態へコピーする."""
        old_status = old_gp.element.give_material().give_status(old_gp)
        self.give_status(new_gp).copy_state_from(old_status)

    def print_output_at(self, file: TextIO, gp: GaussPoint, step: TimeStep) -> None:
        status = self.give_status(gp)
        for name, _ in status.fields:
            values = " ".join(f"{v: .6e}" for v in status.values[name])
            file.write(f"  {name} {values}")
        file.write("\n")

    def predict_relative_computational_cost(self, gp: GaussPoint) -> float:
        return self.relative_cost
