"""単純断面.

材料1つと断面幾何（1D の断面積、2D の厚み）の束。要素層からの
問い合わせ（能力、体積係数、内部状態量、直列化、写像）を受けて
材料へ委譲する。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from elgeom.core.constitutive import MaterialProtocol
from elgeom.core.enums import Capability, InternalStateType, MaterialMode
from elgeom.core.results import IPValueResult
from elgeom.core.time import TimeStep

if TYPE_CHECKING:
    from elgeom.integration.gauss_point import GaussPoint
    from elgeom.io.datastream import DataStream


class SimpleCrossSection:
    """単純断面（CrossSectionProtocol 適合）.

    Args:
        number: 断面番号
        material: 材料
        thickness: 2次元要素の厚み
        area: 1次元要素の断面積
        capabilities: 断面が提供する材料モードの能力
    """

    def __init__(
        self,
        number: int,
        material: MaterialProtocol,
        *,
        thickness: float = 1.0,
        area: float = 1.0,
        capabilities: Capability = Capability.ALL,
    ) -> None:
        if thickness <= 0.0:
            raise ValueError(f"厚みは正値: {thickness}")
        if area <= 0.0:
            raise ValueError(f"断面積は正値: {area}")
        self.number = number
        self.material = material
        self.thickness = thickness
        self.area = area
        self.capabilities = capabilities

    def give_material(self) -> MaterialProtocol:
        return self.material

    def is_characteristic_mode_supported(self, mode: MaterialMode) -> bool:
        required = Capability.for_mode(mode)
        return (self.capabilities & required) == required

    def give_volume_factor(self, gp: GaussPoint) -> float:
        mode = gp.material_mode
        if mode is MaterialMode.ONE_D:
            return self.area
        if mode in (MaterialMode.PLANE_STRESS, MaterialMode.PLANE_STRAIN):
            return self.thickness
        return 1.0

    def give_ip_value(
        self, gp: GaussPoint, kind: InternalStateType, step: TimeStep
    ) -> IPValueResult:
        return self.material.give_ip_value(gp, kind, step)

    def pack_unknowns(self, buffer: DataStream, step: TimeStep, gp: GaussPoint) -> None:
        self.material.pack_status(buffer, step, gp)

    def unpack_unknowns(
        self, buffer: DataStream, step: TimeStep, gp: GaussPoint
    ) -> tuple[np.ndarray, np.ndarray]:
        return self.material.unpack_status(buffer, step, gp)

    def apply_unpacked(self, gp: GaussPoint, payload: tuple[np.ndarray, np.ndarray]) -> None:
        self.material.apply_unpacked_status(gp, payload)

    def estimate_pack_size(self, buffer: DataStream, gp: GaussPoint) -> int:
        return self.material.estimate_pack_size(buffer, gp)

    def map_status(self, new_gp: GaussPoint, old_gp: GaussPoint, step: TimeStep) -> None:
        self.material.map_status(new_gp, old_gp, step)

    def predict_relative_computational_cost(self, gp: GaussPoint) -> float:
        return self.material.predict_relative_computational_cost(gp)
