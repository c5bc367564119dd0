"""積分点（ガウス点）."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from elgeom.core.enums import MaterialMode
from elgeom.core.state import MaterialStatus

if TYPE_CHECKING:
    from elgeom.integration.rule import IntegrationRule


@dataclass(eq=False)
class GaussPoint:
    """積分点1個.

    材料状態は材料層が生成・所有し、ここでは参照だけを保持する。
    積分則内での位置（number）が直列化・パーティション交換での識別子となる。

    Attributes:
        rule: 所属する積分則
        number: 積分則内の位置（0 始まり）
        local_coords: 母要素上の局所座標
        weight: 積分重み
        material_mode: 材料モード
        material_status: 材料状態のハンドル（未生成なら None）
    """

    rule: IntegrationRule = field(repr=False)
    number: int
    local_coords: np.ndarray
    weight: float
    material_mode: MaterialMode
    material_status: MaterialStatus | None = field(default=None, repr=False)

    @property
    def element(self):
        """所属要素."""
        return self.rule.element

    def give_global_coordinates(self) -> np.ndarray:
        """全体座標を返す."""
        return self.element.compute_global_coordinates(self.local_coords)
