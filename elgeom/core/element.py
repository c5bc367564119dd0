"""要素種別の抽象インタフェース定義.

要素ファミリごとの継承階層の代わりに、閉じた要素種別の集合
（Line2, Tri3, Quad4, Tet4, Hex8）が1つの能力インタフェースを実装する。
ElementGeometry は種別オブジェクトを1つ保持し、幾何演算・DOF マスク・
積分則の生成をそこへ委譲する。

Protocol を採用する理由:
  - 明示的な継承不要（構造的部分型）
  - 種別の追加がアドホックな派生クラス連鎖にならない
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from elgeom.core.enums import (
    DofID,
    EquationKind,
    GeometryType,
    IntegrationDomain,
    MaterialMode,
)


@runtime_checkable
class ElementKindProtocol(Protocol):
    """要素種別の共通インタフェース.

    Attributes:
        name: 入力レコードのキーワード
        geometry_type: 幾何形状
        spatial_dimension: 空間次元（1, 2, 3）
        n_nodes: 節点数（= 宣言された DOF マネージャ数）
        integration_domain: 母要素の積分領域
        material_mode: 積分点の材料モード
        default_nip: nip 未指定時の積分点数
        n_boundary_sides: 境界辺・面の数
        parent_size: 母要素の大きさ（四角形なら 4.0）
        relative_cost: 計算コストの相対重み（1点積分の三角形 = 1.0）
    """

    name: str
    geometry_type: GeometryType
    spatial_dimension: int
    n_nodes: int
    integration_domain: IntegrationDomain
    material_mode: MaterialMode
    default_nip: int
    n_boundary_sides: int
    parent_size: float
    relative_cost: float

    def shape(self, lcoords: np.ndarray) -> np.ndarray:
        """形状関数 N (n_nodes,)."""
        ...

    def dshape(self, lcoords: np.ndarray) -> np.ndarray:
        """局所座標微分 dN/dξ (spatial_dimension, n_nodes)."""
        ...

    def is_inside(self, lcoords: np.ndarray, tol: float) -> bool:
        """局所座標が母要素内か."""
        ...

    def center(self) -> np.ndarray:
        """母要素中心の局所座標."""
        ...

    def dof_id_mask(self, inode: int, equation: EquationKind) -> tuple[DofID, ...]:
        """節点 inode で要素が使う DOF の並び."""
        ...

    def rule_layout(self, nip: int) -> list[int]:
        """生成する積分則ごとの積分点数（規則番号順）."""
        ...
