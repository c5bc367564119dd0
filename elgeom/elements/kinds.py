"""要素種別（閉じた variant 集合）.

各種別は ElementKindProtocol を実装する独立クラスで、継承連鎖を持たない。
幾何演算（ヤコビアン測度・局所⇔全体座標変換）は種別に依らない
モジュール関数として共有する。

  種別      節点  母要素        材料モード       既定 nip
  line2     2     LINE          1D               1
  tri3      3     TRIANGLE      平面応力/ひずみ  1
  quad4     4     SQUARE        平面応力/ひずみ  4
  tet4      4     TETRAHEDRON   3D               1
  hex8      8     CUBE          3D               8
  hex8_sri  8     CUBE          3D               8 (+ 体積成分用 1点)

参考文献:
  - Hughes, T.J.R. "The Finite Element Method": 形状関数、選択低減積分
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from elgeom.core.element import ElementKindProtocol
from elgeom.core.enums import (
    DofID,
    EquationKind,
    GeometryType,
    IntegrationDomain,
    MaterialMode,
)
from elgeom.core.errors import ConfigurationError

# ============================================================
# 共通の幾何演算
# ============================================================

_NEWTON_MAX_ITER = 25


def dof_mask_for(dimension: int, equation: EquationKind) -> tuple[DofID, ...]:
    """空間次元と方程式種別から節点 DOF マスクを返す."""
    if equation is EquationKind.DISPLACEMENT:
        return (DofID.D_u, DofID.D_v, DofID.D_w)[:dimension]
    if equation is EquationKind.TEMPERATURE:
        return (DofID.T_f,)
    raise ConfigurationError(f"未対応の方程式種別: {equation}")


def jacobian(kind: ElementKindProtocol, lcoords: np.ndarray, coords: np.ndarray) -> np.ndarray:
    """dx/dξ (ndim, pdim)."""
    return coords.T @ kind.dshape(lcoords).T


def jacobian_measure(
    kind: ElementKindProtocol, lcoords: np.ndarray, coords: np.ndarray
) -> float:
    """局所座標での長さ・面積・体積の変換倍率.

    空間内の線・面要素（ndim > pdim）は sqrt(det(JᵀJ)) を用いる。
    """
    J = jacobian(kind, lcoords, coords)
    if J.shape[0] == J.shape[1]:
        return abs(float(np.linalg.det(J)))
    return float(np.sqrt(max(np.linalg.det(J.T @ J), 0.0)))


def local_to_global(
    kind: ElementKindProtocol, lcoords: np.ndarray, coords: np.ndarray
) -> np.ndarray:
    return kind.shape(lcoords) @ coords


def global_to_local(
    kind: ElementKindProtocol,
    gcoords: np.ndarray,
    coords: np.ndarray,
    tol: float = 1e-8,
) -> tuple[bool, np.ndarray]:
    """全体座標から局所座標を求める（Newton 法）.

    点が要素外でも局所座標は計算する（適応写像の最近傍判定用）。
    空間内の線・面要素では最小二乗で射影し、射影距離も内外判定に含める。

    Returns:
        (inside, lcoords)
    """
    x = np.asarray(gcoords, dtype=float)
    lc = kind.center()
    size = max(float(np.ptp(coords, axis=0).max()), 1e-300)
    for _ in range(_NEWTON_MAX_ITER):
        r = x - local_to_global(kind, lc, coords)
        J = jacobian(kind, lc, coords)
        dlc = np.linalg.lstsq(J, r, rcond=None)[0]
        lc = lc + dlc
        if np.linalg.norm(dlc) < 1e-12:
            break
    distance = float(np.linalg.norm(x - local_to_global(kind, lc, coords)))
    inside = kind.is_inside(lc, tol) and distance <= tol * size
    return inside, lc


# ============================================================
# 種別
# ============================================================


@dataclass(frozen=True)
class Line2:
    """2節点線要素（トラス）."""

    name: str = "line2"
    geometry_type: ClassVar[GeometryType] = GeometryType.LINE_1
    spatial_dimension: ClassVar[int] = 1
    n_nodes: ClassVar[int] = 2
    integration_domain: ClassVar[IntegrationDomain] = IntegrationDomain.LINE
    material_mode: ClassVar[MaterialMode] = MaterialMode.ONE_D
    default_nip: ClassVar[int] = 1
    n_boundary_sides: ClassVar[int] = 2
    parent_size: ClassVar[float] = 2.0
    relative_cost: ClassVar[float] = 0.5

    def shape(self, lcoords: np.ndarray) -> np.ndarray:
        xi = lcoords[0]
        return 0.5 * np.array([1.0 - xi, 1.0 + xi])

    def dshape(self, lcoords: np.ndarray) -> np.ndarray:
        return np.array([[-0.5, 0.5]])

    def is_inside(self, lcoords: np.ndarray, tol: float) -> bool:
        return bool(abs(lcoords[0]) <= 1.0 + tol)

    def center(self) -> np.ndarray:
        return np.zeros(1)

    def dof_id_mask(self, inode: int, equation: EquationKind) -> tuple[DofID, ...]:
        return dof_mask_for(1, equation)

    def rule_layout(self, nip: int) -> list[int]:
        return [nip]


@dataclass(frozen=True)
class Tri3:
    """3節点三角形要素（定ひずみ）.

    形状関数は面積座標: N = [ξ, η, 1 - ξ - η]
    """

    material_mode: MaterialMode = MaterialMode.PLANE_STRESS
    name: str = "tri3"
    geometry_type: ClassVar[GeometryType] = GeometryType.TRIANGLE_1
    spatial_dimension: ClassVar[int] = 2
    n_nodes: ClassVar[int] = 3
    integration_domain: ClassVar[IntegrationDomain] = IntegrationDomain.TRIANGLE
    default_nip: ClassVar[int] = 1
    n_boundary_sides: ClassVar[int] = 3
    parent_size: ClassVar[float] = 0.5
    relative_cost: ClassVar[float] = 1.0

    def shape(self, lcoords: np.ndarray) -> np.ndarray:
        xi, eta = lcoords
        return np.array([xi, eta, 1.0 - xi - eta])

    def dshape(self, lcoords: np.ndarray) -> np.ndarray:
        return np.array([[1.0, 0.0, -1.0], [0.0, 1.0, -1.0]])

    def is_inside(self, lcoords: np.ndarray, tol: float) -> bool:
        xi, eta = lcoords
        return bool(xi >= -tol and eta >= -tol and 1.0 - xi - eta >= -tol)

    def center(self) -> np.ndarray:
        return np.full(2, 1.0 / 3.0)

    def dof_id_mask(self, inode: int, equation: EquationKind) -> tuple[DofID, ...]:
        return dof_mask_for(2, equation)

    def rule_layout(self, nip: int) -> list[int]:
        return [nip]


_Q4_NODES = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])


@dataclass(frozen=True)
class Quad4:
    """4節点四角形要素（双一次）.

    節点順序（自然座標）: (-1,-1), (+1,-1), (+1,+1), (-1,+1)
    """

    material_mode: MaterialMode = MaterialMode.PLANE_STRESS
    name: str = "quad4"
    geometry_type: ClassVar[GeometryType] = GeometryType.QUAD_1
    spatial_dimension: ClassVar[int] = 2
    n_nodes: ClassVar[int] = 4
    integration_domain: ClassVar[IntegrationDomain] = IntegrationDomain.SQUARE
    default_nip: ClassVar[int] = 4
    n_boundary_sides: ClassVar[int] = 4
    parent_size: ClassVar[float] = 4.0
    relative_cost: ClassVar[float] = 1.5

    def shape(self, lcoords: np.ndarray) -> np.ndarray:
        xi, eta = lcoords
        return 0.25 * (1.0 + _Q4_NODES[:, 0] * xi) * (1.0 + _Q4_NODES[:, 1] * eta)

    def dshape(self, lcoords: np.ndarray) -> np.ndarray:
        xi, eta = lcoords
        sx, sy = _Q4_NODES[:, 0], _Q4_NODES[:, 1]
        return 0.25 * np.array([sx * (1.0 + sy * eta), sy * (1.0 + sx * xi)])

    def is_inside(self, lcoords: np.ndarray, tol: float) -> bool:
        return bool(np.all(np.abs(lcoords) <= 1.0 + tol))

    def center(self) -> np.ndarray:
        return np.zeros(2)

    def dof_id_mask(self, inode: int, equation: EquationKind) -> tuple[DofID, ...]:
        return dof_mask_for(2, equation)

    def rule_layout(self, nip: int) -> list[int]:
        return [nip]


@dataclass(frozen=True)
class Tet4:
    """4節点四面体要素.

    形状関数は体積座標: N = [ξ, η, ζ, 1 - ξ - η - ζ]
    """

    name: str = "tet4"
    geometry_type: ClassVar[GeometryType] = GeometryType.TETRA_1
    spatial_dimension: ClassVar[int] = 3
    n_nodes: ClassVar[int] = 4
    integration_domain: ClassVar[IntegrationDomain] = IntegrationDomain.TETRAHEDRON
    material_mode: ClassVar[MaterialMode] = MaterialMode.THREE_D
    default_nip: ClassVar[int] = 1
    n_boundary_sides: ClassVar[int] = 4
    parent_size: ClassVar[float] = 1.0 / 6.0
    relative_cost: ClassVar[float] = 2.0

    def shape(self, lcoords: np.ndarray) -> np.ndarray:
        xi, eta, zeta = lcoords
        return np.array([xi, eta, zeta, 1.0 - xi - eta - zeta])

    def dshape(self, lcoords: np.ndarray) -> np.ndarray:
        return np.array(
            [[1.0, 0.0, 0.0, -1.0], [0.0, 1.0, 0.0, -1.0], [0.0, 0.0, 1.0, -1.0]]
        )

    def is_inside(self, lcoords: np.ndarray, tol: float) -> bool:
        return bool(np.all(lcoords >= -tol) and 1.0 - lcoords.sum() >= -tol)

    def center(self) -> np.ndarray:
        return np.full(3, 0.25)

    def dof_id_mask(self, inode: int, equation: EquationKind) -> tuple[DofID, ...]:
        return dof_mask_for(3, equation)

    def rule_layout(self, nip: int) -> list[int]:
        return [nip]


# 節点順序（自然座標）:
#   0: (-1,-1,-1)  1: (+1,-1,-1)  2: (+1,+1,-1)  3: (-1,+1,-1)
#   4: (-1,-1,+1)  5: (+1,-1,+1)  6: (+1,+1,+1)  7: (-1,+1,+1)
_H8_NODES = np.array(
    [
        [-1.0, -1.0, -1.0],
        [1.0, -1.0, -1.0],
        [1.0, 1.0, -1.0],
        [-1.0, 1.0, -1.0],
        [-1.0, -1.0, 1.0],
        [1.0, -1.0, 1.0],
        [1.0, 1.0, 1.0],
        [-1.0, 1.0, 1.0],
    ]
)


@dataclass(frozen=True)
class Hex8:
    """8節点六面体要素（レンガ要素）.

    selective=True の場合は選択低減積分:
      積分則 0: 偏差成分用 2×2×2 フル積分
      積分則 1: 体積成分用 1点積分（要素中心）
    """

    selective: bool = False
    name: str = "hex8"
    geometry_type: ClassVar[GeometryType] = GeometryType.HEXA_1
    spatial_dimension: ClassVar[int] = 3
    n_nodes: ClassVar[int] = 8
    integration_domain: ClassVar[IntegrationDomain] = IntegrationDomain.CUBE
    material_mode: ClassVar[MaterialMode] = MaterialMode.THREE_D
    default_nip: ClassVar[int] = 8
    n_boundary_sides: ClassVar[int] = 6
    parent_size: ClassVar[float] = 8.0
    relative_cost: ClassVar[float] = 4.0

    def shape(self, lcoords: np.ndarray) -> np.ndarray:
        terms = 1.0 + _H8_NODES * np.asarray(lcoords)[None, :]
        return 0.125 * np.prod(terms, axis=1)

    def dshape(self, lcoords: np.ndarray) -> np.ndarray:
        terms = 1.0 + _H8_NODES * np.asarray(lcoords)[None, :]
        dN = np.empty((3, 8))
        for a in range(3):
            others = [b for b in range(3) if b != a]
            dN[a] = 0.125 * _H8_NODES[:, a] * terms[:, others[0]] * terms[:, others[1]]
        return dN

    def is_inside(self, lcoords: np.ndarray, tol: float) -> bool:
        return bool(np.all(np.abs(lcoords) <= 1.0 + tol))

    def center(self) -> np.ndarray:
        return np.zeros(3)

    def dof_id_mask(self, inode: int, equation: EquationKind) -> tuple[DofID, ...]:
        return dof_mask_for(3, equation)

    def rule_layout(self, nip: int) -> list[int]:
        return [nip, 1] if self.selective else [nip]


# ============================================================
# レジストリ
# ============================================================

ELEMENT_KINDS: dict[str, ElementKindProtocol] = {
    "line2": Line2(),
    "tri3": Tri3(),
    "tri3_pe": Tri3(material_mode=MaterialMode.PLANE_STRAIN, name="tri3_pe"),
    "quad4": Quad4(),
    "quad4_pe": Quad4(material_mode=MaterialMode.PLANE_STRAIN, name="quad4_pe"),
    "tet4": Tet4(),
    "hex8": Hex8(),
    "hex8_sri": Hex8(selective=True, name="hex8_sri"),
}


def give_element_kind(name: str) -> ElementKindProtocol:
    """キーワードから要素種別を返す."""
    try:
        return ELEMENT_KINDS[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"未知の要素種別: {name}（対応: {sorted(ELEMENT_KINDS)}）"
        ) from None


__all__ = [
    "ELEMENT_KINDS",
    "Hex8",
    "Line2",
    "Quad4",
    "Tet4",
    "Tri3",
    "dof_mask_for",
    "give_element_kind",
    "global_to_local",
    "jacobian",
    "jacobian_measure",
    "local_to_global",
]
