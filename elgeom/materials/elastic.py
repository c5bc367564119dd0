"""等方線形弾性材料."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from elgeom.core.enums import MaterialMode
from elgeom.core.state import StructuralMaterialStatus
from elgeom.materials.base import StatusMaterial

if TYPE_CHECKING:
    from elgeom.integration.gauss_point import GaussPoint


def constitutive_plane_stress(E: float, nu: float) -> np.ndarray:
    """平面応力の弾性マトリクス D (3×3) を返す.

    Voigt 表記: σ = [σxx, σyy, τxy]
    """
    c = E / (1.0 - nu * nu)
    return c * np.array(
        [[1.0, nu, 0.0], [nu, 1.0, 0.0], [0.0, 0.0, 0.5 * (1.0 - nu)]], dtype=float
    )


def constitutive_3d(E: float, nu: float) -> np.ndarray:
    """3D 等方弾性テンソル D (6×6) を返す.

    Voigt 表記: σ = [σxx, σyy, σzz, τyz, τxz, τxy]
                ε = [εxx, εyy, εzz, γyz, γxz, γxy]
    """
    lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
    mu = E / (2.0 * (1.0 + nu))
    D = np.zeros((6, 6), dtype=float)
    # 法線成分
    D[0, 0] = D[1, 1] = D[2, 2] = lam + 2.0 * mu
    D[0, 1] = D[0, 2] = D[1, 0] = D[1, 2] = D[2, 0] = D[2, 1] = lam
    # せん断成分
    D[3, 3] = D[4, 4] = D[5, 5] = mu
    return D


def constitutive_plane_strain(E: float, nu: float) -> np.ndarray:
    """平面ひずみの弾性マトリクス D (4×4) を返す.

    Voigt 表記: σ = [σxx, σyy, σzz, τxy]（εzz = 0 の成分も保持する）
    """
    idx = [0, 1, 2, 5]
    return constitutive_3d(E, nu)[np.ix_(idx, idx)]


class IsotropicLinearElastic(StatusMaterial):
    """等方線形弾性材料（全材料モード対応）.

    Args:
        number: 材料番号
        E: ヤング率
        nu: ポアソン比
    """

    def __init__(self, number: int, E: float, nu: float) -> None:
        if E <= 0.0:
            raise ValueError(f"ヤング率は正値: {E}")
        if not -1.0 < nu < 0.5:
            raise ValueError(f"ポアソン比は (-1, 0.5): {nu}")
        super().__init__(number)
        self.E = E
        self.nu = nu

    def create_status(self, gp: GaussPoint) -> StructuralMaterialStatus:
        return StructuralMaterialStatus(gp.material_mode)

    def give_stiffness_matrix(self, mode: MaterialMode) -> np.ndarray:
        """材料モードに応じた弾性マトリクス D."""
        if mode is MaterialMode.ONE_D:
            return np.array([[self.E]])
        if mode is MaterialMode.PLANE_STRESS:
            return constitutive_plane_stress(self.E, self.nu)
        if mode is MaterialMode.PLANE_STRAIN:
            return constitutive_plane_strain(self.E, self.nu)
        return constitutive_3d(self.E, self.nu)

    def give_real_stress(self, gp: GaussPoint, strain: np.ndarray) -> np.ndarray:
        """ひずみから応力を計算し、一時状態に記録する."""
        strain = np.asarray(strain, dtype=float)
        stress = self.give_stiffness_matrix(gp.material_mode) @ strain
        status = self.give_status(gp)
        status.set_temp("strain", strain)
        status.set_temp("stress", stress)
        return stress
