"""1次元弾塑性材料（線形等方硬化）.

Return mapping は 1D なので closed-form で解ける:
  試行応力    σ_tr = E (ε - ε_p)
  降伏関数    f = |σ_tr| - (σ_y0 + H κ)
  塑性乗数    Δγ = f / (E + H)

参考文献:
  - Simo & Hughes (1998) "Computational Inelasticity", Ch.1
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from elgeom.core.enums import MaterialMode
from elgeom.core.state import PlasticMaterialStatus
from elgeom.materials.base import StatusMaterial

if TYPE_CHECKING:
    from elgeom.integration.gauss_point import GaussPoint


class ReturnMappingResult(NamedTuple):
    """Return mapping の結果."""

    stress: float
    tangent: float
    yielded: bool


class Plasticity1D(StatusMaterial):
    """1D 弾塑性材料.

    Args:
        number: 材料番号
        E: ヤング率
        sigma_y0: 初期降伏応力（正値）
        H_iso: 等方硬化係数
    """

    supported_modes = frozenset({MaterialMode.ONE_D})
    relative_cost = 2.0

    def __init__(self, number: int, E: float, sigma_y0: float, H_iso: float = 0.0) -> None:
        if E <= 0.0:
            raise ValueError(f"ヤング率は正値: {E}")
        if sigma_y0 <= 0.0:
            raise ValueError(f"初期降伏応力は正値: {sigma_y0}")
        super().__init__(number)
        self.E = E
        self.sigma_y0 = sigma_y0
        self.H_iso = H_iso

    def create_status(self, gp: GaussPoint) -> PlasticMaterialStatus:
        return PlasticMaterialStatus(gp.material_mode)

    def return_mapping(self, gp: GaussPoint, strain: float) -> ReturnMappingResult:
        """平衡状態から出発して一時状態を更新する."""
        status = self.give_status(gp)
        eps_p = float(status.values["plastic_strain"][0])
        kappa = float(status.values["kappa"][0])

        stress_trial = self.E * (strain - eps_p)
        f_trial = abs(stress_trial) - (self.sigma_y0 + self.H_iso * kappa)

        if f_trial <= 0.0:
            stress, tangent, yielded = stress_trial, self.E, False
        else:
            dgamma = f_trial / (self.E + self.H_iso)
            sign = np.sign(stress_trial)
            stress = stress_trial - self.E * dgamma * sign
            eps_p += dgamma * sign
            kappa += dgamma
            tangent = self.E * self.H_iso / (self.E + self.H_iso)
            yielded = True

        status.set_temp("strain", strain)
        status.set_temp("stress", stress)
        status.set_temp("plastic_strain", eps_p)
        status.set_temp("kappa", kappa)
        return ReturnMappingResult(stress=float(stress), tangent=float(tangent), yielded=yielded)
