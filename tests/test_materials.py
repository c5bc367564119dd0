"""材料・断面・時間関数・設定のテスト.

テスト方針:
  1. 弾性マトリクス（平面応力・平面ひずみ・3D）
  2. 1D 弾塑性の return mapping（弾性域、降伏後、状態の一時値）
  3. 断面の能力フラグと体積係数
  4. 時間関数・設定の検証・ログ設定
"""

from __future__ import annotations

import logging
from types import SimpleNamespace

import numpy as np
import pytest

from elgeom.config import CommunicationConfig, MappingConfig
from elgeom.core.constitutive import CrossSectionProtocol, MaterialProtocol
from elgeom.core.enums import Capability, InternalStateType, MaterialMode
from elgeom.core.time import (
    ConstantFunction,
    HeavisideFunction,
    PiecewiseLinearFunction,
    TimeStep,
)
from elgeom.logging_config import setup_logging
from elgeom.materials.elastic import (
    IsotropicLinearElastic,
    constitutive_3d,
    constitutive_plane_strain,
    constitutive_plane_stress,
)
from elgeom.materials.plasticity_1d import Plasticity1D
from elgeom.sections.simple import SimpleCrossSection

E_MAT = 200_000.0
NU = 0.3
SIGMA_Y0 = 250.0
H_ISO = 1000.0


def _gp(mode: MaterialMode) -> SimpleNamespace:
    """材料の試験用の最小限の積分点."""
    return SimpleNamespace(material_mode=mode, material_status=None)


class TestElastic:
    """等方線形弾性."""

    def test_plane_stress(self):
        D = constitutive_plane_stress(E_MAT, NU)
        assert D[0, 0] == pytest.approx(E_MAT / (1.0 - NU**2))
        assert D[2, 2] == pytest.approx(E_MAT / (2.0 * (1.0 + NU)))

    def test_plane_strain_is_3d_subset(self):
        D3 = constitutive_3d(E_MAT, NU)
        D = constitutive_plane_strain(E_MAT, NU)
        assert D.shape == (4, 4)
        assert D[3, 3] == pytest.approx(D3[5, 5])
        assert D[0, 2] == pytest.approx(D3[0, 2])

    @pytest.mark.parametrize("mode", list(MaterialMode))
    def test_stiffness_symmetric(self, mode):
        D = IsotropicLinearElastic(1, E_MAT, NU).give_stiffness_matrix(mode)
        assert D.shape == (mode.n_components, mode.n_components)
        np.testing.assert_allclose(D, D.T)

    def test_stress_recorded_as_trial(self):
        mat = IsotropicLinearElastic(1, E_MAT, NU)
        gp = _gp(MaterialMode.ONE_D)
        stress = mat.give_real_stress(gp, [1e-3])
        assert stress[0] == pytest.approx(200.0)
        assert gp.material_status.get("stress", temp=True)[0] == pytest.approx(200.0)
        assert gp.material_status.get("stress")[0] == 0.0

    def test_unsupported_ip_value(self):
        mat = IsotropicLinearElastic(1, E_MAT, NU)
        result = mat.give_ip_value(
            _gp(MaterialMode.THREE_D), InternalStateType.PLASTIC_STRAIN_TENSOR, TimeStep(1, 1.0)
        )
        assert not result.supported

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            IsotropicLinearElastic(1, -1.0, NU)
        with pytest.raises(ValueError):
            IsotropicLinearElastic(1, E_MAT, 0.5)

    def test_protocol_conformance(self):
        assert isinstance(IsotropicLinearElastic(1, E_MAT, NU), MaterialProtocol)


class TestPlasticity1D:
    """1D 弾塑性."""

    def _make(self) -> Plasticity1D:
        return Plasticity1D(1, E=E_MAT, sigma_y0=SIGMA_Y0, H_iso=H_ISO)

    def test_elastic_below_yield(self):
        mat = self._make()
        gp = _gp(MaterialMode.ONE_D)
        result = mat.return_mapping(gp, 0.5 * SIGMA_Y0 / E_MAT)
        assert not result.yielded
        assert result.stress == pytest.approx(0.5 * SIGMA_Y0)
        assert result.tangent == E_MAT

    def test_hardening_after_yield(self):
        mat = self._make()
        gp = _gp(MaterialMode.ONE_D)
        eps = 2.0 * SIGMA_Y0 / E_MAT
        result = mat.return_mapping(gp, eps)
        dgamma = (E_MAT * eps - SIGMA_Y0) / (E_MAT + H_ISO)
        assert result.yielded
        assert result.stress == pytest.approx(SIGMA_Y0 + H_ISO * dgamma)
        assert result.tangent == pytest.approx(E_MAT * H_ISO / (E_MAT + H_ISO))
        status = gp.material_status
        assert status.get("kappa", temp=True)[0] == pytest.approx(dgamma)
        assert status.get("kappa")[0] == 0.0

    def test_commit_then_unload(self):
        mat = self._make()
        gp = _gp(MaterialMode.ONE_D)
        eps = 2.0 * SIGMA_Y0 / E_MAT
        mat.return_mapping(gp, eps)
        gp.material_status.update_yourself()
        eps_p = gp.material_status.get("plastic_strain")[0]
        result = mat.return_mapping(gp, eps - 1e-4)
        assert not result.yielded
        assert result.stress == pytest.approx(E_MAT * (eps - 1e-4 - eps_p))

    def test_one_dimensional_only(self):
        mat = self._make()
        assert mat.has_material_mode_capability(MaterialMode.ONE_D)
        assert not mat.has_material_mode_capability(MaterialMode.PLANE_STRESS)

    def test_cumulative_plastic_strain_ip_value(self):
        mat = self._make()
        gp = _gp(MaterialMode.ONE_D)
        mat.return_mapping(gp, 3.0 * SIGMA_Y0 / E_MAT)
        gp.material_status.update_yourself()
        result = mat.give_ip_value(
            gp, InternalStateType.CUMULATIVE_PLASTIC_STRAIN, TimeStep(1, 1.0)
        )
        assert result.supported
        assert result.value[0] > 0.0


class TestCrossSection:
    """単純断面."""

    def test_capabilities(self):
        mat = IsotropicLinearElastic(1, E_MAT, NU)
        cs = SimpleCrossSection(1, mat, capabilities=Capability.PLANE_STRESS | Capability.ONE_D)
        assert cs.is_characteristic_mode_supported(MaterialMode.PLANE_STRESS)
        assert not cs.is_characteristic_mode_supported(MaterialMode.THREE_D)
        assert isinstance(cs, CrossSectionProtocol)

    def test_volume_factor(self):
        cs = SimpleCrossSection(1, IsotropicLinearElastic(1, E_MAT, NU), thickness=0.2, area=3.0)
        assert cs.give_volume_factor(_gp(MaterialMode.ONE_D)) == 3.0
        assert cs.give_volume_factor(_gp(MaterialMode.PLANE_STRAIN)) == 0.2
        assert cs.give_volume_factor(_gp(MaterialMode.THREE_D)) == 1.0

    def test_invalid_geometry(self):
        with pytest.raises(ValueError):
            SimpleCrossSection(1, IsotropicLinearElastic(1, E_MAT, NU), thickness=0.0)


class TestTimeFunctions:
    """時間関数と解析ステップ."""

    def test_functions(self):
        assert ConstantFunction(2.0).evaluate(5.0) == 2.0
        assert HeavisideFunction(1.0).evaluate(1.0) == 0.0
        assert HeavisideFunction(1.0).evaluate(1.1) == 1.0
        fn = PiecewiseLinearFunction((0.0, 1.0, 2.0), (0.0, 1.0, 0.0))
        assert fn.evaluate(0.5) == pytest.approx(0.5)
        assert fn.evaluate(3.0) == 0.0

    def test_invalid_function(self):
        with pytest.raises(ValueError):
            PiecewiseLinearFunction((0.0, 1.0), (0.0,))
        with pytest.raises(ValueError):
            PiecewiseLinearFunction((1.0, 0.0), (0.0, 1.0))

    def test_step(self):
        step = TimeStep(1, 0.5, dt=0.5)
        nxt = step.next()
        assert (nxt.number, nxt.target_time) == (2, 1.0)
        with pytest.raises(ValueError):
            TimeStep(1, 0.0, dt=0.0)


class TestConfig:
    """設定の検証."""

    def test_defaults(self):
        assert MappingConfig().n_candidates == 8
        assert CommunicationConfig().safety_bytes == 0

    @pytest.mark.parametrize(
        "kwargs",
        [{"n_candidates": 0}, {"inside_tolerance": -1.0}, {"max_fallback_distance": -0.1}],
    )
    def test_invalid_mapping_config(self, kwargs):
        with pytest.raises(ValueError):
            MappingConfig(**kwargs)

    def test_invalid_communication_config(self):
        with pytest.raises(ValueError):
            CommunicationConfig(initial_size=-1)


class TestLogging:
    """ログ設定."""

    def test_setup_logging_to_file(self, tmp_path):
        log_file = tmp_path / "elgeom.log"
        setup_logging(logging.DEBUG, str(log_file))
        logger = logging.getLogger("elgeom")
        try:
            assert len(logger.handlers) == 2
            logging.getLogger("elgeom.domain").info("テストメッセージ")
            for handler in logger.handlers:
                handler.flush()
            assert "テストメッセージ" in log_file.read_text(encoding="utf-8")
            setup_logging(logging.INFO)
            assert len(logger.handlers) == 1
        finally:
            for handler in list(logger.handlers):
                handler.close()
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)

    def test_rank_prefix(self, tmp_path):
        log_file = tmp_path / "rank1.log"
        logger = setup_logging(logging.INFO, str(log_file), rank=1)
        try:
            assert logger is logging.getLogger("elgeom")
            logging.getLogger("elgeom.parallel.communicator").warning("同期失敗")
            for handler in logger.handlers:
                handler.flush()
            line = log_file.read_text(encoding="utf-8").strip()
            assert "[rank 1]" in line
            assert line.endswith("elgeom.parallel.communicator: 同期失敗")
        finally:
            for handler in list(logger.handlers):
                handler.close()
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)
