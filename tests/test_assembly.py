"""積分点走査による汎用アセンブリのテスト.

テスト方針:
  1. トラスの一貫荷重ベクトル・剛性行列が解析解と一致
  2. 拘束 DOF は方程式番号 0 で除外される
  3. 非活性要素・REMOTE 要素は寄与せず、被積分関数も呼ばれない
  4. 方程式番号未設定・積分則未構築はエラー
"""

from __future__ import annotations

import numpy as np
import pytest
import scipy.sparse as sp

from elgeom.assembly import assemble_global_matrix, assemble_global_vector, assembled_elements
from elgeom.core.enums import DofID, EquationKind, ParallelMode
from elgeom.core.errors import ConfigurationError, ElementStateError
from elgeom.core.time import HeavisideFunction, TimeStep
from elgeom.domain import Domain, Node
from elgeom.io.input_record import InputRecord
from elgeom.materials.elastic import IsotropicLinearElastic
from elgeom.sections.simple import SimpleCrossSection

E_MAT = 1.0
AREA = 2.0
NODE_X = [0.0, 1.0, 3.0]
STEP = TimeStep(1, 1.0)


def _make_bar(*, activity: bool = False, initialize: bool = True) -> Domain:
    """節点 x = 0, 1, 3 の2要素トラス（軸方向 DOF のみ）."""
    domain = Domain()
    mat = domain.add_material(IsotropicLinearElastic(1, E=E_MAT, nu=0.0))
    domain.add_cross_section(SimpleCrossSection(1, mat, area=AREA))
    domain.add_function(1, HeavisideFunction(origin=10.0))
    for i, x in enumerate(NODE_X, start=1):
        domain.add_node(Node(i, [x], dofs=(DofID.D_u,)))
    for e in range(2):
        fields = {"mat": 1, "crosssect": 1, "nodes": [e + 1, e + 2]}
        if activity and e == 1:
            fields["activityltf"] = 1
        domain.create_element(InputRecord("line2", e + 1, fields))
    if initialize:
        domain.post_initialize()
    domain.number_equations(EquationKind.DISPLACEMENT)
    return domain


def _load_integrand(element, gp):
    """∫N dV."""
    return element.kind.shape(gp.local_coords)


def _stiffness_integrand(element, gp):
    """∫Bᵀ E B dV."""
    x = element.give_node_coordinates()[:, 0]
    B = np.array([-1.0, 1.0]) / (x[1] - x[0])
    return E_MAT * np.outer(B, B)


class TestTrussAssembly:
    """2要素トラス."""

    def test_load_vector(self):
        f = assemble_global_vector(
            _make_bar(), STEP, EquationKind.DISPLACEMENT, _load_integrand
        )
        # 要素長 L の寄与は A L / 2 ずつ
        np.testing.assert_allclose(f, [1.0, 3.0, 2.0])

    def test_stiffness_matrix(self):
        K = assemble_global_matrix(
            _make_bar(), STEP, EquationKind.DISPLACEMENT, _stiffness_integrand
        )
        assert sp.issparse(K)
        expected = np.array([[2.0, -2.0, 0.0], [-2.0, 3.0, -1.0], [0.0, -1.0, 1.0]])
        np.testing.assert_allclose(K.toarray(), expected)

    def test_prescribed_dof_removed(self):
        domain = _make_bar()
        domain.give_node(1).prescribed = frozenset({DofID.D_u})
        assert domain.number_equations(EquationKind.DISPLACEMENT) == 2
        K = assemble_global_matrix(domain, STEP, EquationKind.DISPLACEMENT, _stiffness_integrand)
        np.testing.assert_allclose(K.toarray(), [[3.0, -1.0], [-1.0, 1.0]])


class TestSkippedElements:
    """アセンブリ対象外の要素."""

    def test_inactive_element_contributes_nothing(self):
        domain = _make_bar(activity=True)
        visited = []

        def integrand(element, gp):
            visited.append(element.number)
            return _load_integrand(element, gp)

        f = assemble_global_vector(domain, STEP, EquationKind.DISPLACEMENT, integrand)
        np.testing.assert_allclose(f, [1.0, 1.0, 0.0])
        assert set(visited) == {1}

    def test_element_active_after_origin(self):
        domain = _make_bar(activity=True)
        f = assemble_global_vector(
            domain, TimeStep(2, 11.0), EquationKind.DISPLACEMENT, _load_integrand
        )
        np.testing.assert_allclose(f, [1.0, 3.0, 2.0])

    def test_remote_element_contributes_nothing(self):
        domain = _make_bar()
        domain.give_element(2).parallel_mode = ParallelMode.REMOTE
        assert [e.number for e in assembled_elements(domain, STEP)] == [1]
        K = assemble_global_matrix(domain, STEP, EquationKind.DISPLACEMENT, _stiffness_integrand)
        np.testing.assert_allclose(K.toarray()[2], 0.0)

    def test_all_skipped_gives_empty_matrix(self):
        domain = _make_bar()
        for elem in domain.elements:
            elem.parallel_mode = ParallelMode.REMOTE
        K = assemble_global_matrix(domain, STEP, EquationKind.DISPLACEMENT, _stiffness_integrand)
        assert K.shape == (3, 3)
        assert K.nnz == 0


class TestErrors:
    """アセンブリの設定誤り."""

    def test_equations_not_numbered(self):
        domain = _make_bar()
        with pytest.raises(ConfigurationError, match="方程式番号"):
            assemble_global_vector(domain, STEP, EquationKind.TEMPERATURE, _load_integrand)

    def test_wrong_integrand_shape(self):
        with pytest.raises(ConfigurationError, match="形状"):
            assemble_global_vector(
                _make_bar(), STEP, EquationKind.DISPLACEMENT, lambda e, gp: np.ones(3)
            )

    def test_duplicate_registration(self):
        domain = _make_bar()
        with pytest.raises(ConfigurationError, match="登録済み"):
            domain.add_node(Node(1, [5.0]))

    def test_rules_not_built(self):
        domain = _make_bar(initialize=False)
        with pytest.raises(ElementStateError, match="積分則が未構築"):
            assemble_global_vector(domain, STEP, EquationKind.DISPLACEMENT, _load_integrand)
        with pytest.raises(ElementStateError):
            assemble_global_matrix(domain, STEP, EquationKind.DISPLACEMENT, _stiffness_integrand)
