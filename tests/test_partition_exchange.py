"""パーティション間の積分点状態交換のテスト.

テスト方針:
  1. pack → unpack で状態が厳密に再現される（平衡値・一時値とも）
  2. estimate_pack_size ≥ 実際の書き込みバイト数
  3. シナリオB: 2パーティション、所有側とミラー側の ip_value 一致
  4. 全体番号・積分点数の不一致、LOCAL 要素への unpack はエラー
  5. 不整合時はミラーの状態が一切変わらない
"""

from __future__ import annotations

import numpy as np
import pytest

from elgeom.config import CommunicationConfig
from elgeom.core.enums import InternalStateType, ParallelMode
from elgeom.core.errors import (
    BufferOverrunError,
    ConfigurationError,
    ElementStateError,
    ProtocolDesyncError,
)
from elgeom.core.time import TimeStep
from elgeom.domain import Domain, Node
from elgeom.elements.element import ElementGeometry
from elgeom.integration.traversal import iter_integration_points
from elgeom.io.input_record import InputRecord
from elgeom.materials.elastic import IsotropicLinearElastic
from elgeom.parallel.buffer import CommunicationBuffer
from elgeom.parallel.communicator import PartitionSynchronizer
from elgeom.sections.simple import SimpleCrossSection

STEP = TimeStep(3, 0.3, dt=0.1)

# 2つの四角形要素: 全体番号 7（rank 0 所有）と 8（rank 1 所有）
QUAD_NODES = {
    1: [0.0, 0.0],
    2: [1.0, 0.0],
    3: [1.0, 1.0],
    4: [0.0, 1.0],
    5: [2.0, 0.0],
    6: [2.0, 1.0],
}
QUAD_CONNECTIVITY = {7: [1, 2, 3, 4], 8: [2, 5, 6, 3]}


def _make_partition(rank: int, nip: int = 4) -> Domain:
    """2要素を持つパーティション。全体番号 7 は rank 0、8 は rank 1 が所有."""
    domain = Domain(rank=rank)
    mat = domain.add_material(IsotropicLinearElastic(1, E=1000.0, nu=0.3))
    domain.add_cross_section(SimpleCrossSection(1, mat, thickness=0.1))
    for number, x in QUAD_NODES.items():
        domain.add_node(Node(number, x))
    for local, (gnum, nodes) in enumerate(sorted(QUAD_CONNECTIVITY.items()), start=1):
        elem = domain.create_element(
            InputRecord("quad4", local, {"mat": 1, "crosssect": 1, "nodes": nodes, "nip": nip})
        )
        elem.global_number = gnum
        elem.partitions = [0, 1]
        owner = 0 if gnum == 7 else 1
        elem.parallel_mode = ParallelMode.LOCAL if owner == rank else ParallelMode.REMOTE
    domain.post_initialize()
    return domain


def _load(elem: ElementGeometry, seed: int) -> None:
    """平衡状態と一時状態にそれぞれ異なる値を与える."""
    rng = np.random.default_rng(seed)
    material = elem.give_material()
    for _, _, gp in iter_integration_points(elem.integration_rules):
        material.give_real_stress(gp, rng.normal(size=3) * 1e-3)
    elem.update_yourself(STEP)
    for _, _, gp in iter_integration_points(elem.integration_rules):
        material.give_real_stress(gp, rng.normal(size=3) * 1e-3)


def _states(elem: ElementGeometry) -> list[np.ndarray]:
    return [
        np.concatenate(
            [gp.material_status.to_vector(), gp.material_status.to_vector(temp=True)]
        )
        for _, _, gp in iter_integration_points(elem.integration_rules)
    ]


def _by_global(domain: Domain, gnum: int) -> ElementGeometry:
    elem = domain.give_element_by_global_number(gnum)
    assert elem is not None
    return elem


class TestElementPackUnpack:
    """要素単位の pack / unpack."""

    def test_roundtrip_exact(self):
        owner = _by_global(_make_partition(0), 7)
        mirror = _by_global(_make_partition(1), 7)
        _load(owner, seed=1)
        buf = CommunicationBuffer(owner.estimate_pack_size(CommunicationBuffer(0)))
        owner.pack_unknowns(buf, STEP)
        mirror.unpack_and_update_unknowns(buf, STEP)
        assert buf.size_remaining == 0
        for a, b in zip(_states(owner), _states(mirror)):
            np.testing.assert_array_equal(a, b)

    @pytest.mark.parametrize("nip", [1, 4, 9])
    def test_estimate_is_upper_bound(self, nip):
        owner = _by_global(_make_partition(0, nip=nip), 7)
        _load(owner, seed=nip)
        buf = CommunicationBuffer(4096)
        estimate = owner.estimate_pack_size(buf)
        owner.pack_unknowns(buf, STEP)
        assert estimate >= buf.size_written

    def test_buffer_too_small(self):
        owner = _by_global(_make_partition(0), 7)
        buf = CommunicationBuffer(owner.estimate_pack_size(CommunicationBuffer(0)) - 8)
        with pytest.raises(BufferOverrunError):
            owner.pack_unknowns(buf, STEP)

    def test_unpack_into_local_element(self):
        owner = _by_global(_make_partition(0), 7)
        other_owner = _by_global(_make_partition(0), 7)
        buf = CommunicationBuffer(4096)
        owner.pack_unknowns(buf, STEP)
        with pytest.raises(ElementStateError):
            other_owner.unpack_and_update_unknowns(buf, STEP)

    def test_global_number_mismatch(self):
        owner = _by_global(_make_partition(0), 7)
        wrong = _by_global(_make_partition(0), 8)
        buf = CommunicationBuffer(4096)
        owner.pack_unknowns(buf, STEP)
        with pytest.raises(ProtocolDesyncError, match="全体番号"):
            wrong.unpack_and_update_unknowns(buf, STEP)

    def test_point_count_mismatch_leaves_mirror_untouched(self):
        owner = _by_global(_make_partition(0, nip=4), 7)
        mirror = _by_global(_make_partition(1, nip=9), 7)
        _load(owner, seed=2)
        _load_remote(mirror, seed=3)
        before = _states(mirror)
        buf = CommunicationBuffer(4096)
        owner.pack_unknowns(buf, STEP)
        with pytest.raises(ProtocolDesyncError, match="積分点数"):
            mirror.unpack_and_update_unknowns(buf, STEP)
        for a, b in zip(before, _states(mirror)):
            np.testing.assert_array_equal(a, b)


def _load_remote(elem: ElementGeometry, seed: int) -> None:
    """ミラー要素の状態を直接設定する."""
    rng = np.random.default_rng(seed)
    material = elem.give_material()
    for _, _, gp in iter_integration_points(elem.integration_rules):
        status = material.give_status(gp)
        status.apply_values(rng.normal(size=status.n_values), rng.normal(size=status.n_values))


class TestPartitionSynchronizer:
    """2パーティション間の交換."""

    def test_scenario_two_partitions(self):
        """所有側で pack、ミラー側で unpack した後の ip_value が一致."""
        d0, d1 = _make_partition(0), _make_partition(1)
        _load(_by_global(d0, 7), seed=10)
        sync = PartitionSynchronizer([d0, d1])
        buf = sync.pack(0, 1, STEP)
        assert sync.unpack(1, buf, STEP) == 1
        owner, mirror = _by_global(d0, 7), _by_global(d1, 7)
        for (_, _, gp0), (_, _, gp1) in zip(
            iter_integration_points(owner.integration_rules),
            iter_integration_points(mirror.integration_rules),
        ):
            for kind in (InternalStateType.STRESS_TENSOR, InternalStateType.STRAIN_TENSOR):
                v0 = owner.give_ip_value(gp0, kind, STEP)
                v1 = mirror.give_ip_value(gp1, kind, STEP)
                assert v0.supported and v1.supported
                np.testing.assert_array_equal(v0.value, v1.value)

    def test_exchange_both_directions(self):
        d0, d1 = _make_partition(0), _make_partition(1)
        _load(_by_global(d0, 7), seed=11)
        _load(_by_global(d1, 8), seed=12)
        owned_before = _states(_by_global(d0, 7))
        assert PartitionSynchronizer([d0, d1]).exchange(STEP) == 2
        for a, b in zip(_states(_by_global(d0, 7)), _states(_by_global(d1, 7))):
            np.testing.assert_array_equal(a, b)
        for a, b in zip(_states(_by_global(d1, 8)), _states(_by_global(d0, 8))):
            np.testing.assert_array_equal(a, b)
        for a, b in zip(owned_before, _states(_by_global(d0, 7))):
            np.testing.assert_array_equal(a, b)

    def test_buffer_grows_from_small_initial_size(self):
        d0, d1 = _make_partition(0, nip=9), _make_partition(1, nip=9)
        sync = PartitionSynchronizer([d0, d1], CommunicationConfig(initial_size=16))
        buf = sync.pack(0, 1, STEP)
        assert buf.capacity >= buf.size_written

    def test_shared_elements_sorted_and_owned(self):
        d0, d1 = _make_partition(0), _make_partition(1)
        sync = PartitionSynchronizer([d0, d1])
        assert [e.global_number for e in sync.shared_elements(0, 1)] == [7]
        assert [e.global_number for e in sync.shared_elements(1, 0)] == [8]

    def test_partial_message_is_not_applied(self):
        """2要素目で不整合なら1要素目のミラーも更新されない."""
        d0, d1 = _make_partition(0), _make_partition(1)
        owner7, owner8 = _by_global(d0, 7), _by_global(d0, 8)
        owner8.parallel_mode = ParallelMode.LOCAL
        _load(owner7, seed=20)
        _load(owner8, seed=21)
        mirror7 = _by_global(d1, 7)
        mirror8 = _by_global(d1, 8)
        mirror8.parallel_mode = ParallelMode.REMOTE
        mirror8.nip = 1
        mirror8.set_dof_managers(mirror8.dof_managers)
        mirror8.post_initialize()
        _load_remote(mirror7, seed=22)
        before = _states(mirror7)

        sync = PartitionSynchronizer([d0, d1])
        buf = sync.pack(0, 1, STEP)
        with pytest.raises(ProtocolDesyncError):
            sync.unpack(1, buf, STEP)
        for a, b in zip(before, _states(mirror7)):
            np.testing.assert_array_equal(a, b)

    def test_unconsumed_bytes(self):
        d0, d1 = _make_partition(0), _make_partition(1)
        sync = PartitionSynchronizer([d0, d1])
        buf = sync.pack(0, 1, STEP)
        buf.resize(buf.capacity + 8)
        buf.write_int(0)
        with pytest.raises(ProtocolDesyncError, match="未読"):
            sync.unpack(1, buf, STEP)

    def test_missing_mirror(self):
        d0 = _make_partition(0)
        d1 = Domain(rank=1)
        sync = PartitionSynchronizer([d0, d1])
        buf = sync.pack(0, 1, STEP)
        with pytest.raises(ProtocolDesyncError, match="ミラー要素"):
            sync.unpack(1, buf, STEP)

    def test_duplicate_rank(self):
        with pytest.raises(ConfigurationError):
            PartitionSynchronizer([Domain(rank=0), Domain(rank=0)])
