"""解析領域.

節点（DOF マネージャ）、要素、材料、断面、時間関数を番号で管理する
レジストリ。要素はこれらを番号で参照し、必要な時に領域から解決する。
並列計算では1パーティションが1つの Domain を持つ（rank で識別）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from elgeom.core.constitutive import (
    CrossSectionProtocol,
    MaterialProtocol,
    TimeFunctionProtocol,
)
from elgeom.core.enums import DofID, EquationKind, ParallelMode
from elgeom.core.errors import ConfigurationError
from elgeom.core.time import TimeStep
from elgeom.elements.element import ElementGeometry
from elgeom.elements.kinds import give_element_kind
from elgeom.io.input_record import InputRecord

logger = logging.getLogger(__name__)

_DEFAULT_DOFS = (DofID.D_u, DofID.D_v, DofID.D_w)


@dataclass(eq=False)
class Node:
    """節点（DOF マネージャ）.

    Attributes:
        number: 領域内の節点番号
        coordinates: 全体座標 (1〜3 成分)
        dofs: 節点が持つ DOF
        prescribed: 拘束された DOF（方程式番号を持たない）
        global_number: 全パーティションで一意な番号（None なら number）
        parallel_mode: 所有モード
        partitions: 共有するパーティション番号
        equation_numbers: {DOF: 方程式番号（1 始まり）}
    """

    number: int
    coordinates: np.ndarray
    dofs: tuple[DofID, ...] = _DEFAULT_DOFS
    prescribed: frozenset[DofID] = frozenset()
    global_number: int | None = None
    parallel_mode: ParallelMode = ParallelMode.LOCAL
    partitions: list[int] = field(default_factory=list)
    equation_numbers: dict[DofID, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.coordinates = np.atleast_1d(np.asarray(self.coordinates, dtype=float))
        if self.coordinates.ndim != 1 or not 1 <= self.coordinates.size <= 3:
            raise ConfigurationError(
                f"節点 {self.number}: 座標は1〜3成分: {self.coordinates.shape}"
            )
        self.dofs = tuple(DofID(d) for d in self.dofs)
        self.prescribed = frozenset(DofID(d) for d in self.prescribed)
        if self.global_number is None:
            self.global_number = self.number


class Domain:
    """解析領域.

    Args:
        number: 領域番号
        rank: パーティション番号（並列計算でない場合は 0）
    """

    def __init__(self, number: int = 1, rank: int = 0) -> None:
        self.number = number
        self.rank = rank
        self.nodes: dict[int, Node] = {}
        self._elements: dict[int, ElementGeometry] = {}
        self.materials: dict[int, MaterialProtocol] = {}
        self.cross_sections: dict[int, CrossSectionProtocol] = {}
        self.functions: dict[int, TimeFunctionProtocol] = {}
        self.n_equations: dict[EquationKind, int] = {}

    def __repr__(self) -> str:
        return (
            f"Domain(number={self.number}, rank={self.rank}, "
            f"n_nodes={len(self.nodes)}, n_elements={len(self._elements)})"
        )

    # --- 登録 ---

    @staticmethod
    def _register(registry: dict, number: int, obj, what: str):
        if number in registry:
            raise ConfigurationError(f"{what} {number} は登録済み")
        registry[number] = obj
        return obj

    def add_node(self, node: Node) -> Node:
        return self._register(self.nodes, node.number, node, "節点")

    def add_element(self, element: ElementGeometry) -> ElementGeometry:
        element.domain = self
        return self._register(self._elements, element.number, element, "要素")

    def add_material(self, material: MaterialProtocol) -> MaterialProtocol:
        return self._register(self.materials, material.number, material, "材料")

    def add_cross_section(self, cs: CrossSectionProtocol) -> CrossSectionProtocol:
        return self._register(self.cross_sections, cs.number, cs, "断面")

    def add_function(self, number: int, fn: TimeFunctionProtocol) -> TimeFunctionProtocol:
        return self._register(self.functions, number, fn, "時間関数")

    def create_element(self, record: InputRecord) -> ElementGeometry:
        """入力レコードから要素を生成して登録する."""
        element = ElementGeometry(record.number, self, give_element_kind(record.keyword))
        element.initialize_from(record)
        return self.add_element(element)

    # --- 参照 ---

    @staticmethod
    def _give(registry: dict, number: int, what: str):
        try:
            return registry[number]
        except KeyError:
            raise ConfigurationError(f"{what} {number} は未登録") from None

    def give_node(self, number: int) -> Node:
        return self._give(self.nodes, number, "節点")

    def give_element(self, number: int) -> ElementGeometry:
        return self._give(self._elements, number, "要素")

    def give_material(self, number: int) -> MaterialProtocol:
        return self._give(self.materials, number, "材料")

    def give_cross_section(self, number: int) -> CrossSectionProtocol:
        return self._give(self.cross_sections, number, "断面")

    def give_function(self, number: int) -> TimeFunctionProtocol:
        return self._give(self.functions, number, "時間関数")

    @property
    def elements(self) -> list[ElementGeometry]:
        """要素番号順の要素リスト."""
        return [self._elements[k] for k in sorted(self._elements)]

    def give_element_by_global_number(self, global_number: int) -> ElementGeometry | None:
        for element in self._elements.values():
            if element.global_number == global_number:
                return element
        return None

    # --- 解析の駆動 ---

    def post_initialize(self) -> None:
        """全要素の節点を解決し、積分則を構築する."""
        for element in self.elements:
            element.post_initialize()
        logger.debug("領域 %d: %d 要素を初期化", self.number, len(self._elements))

    def check_consistency(self) -> None:
        """全要素の材料・断面の整合性を確認する。不整合があれば ConfigurationError."""
        failed = [e.number for e in self.elements if not e.check_consistency()]
        if failed:
            raise ConfigurationError(f"領域 {self.number}: 整合性チェック失敗の要素: {failed}")
        logger.info("領域 %d: 整合性チェック完了（%d 要素）", self.number, len(self._elements))

    def stepping_elements(self, step: TimeStep) -> list[ElementGeometry]:
        """ステップで計算対象となる要素（活性かつ LOCAL）."""
        return [
            e
            for e in self.elements
            if e.parallel_mode is ParallelMode.LOCAL and e.is_activated(step)
        ]

    def init_for_new_step(self, step: TimeStep) -> None:
        for element in self.stepping_elements(step):
            element.init_for_new_step()

    def update_yourself(self, step: TimeStep) -> None:
        """収束したステップの状態を commit する."""
        elements = self.stepping_elements(step)
        for element in elements:
            element.update_yourself(step)
        logger.debug(
            "領域 %d: ステップ %d、%d 要素を更新", self.number, step.number, len(elements)
        )

    def number_equations(self, equation: EquationKind) -> int:
        """要素が使う DOF に方程式番号を振る（節点番号順 → 節点 DOF 順）.

        Returns:
            方程式数
        """
        used: dict[int, set[DofID]] = {}
        for element in self.elements:
            for inode, n in enumerate(element.dof_managers):
                used.setdefault(n, set()).update(
                    element.give_dof_man_dof_id_mask(inode, equation)
                )
        count = 0
        for number in sorted(used):
            node = self.give_node(number)
            for dof in node.dofs:
                if dof not in used[number]:
                    continue
                node.equation_numbers.pop(dof, None)
                if dof in node.prescribed:
                    continue
                count += 1
                node.equation_numbers[dof] = count
        self.n_equations[equation] = count
        return count
