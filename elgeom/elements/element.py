"""要素幾何（ElementGeometry）.

メッシュ要素1個を表す集約オブジェクト。DOF マネージャ（節点）番号、
材料・断面・活性時間関数の番号、局所座標系、所有する積分則の列、
並列計算での所有モードとパーティション一覧を保持する。

要素層自身は応力やひずみを計算しない。責務は次の3つ:
  1. 積分点状態のライフサイクルと走査（体積集計、ステップ開始・commit）
  2. パーティション境界での積分点状態の直列化（pack / unpack）
  3. 再メッシュ時の旧メッシュからの状態写像（adaptive_map / update / finish）

ライフサイクル:
  CREATED → DOF_MANAGERS_ATTACHED → RULES_BUILT
    → (ステップループ、活性時間関数でゲート)
    → 再メッシュ時: MAPPING_IN_PROGRESS → MAPPING_FINISHED → ステップループ再開

積分点の訪問はすべて elgeom.integration.traversal を通り、
「積分則順 → 点順」の固定順序となる。
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, TextIO

import numpy as np

from elgeom.adaptivity.mapper import AdaptiveStateMapper
from elgeom.config import MappingConfig
from elgeom.core.element import ElementKindProtocol
from elgeom.core.enums import (
    ContextMode,
    DofID,
    ElementStage,
    EntityKind,
    EquationKind,
    GeometryType,
    IntegrationDomain,
    InternalStateType,
    MaterialMode,
    ParallelMode,
)
from elgeom.core.errors import (
    ConfigurationError,
    ContextIOError,
    ElementStateError,
    ProtocolDesyncError,
)
from elgeom.core.results import IPValueResult, MappingResult, SourcePoint
from elgeom.core.time import TimeStep
from elgeom.elements.kinds import (
    global_to_local,
    jacobian,
    jacobian_measure,
    local_to_global,
)
from elgeom.integration.gauss_point import GaussPoint
from elgeom.integration.rule import IntegrationRule
from elgeom.integration.traversal import (
    count_integration_points,
    ip_accumulate,
    ip_evaluator,
    iter_integration_points,
)
from elgeom.io.input_record import (
    IFT_ACTIVITY_FUNCTION,
    IFT_CROSS_SECTION,
    IFT_LCS,
    IFT_MATERIAL,
    IFT_NIP,
    IFT_NODES,
    InputRecord,
)

if TYPE_CHECKING:
    from elgeom.core.constitutive import CrossSectionProtocol, MaterialProtocol
    from elgeom.domain import Domain, Node
    from elgeom.io.datastream import DataStream

logger = logging.getLogger(__name__)

# コンテキスト中の「未指定」を表す番号
_NONE_ID = -1


class ElementGeometry:
    """要素幾何.

    Args:
        number: 領域内の要素番号（局所番号）
        domain: 所属領域。節点・材料・断面・時間関数の解決に使う。
        kind: 要素種別（ElementKindProtocol 適合オブジェクト）

    Attributes:
        dof_managers: 節点番号の並び（領域レジストリへの非所有参照）
        material: 材料番号
        cross_section: 断面番号
        activity_function: 活性時間関数の番号（None は常に活性）
        nip: 積分点数の指定（None は種別の既定値）
        parallel_mode: 所有モード（LOCAL / REMOTE）
        partitions: この要素を共有するパーティション番号
        stage: ライフサイクル段階
    """

    def __init__(
        self, number: int, domain: Domain | None, kind: ElementKindProtocol
    ) -> None:
        self.number = number
        self.domain = domain
        self.kind = kind
        self._global_number = number
        self.dof_managers: list[int] = []
        self.material = 0
        self.cross_section = 0
        self.activity_function: int | None = None
        self.nip: int | None = None
        self._lcs_input: list[float] | None = None
        self._lcs: np.ndarray | None = None
        self._rules: tuple[IntegrationRule, ...] = ()
        self.parallel_mode = ParallelMode.LOCAL
        self.partitions: list[int] = []
        self.stage = ElementStage.CREATED
        self._coords_cache: np.ndarray | None = None
        self._mapping_sources: dict[tuple[int, int], SourcePoint] | None = None

    def __repr__(self) -> str:
        return (
            f"ElementGeometry(number={self.number}, kind={self.kind.name}, "
            f"global_number={self._global_number}, stage={self.stage.name})"
        )

    # ------------------------------------------------------------------
    # 番号
    # ------------------------------------------------------------------

    @property
    def global_number(self) -> int:
        """全パーティションで一意な要素番号."""
        return self._global_number

    @global_number.setter
    def global_number(self, value: int) -> None:
        self._global_number = int(value)

    def give_label(self) -> int:
        """出力用ラベル（全体番号）."""
        return self._global_number

    # ------------------------------------------------------------------
    # 入力レコード
    # ------------------------------------------------------------------

    def initialize_from(self, record: InputRecord) -> None:
        """入力レコードから要素を構成する.

        必須: mat, crosssect, nodes
        任意: lcs（e1, e2 の6成分）, nip, activityltf
        未知のキーは無視する。
        """
        self.material = record.give_int(IFT_MATERIAL)
        self.cross_section = record.give_int(IFT_CROSS_SECTION)
        nodes = record.give_int_list(IFT_NODES)
        nip = record.give_int(IFT_NIP, default=None)
        if nip is not None and nip < 1:
            raise ConfigurationError(f"要素 {self.number}: nip は1以上: {nip}")
        self.nip = nip
        self.activity_function = record.give_int(IFT_ACTIVITY_FUNCTION, default=None)
        lcs = record.give_float_list(IFT_LCS, default=None)
        self._lcs_input = lcs
        self._lcs = None if lcs is None else self._build_lcs(lcs)
        self.set_dof_managers(nodes)

    def give_input_record(self) -> InputRecord:
        """initialize_from が読んだフィールドをそのまま書き戻したレコード."""
        record = InputRecord(self.kind.name, self.number)
        record.set_field(IFT_MATERIAL, self.material)
        record.set_field(IFT_CROSS_SECTION, self.cross_section)
        record.set_field(IFT_NODES, list(self.dof_managers))
        if self._lcs_input is not None:
            record.set_field(IFT_LCS, list(self._lcs_input))
        if self.nip is not None:
            record.set_field(IFT_NIP, self.nip)
        if self.activity_function is not None:
            record.set_field(IFT_ACTIVITY_FUNCTION, self.activity_function)
        return record

    def _build_lcs(self, lcs: Sequence[float]) -> np.ndarray:
        if len(lcs) != 6:
            raise ConfigurationError(
                f"要素 {self.number}: lcs は e1, e2 の6成分: {len(lcs)} 成分"
            )
        e1 = np.asarray(lcs[:3], dtype=float)
        e2 = np.asarray(lcs[3:], dtype=float)
        e3 = np.cross(e1, e2)
        n1, n3 = np.linalg.norm(e1), np.linalg.norm(e3)
        if n1 == 0.0 or n3 == 0.0:
            raise ConfigurationError(f"要素 {self.number}: lcs が退化している: {list(lcs)}")
        e1 = e1 / n1
        e3 = e3 / n3
        return np.vstack([e1, np.cross(e3, e1), e3])

    # ------------------------------------------------------------------
    # 節点・積分則の取り付け
    # ------------------------------------------------------------------

    def set_dof_managers(self, nodes: Sequence[int]) -> None:
        """節点番号を（再）設定する.

        幾何キャッシュを破棄する。積分則が構築済みなら破棄され、
        post_initialize / build_integration_rules で作り直す必要がある。
        """
        if len(nodes) != self.kind.n_nodes:
            raise ConfigurationError(
                f"要素 {self.number} ({self.kind.name}): 節点数 {self.kind.n_nodes} に対し "
                f"{len(nodes)} 個指定"
            )
        self.dof_managers = [int(n) for n in nodes]
        self._coords_cache = None
        if self._rules:
            logger.debug("要素 %d: 節点の変更により積分則を破棄", self.number)
        self._rules = ()
        self.stage = ElementStage.DOF_MANAGERS_ATTACHED

    def set_integration_rules(self, rules: Sequence[IntegrationRule]) -> None:
        """積分則を一括で（再）設定する."""
        if self.stage < ElementStage.DOF_MANAGERS_ATTACHED:
            raise ElementStateError(f"要素 {self.number}: 節点より先に積分則は設定できない")
        for rule in rules:
            if rule.element is not self:
                raise ConfigurationError(
                    f"要素 {self.number}: 他要素の積分則 {rule!r} は設定できない"
                )
        self._rules = tuple(rules)
        self._coords_cache = None
        self.stage = (
            ElementStage.RULES_BUILT if self._rules else ElementStage.DOF_MANAGERS_ATTACHED
        )

    def post_initialize(self) -> None:
        """節点を解決し、積分則を構築する（構築後に1回呼ぶ）."""
        self.give_nodes()
        if not self._rules:
            self.build_integration_rules()

    def build_integration_rules(self) -> None:
        """種別の積分則レイアウトに従って積分則を生成する."""
        nip = self.kind.default_nip if self.nip is None else self.nip
        rules = []
        for i, n in enumerate(self.kind.rule_layout(nip)):
            rule = IntegrationRule(i, self)
            rule.set_up_integration_points(
                self.kind.integration_domain, n, self.kind.material_mode
            )
            rules.append(rule)
        self.set_integration_rules(rules)
        logger.debug(
            "要素 %d: 積分則 %d 個、積分点 %d 個を構築",
            self.number,
            len(self._rules),
            count_integration_points(self._rules),
        )

    @property
    def integration_rules(self) -> tuple[IntegrationRule, ...]:
        return self._rules

    def give_number_of_integration_rules(self) -> int:
        return len(self._rules)

    def give_integration_rule(self, i: int) -> IntegrationRule:
        return self._rules[i]

    def give_default_integration_rule(self) -> int:
        return 0

    def give_default_integration_rule_ptr(self) -> IntegrationRule | None:
        return self._rules[0] if self._rules else None

    def _built_rules(self) -> tuple[IntegrationRule, ...]:
        if self.stage < ElementStage.RULES_BUILT or not self._rules:
            raise ElementStateError(
                f"要素 {self.number}: 積分則が未構築（stage={self.stage.name}）"
            )
        return self._rules

    def _check_steppable(self) -> tuple[IntegrationRule, ...]:
        rules = self._built_rules()
        if self.stage is ElementStage.MAPPING_IN_PROGRESS:
            raise ElementStateError(
                f"要素 {self.number}: 状態写像中はステップを進められない"
            )
        return rules

    # ------------------------------------------------------------------
    # 協調オブジェクトの解決
    # ------------------------------------------------------------------

    def _require_domain(self) -> Domain:
        if self.domain is None:
            raise ConfigurationError(f"要素 {self.number}: 領域に属していない")
        return self.domain

    def give_nodes(self) -> list[Node]:
        domain = self._require_domain()
        return [domain.give_node(n) for n in self.dof_managers]

    def give_node(self, inode: int) -> Node:
        """局所節点番号 inode（0 始まり）の節点."""
        if not 0 <= inode < len(self.dof_managers):
            raise ConfigurationError(
                f"要素 {self.number}: 局所節点番号が範囲外: {inode}"
            )
        return self._require_domain().give_node(self.dof_managers[inode])

    def give_material(self) -> MaterialProtocol:
        return self._require_domain().give_material(self.material)

    def give_cross_section(self) -> CrossSectionProtocol:
        return self._require_domain().give_cross_section(self.cross_section)

    # ------------------------------------------------------------------
    # 種別の問い合わせ
    # ------------------------------------------------------------------

    def give_geometry_type(self) -> GeometryType:
        return self.kind.geometry_type

    def give_spatial_dimension(self) -> int:
        return self.kind.spatial_dimension

    def give_number_of_dof_managers(self) -> int:
        return self.kind.n_nodes

    def give_number_of_boundary_sides(self) -> int:
        return self.kind.n_boundary_sides

    def give_integration_domain(self) -> IntegrationDomain:
        return self.kind.integration_domain

    def give_material_mode(self) -> MaterialMode:
        return self.kind.material_mode

    def give_parent_size(self) -> float:
        return self.kind.parent_size

    # ------------------------------------------------------------------
    # DOF
    # ------------------------------------------------------------------

    def give_dof_man_dof_id_mask(
        self, inode: int, equation: EquationKind
    ) -> tuple[DofID, ...]:
        """局所節点 inode で要素が使う DOF の並び.

        節点が持たない DOF を要求した場合は ConfigurationError。
        """
        node = self.give_node(inode)
        mask = self.kind.dof_id_mask(inode, equation)
        missing = [d.name for d in mask if d not in node.dofs]
        if missing:
            raise ConfigurationError(
                f"要素 {self.number}: 節点 {node.number} に DOF {missing} がない"
            )
        return mask

    def give_location_array(self, equation: EquationKind) -> list[int]:
        """要素の方程式番号配列（節点順 → DOF マスク順）.

        方程式番号 0 は番号付けされていない（拘束された）DOF を表す。
        """
        loc: list[int] = []
        for inode in range(len(self.dof_managers)):
            node = self.give_node(inode)
            for dof in self.give_dof_man_dof_id_mask(inode, equation):
                loc.append(node.equation_numbers.get(dof, 0))
        return loc

    # ------------------------------------------------------------------
    # 幾何
    # ------------------------------------------------------------------

    def give_node_coordinates(self) -> np.ndarray:
        """節点座標 (n_nodes, ndim)。set_dof_managers まで保持する."""
        if self._coords_cache is None:
            self._coords_cache = np.vstack(
                [np.asarray(node.coordinates, dtype=float) for node in self.give_nodes()]
            )
        return self._coords_cache

    def compute_global_coordinates(self, lcoords: np.ndarray) -> np.ndarray:
        return local_to_global(
            self.kind, np.asarray(lcoords, dtype=float), self.give_node_coordinates()
        )

    def compute_local_coordinates(
        self, gcoords: np.ndarray, tol: float = 1e-8
    ) -> tuple[bool, np.ndarray]:
        """全体座標から局所座標を求める.

        点が要素外でも局所座標は返す。

        Returns:
            (inside, lcoords)
        """
        return global_to_local(self.kind, gcoords, self.give_node_coordinates(), tol)

    def compute_centroid(self) -> np.ndarray:
        """母要素中心の全体座標."""
        return self.compute_global_coordinates(self.kind.center())

    def give_local_coordinate_system(self) -> np.ndarray | None:
        """局所座標系（行が単位基底ベクトルの 3×3）。全体系と同じなら None."""
        return None if self._lcs is None else self._lcs.copy()

    def compute_mid_plane_normal(self, gp: GaussPoint) -> np.ndarray:
        """2次元要素の中立面の単位法線."""
        if self.kind.spatial_dimension != 2:
            raise ConfigurationError(
                f"要素 {self.number} ({self.kind.name}): 中立面法線は2次元要素のみ"
            )
        J = jacobian(self.kind, gp.local_coords, self.give_node_coordinates())
        t = np.zeros((3, 2))
        t[: J.shape[0], :] = J
        n = np.cross(t[:, 0], t[:, 1])
        return n / np.linalg.norm(n)

    def give_length_in_dir(self, direction: np.ndarray) -> float:
        """節点を方向 direction へ投影した広がり."""
        d = np.zeros(3)
        d[: len(direction)] = direction
        d /= np.linalg.norm(d)
        coords = self.give_node_coordinates()
        x = np.zeros((coords.shape[0], 3))
        x[:, : coords.shape[1]] = coords
        proj = x @ d
        return float(proj.max() - proj.min())

    def give_characteristic_length(self, gp: GaussPoint, direction: np.ndarray) -> float:
        return self.give_length_in_dir(direction)

    # ------------------------------------------------------------------
    # 体積集計
    # ------------------------------------------------------------------

    def compute_volume_around(self, gp: GaussPoint) -> float:
        """積分点が受け持つ体積: |J| × 重み × 断面係数（断面積・厚み）."""
        det = jacobian_measure(self.kind, gp.local_coords, self.give_node_coordinates())
        return det * gp.weight * self.give_cross_section().give_volume_factor(gp)

    def _average_over_rules(self, fn: Callable[[GaussPoint], float]) -> float:
        # 各積分則が要素全体を積分するため、全点の和を積分則数で割る
        rules = self._built_rules()
        return ip_accumulate(rules, lambda gp, acc: acc + fn(gp), 0.0) / len(rules)

    def _geometric_measure(self) -> float:
        coords = self.give_node_coordinates()
        return self._average_over_rules(
            lambda gp: jacobian_measure(self.kind, gp.local_coords, coords) * gp.weight
        )

    def compute_volume(self) -> float:
        """compute_volume_around の総和（断面係数込み）.

        全積分則の全積分点で和を取り、積分則数で割る。各積分則が要素全体を
        積分するので、積分則が1個ならそのまま総和、選択低減積分の hex8_sri
        のように複数なら各積分則の体積の平均になる。
        """
        return self._average_over_rules(self.compute_volume_around)

    def compute_area(self) -> float:
        """2次元要素の面積。他の次元では 0."""
        if self.kind.spatial_dimension != 2:
            return 0.0
        return self._geometric_measure()

    def compute_length(self) -> float:
        """1次元要素の長さ。他の次元では 0."""
        if self.kind.spatial_dimension != 1:
            return 0.0
        return self._geometric_measure()

    def compute_volume_area_or_length(self) -> float:
        dim = self.kind.spatial_dimension
        if dim == 1:
            return self.compute_length()
        if dim == 2:
            return self.compute_area()
        return self.compute_volume()

    def compute_mean_size(self) -> float:
        """代表寸法: 長さ / sqrt(面積) / cbrt(体積)."""
        dim = self.kind.spatial_dimension
        if dim == 1:
            return self.compute_length()
        if dim == 2:
            return float(np.sqrt(self.compute_area()))
        return float(np.cbrt(self.compute_volume()))

    # ------------------------------------------------------------------
    # 整合性・活性
    # ------------------------------------------------------------------

    def check_consistency(self) -> bool:
        """材料と断面が要素の材料モードに対応しているか.

        不整合は例外にせず False を返す（呼び出し側で致命扱いにする）。
        """
        mode = self.kind.material_mode
        ok = True
        if not self.give_material().has_material_mode_capability(mode):
            logger.error(
                "要素 %d: 材料 %d は材料モード %s に非対応", self.number, self.material, mode.name
            )
            ok = False
        if not self.give_cross_section().is_characteristic_mode_supported(mode):
            logger.error(
                "要素 %d: 断面 %d は材料モード %s に非対応",
                self.number,
                self.cross_section,
                mode.name,
            )
            ok = False
        return ok

    def is_activated(self, step: TimeStep) -> bool:
        """活性時間関数をステップ時刻で評価し、0 なら非活性."""
        if self.activity_function is None:
            return True
        fn = self._require_domain().give_function(self.activity_function)
        return fn.evaluate(step.target_time) != 0.0

    # ------------------------------------------------------------------
    # ステップのライフサイクル
    # ------------------------------------------------------------------

    def init_for_new_step(self) -> None:
        """全積分点の一時状態を平衡状態で初期化する."""
        rules = self._check_steppable()
        material = self.give_material()
        ip_evaluator(rules, lambda gp: material.give_status(gp).init_temp_status())

    def update_yourself(self, step: TimeStep) -> None:
        """収束したステップの一時状態を全積分点で平衡状態へ commit する."""
        rules = self._check_steppable()
        material = self.give_material()
        ip_evaluator(rules, lambda gp: material.give_status(gp).update_yourself(step))
        logger.debug("要素 %d: ステップ %d の状態を commit", self.number, step.number)

    def give_ip_value(
        self, gp: GaussPoint, kind: InternalStateType, step: TimeStep
    ) -> IPValueResult:
        """積分点の内部状態量。未対応なら IPValueResult.unsupported()."""
        return self.give_cross_section().give_ip_value(gp, kind, step)

    # ------------------------------------------------------------------
    # 番号付け替え
    # ------------------------------------------------------------------

    def update_local_numbering(self, renumber: Callable[[int, EntityKind], int]) -> None:
        """節点番号・全体番号・パーティション番号を一括で付け替える.

        新しい番号をすべて計算してから代入するため、renumber が途中で
        例外を送出した場合は何も変更されない。
        """
        nodes = [renumber(n, EntityKind.DOF_MANAGER) for n in self.dof_managers]
        global_number = renumber(self._global_number, EntityKind.ELEMENT)
        partitions = [renumber(p, EntityKind.PARTITION) for p in self.partitions]
        self.dof_managers = [int(n) for n in nodes]
        self._global_number = int(global_number)
        self.partitions = [int(p) for p in partitions]
        self._coords_cache = None

    # ------------------------------------------------------------------
    # パーティション間交換
    # ------------------------------------------------------------------

    def pack_unknowns(self, buffer: DataStream, step: TimeStep) -> None:
        """全積分点の状態を走査順に書き込む.

        形式: global_number, n_points, 各点のペイロード（断面・材料が生成）
        """
        rules = self._built_rules()
        cs = self.give_cross_section()
        buffer.write_int(self._global_number)
        buffer.write_int(count_integration_points(rules))
        ip_evaluator(rules, lambda gp: cs.pack_unknowns(buffer, step, gp))

    def estimate_pack_size(self, buffer: DataStream) -> int:
        """pack_unknowns が書き込むバイト数の上限."""
        rules = self._built_rules()
        cs = self.give_cross_section()
        return ip_accumulate(
            rules, lambda gp, n: n + cs.estimate_pack_size(buffer, gp), buffer.int_size(2)
        )

    def read_packed_unknowns(self, buffer: DataStream, step: TimeStep) -> list:
        """pack された状態を読み出す（積分点状態は変更しない）.

        Returns:
            走査順の点ごとのペイロード。apply_unpacked に渡す。
        """
        if self.parallel_mode is not ParallelMode.REMOTE:
            raise ElementStateError(
                f"要素 {self.number}: LOCAL 要素は所有パーティション以外から更新できない"
            )
        rules = self._built_rules()
        global_number = buffer.read_int()
        if global_number != self._global_number:
            raise ProtocolDesyncError(
                f"要素の全体番号が不一致: 受信 {global_number} != 期待 {self._global_number}"
            )
        n_points = buffer.read_int()
        expected = count_integration_points(rules)
        if n_points != expected:
            raise ProtocolDesyncError(
                f"要素 {self._global_number}: 積分点数が不一致: 受信 {n_points} != 期待 {expected}"
            )
        cs = self.give_cross_section()
        return [cs.unpack_unknowns(buffer, step, gp) for _, _, gp in iter_integration_points(rules)]

    def apply_unpacked(self, staged: Sequence) -> None:
        """read_packed_unknowns の結果を積分点状態へ反映する."""
        rules = self._built_rules()
        cs = self.give_cross_section()
        points = [gp for _, _, gp in iter_integration_points(rules)]
        if len(staged) != len(points):
            raise ProtocolDesyncError(
                f"要素 {self._global_number}: ペイロード数が不一致: {len(staged)} != {len(points)}"
            )
        for gp, payload in zip(points, staged):
            cs.apply_unpacked(gp, payload)

    def unpack_and_update_unknowns(self, buffer: DataStream, step: TimeStep) -> None:
        """pack された状態を読み出して反映する。読み出しが全て成功した後に反映する."""
        self.apply_unpacked(self.read_packed_unknowns(buffer, step))

    # ------------------------------------------------------------------
    # 適応写像
    # ------------------------------------------------------------------

    def adaptive_map(
        self,
        old_domain: Domain,
        step: TimeStep,
        *,
        mapper: AdaptiveStateMapper | None = None,
    ) -> MappingResult:
        """旧メッシュから全積分点の状態を写像する（一時値へ）.

        包含要素が無い点は最近傍要素で代用し、それも無い点は失敗として数える。
        写像後は adaptive_update で平衡状態へ commit し、
        adaptive_finish で写像の記録を破棄する。

        Args:
            old_domain: 旧メッシュの領域
            step: 現在のステップ
            mapper: 旧領域の探索構造。None なら既定設定で生成する。
        """
        rules = self._built_rules()
        if mapper is None:
            mapper = AdaptiveStateMapper(old_domain, MappingConfig())
        cs = self.give_cross_section()
        self.stage = ElementStage.MAPPING_IN_PROGRESS
        sources: dict[tuple[int, int], SourcePoint] = {}
        n_fallback = 0
        n_failed = 0
        for ir, ip, gp in iter_integration_points(rules):
            src = mapper.find_source(gp, ir)
            if src is None:
                n_failed += 1
                continue
            cs.map_status(gp, src.gp, step)
            sources[(ir, ip)] = src
            if src.fallback:
                n_fallback += 1
        self._mapping_sources = sources
        if n_failed:
            logger.warning(
                "要素 %d: %d 点で写像元が見つからない", self.number, n_failed
            )
        return MappingResult(
            ok=n_failed == 0,
            n_mapped=len(sources),
            n_fallback=n_fallback,
            n_failed=n_failed,
        )

    def adaptive_update(self, step: TimeStep) -> bool:
        """写像した状態を平衡状態へ commit する。写像が無ければ何もしない."""
        if not self._mapping_sources:
            return True
        material = self.give_material()
        for ir, ip in self._mapping_sources:
            material.give_status(self._rules[ir][ip]).update_yourself(step)
        return True

    def adaptive_finish(self, step: TimeStep) -> bool:
        """写像の記録を破棄し、ステップループへ戻す."""
        self._mapping_sources = None
        if self.stage is ElementStage.MAPPING_IN_PROGRESS:
            self.stage = ElementStage.MAPPING_FINISHED
        return True

    # ------------------------------------------------------------------
    # コンテキスト保存
    # ------------------------------------------------------------------

    def save_context(
        self, stream: DataStream, mode: ContextMode = ContextMode.STATE
    ) -> None:
        if ContextMode.DEFINITION in mode:
            stream.write_int(self._global_number)
            stream.write_int(self.material)
            stream.write_int(self.cross_section)
            stream.write_int(_NONE_ID if self.activity_function is None else self.activity_function)
            stream.write_ints(self.dof_managers)
            stream.write_int(_NONE_ID if self.nip is None else self.nip)
            stream.write_doubles([] if self._lcs_input is None else self._lcs_input)
            stream.write_int(int(self.parallel_mode))
            stream.write_ints(self.partitions)
        if ContextMode.STATE in mode:
            rules = self._built_rules()
            stream.write_int(len(rules))
            for rule in rules:
                rule.save_context(stream)

    def restore_context(
        self, stream: DataStream, mode: ContextMode = ContextMode.STATE
    ) -> None:
        """save_context と同じ mode で保存したストリームから復元する.

        DEFINITION を含み積分則が未構築なら、復元した定義から構築する。
        """
        if ContextMode.DEFINITION in mode:
            self._global_number = stream.read_int()
            self.material = stream.read_int()
            self.cross_section = stream.read_int()
            func = stream.read_int()
            self.activity_function = None if func == _NONE_ID else func
            nodes = [int(n) for n in stream.read_ints()]
            nip = stream.read_int()
            self.nip = None if nip == _NONE_ID else nip
            lcs = stream.read_doubles()
            self._lcs_input = [float(v) for v in lcs] if lcs.size else None
            self._lcs = None if self._lcs_input is None else self._build_lcs(self._lcs_input)
            self.parallel_mode = ParallelMode(stream.read_int())
            self.partitions = [int(p) for p in stream.read_ints()]
            if nodes != self.dof_managers:
                try:
                    self.set_dof_managers(nodes)
                except ConfigurationError as exc:
                    raise ContextIOError(f"要素 {self.number}: 保存された節点が不正") from exc
        if ContextMode.STATE in mode:
            if not self._rules:
                self.build_integration_rules()
            n_rules = stream.read_int()
            if n_rules != len(self._rules):
                raise ContextIOError(
                    f"要素 {self.number}: 積分則数が不一致: 保存 {n_rules} != 現在 {len(self._rules)}"
                )
            material = self.give_material()
            for rule in self._rules:
                rule.restore_context(stream, material.give_status)

    # ------------------------------------------------------------------
    # 出力・負荷分散
    # ------------------------------------------------------------------

    def print_output_at(self, file: TextIO, step: TimeStep) -> None:
        """積分点ごとの状態を書き出す."""
        rules = self._built_rules()
        material = self.give_material()
        file.write(f"element {self.give_label()} ({self.kind.name}):\n")
        for ir, ip, gp in iter_integration_points(rules):
            file.write(f"  GP {ir + 1}.{ip + 1} :")
            material.print_output_at(file, gp, step)

    def give_relative_self_computational_cost(self) -> float:
        return self.kind.relative_cost

    def predict_relative_computational_cost(self) -> float:
        """要素種別の重み × 積分点の材料コストの平均."""
        rules = self._built_rules()
        cs = self.give_cross_section()
        total = ip_accumulate(
            rules, lambda gp, acc: acc + cs.predict_relative_computational_cost(gp), 0.0
        )
        return self.kind.relative_cost * total / count_integration_points(rules)

    def predict_relative_redistribution_cost(self) -> float:
        return 1.0
