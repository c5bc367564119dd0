"""再メッシュ時の積分点状態の写像.

新メッシュの積分点ごとに、旧メッシュ上で空間的に対応する積分点を探し、
その平衡状態を新しい積分点の一時状態へコピーする。

探索手順:
  1. 旧要素の重心の KD 木から、最大外接半径内の要素を取り、
     バウンディングボックスで絞った候補を重心に近い順に包含判定する
  2. 新しい積分点を包含する要素があればそれを採用
  3. 無ければ重心の近い n_candidates 個のうち、同じ断面（領域）に属する
     最も近い要素で代用（max_fallback_distance を超える場合は不採用）
  4. それも無ければ写像元なし（ソフトな失敗）
写像元要素内では同じ番号の積分則（無ければ既定の積分則）の
最も近い積分点を写像元とする。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial import cKDTree

from elgeom.config import MappingConfig
from elgeom.core.enums import ElementStage
from elgeom.core.results import DomainMappingResult, SourcePoint
from elgeom.core.time import TimeStep

if TYPE_CHECKING:
    from elgeom.domain import Domain
    from elgeom.elements.element import ElementGeometry
    from elgeom.integration.gauss_point import GaussPoint

logger = logging.getLogger(__name__)


class AdaptiveStateMapper:
    """旧メッシュ上の写像元探索.

    Args:
        old_domain: 旧メッシュの領域（積分則構築済み）
        config: 探索の設定
    """

    def __init__(self, old_domain: Domain, config: MappingConfig | None = None) -> None:
        self.old_domain = old_domain
        self.config = config or MappingConfig()
        self._elements = [
            e for e in old_domain.elements if e.stage >= ElementStage.RULES_BUILT
        ]
        self._tree: cKDTree | None = None
        if self._elements:
            coords = [e.give_node_coordinates() for e in self._elements]
            self._centroids = np.vstack([e.compute_centroid() for e in self._elements])
            self._tree = cKDTree(self._centroids)
            lower = np.vstack([c.min(axis=0) for c in coords])
            upper = np.vstack([c.max(axis=0) for c in coords])
            # 包含判定の許容差と同程度だけ箱を広げる
            pad = self.config.inside_tolerance * np.linalg.norm(upper - lower, axis=1)
            self._lower = lower - pad[:, None]
            self._upper = upper + pad[:, None]
            # 線形要素は節点の凸包に収まる
            self._search_radius = max(
                float(np.linalg.norm(c - g, axis=1).max()) + p
                for c, g, p in zip(coords, self._centroids, pad)
            )
        self._gp_coords: dict[tuple[int, int], np.ndarray] = {}
        logger.debug("写像元探索: 旧要素 %d 個", len(self._elements))

    def _candidates(self, x: np.ndarray) -> list[ElementGeometry]:
        """重心が近い順の n_candidates 個（代用候補）."""
        if self._tree is None:
            return []
        k = min(self.config.n_candidates, len(self._elements))
        _, idx = self._tree.query(x, k=k)
        return [self._elements[i] for i in np.atleast_1d(idx)]

    def _containment_candidates(self, x: np.ndarray) -> list[ElementGeometry]:
        """バウンディングボックスが x を含む要素（重心が近い順）."""
        if self._tree is None:
            return []
        idx = [
            i
            for i in self._tree.query_ball_point(x, r=self._search_radius)
            if np.all(x >= self._lower[i]) and np.all(x <= self._upper[i])
        ]
        idx.sort(key=lambda i: float(np.linalg.norm(self._centroids[i] - x)))
        return [self._elements[i] for i in idx]

    def _rule_coordinates(self, elem: ElementGeometry, rule_index: int) -> np.ndarray:
        key = (elem.number, rule_index)
        if key not in self._gp_coords:
            rule = elem.give_integration_rule(rule_index)
            self._gp_coords[key] = np.vstack([gp.give_global_coordinates() for gp in rule])
        return self._gp_coords[key]

    def find_element(
        self, x: np.ndarray, region: int | None = None
    ) -> tuple[ElementGeometry, bool] | None:
        """点 x に対応する旧要素を探す.

        Args:
            x: 全体座標
            region: 代用時に一致を要求する断面番号（None なら問わない）

        Returns:
            (要素, 代用したか)。候補が無ければ None。
        """
        for elem in self._containment_candidates(x):
            inside, _ = elem.compute_local_coordinates(x, self.config.inside_tolerance)
            if inside:
                return elem, False
        for elem in self._candidates(x):
            if region is None or elem.cross_section == region:
                return elem, True
        return None

    def find_source(self, gp: GaussPoint, rule_index: int) -> SourcePoint | None:
        """新しい積分点 gp の写像元積分点を返す。見つからなければ None."""
        x = gp.give_global_coordinates()
        found = self.find_element(x, region=gp.element.cross_section)
        if found is None:
            return None
        elem, fallback = found
        if rule_index >= elem.give_number_of_integration_rules():
            rule_index = elem.give_default_integration_rule()
        dist = np.linalg.norm(self._rule_coordinates(elem, rule_index) - x, axis=1)
        j = int(np.argmin(dist))
        distance = float(dist[j])
        if fallback:
            limit = self.config.max_fallback_distance
            if limit is not None and distance > limit:
                return None
            logger.debug(
                "積分点 %s: 包含要素なし、要素 %d で代用（距離 %.3e）", x, elem.number, distance
            )
        return SourcePoint(
            element=elem,
            rule_index=rule_index,
            gp=elem.give_integration_rule(rule_index)[j],
            distance=distance,
            fallback=fallback,
        )


def map_domain_state(
    new_domain: Domain,
    old_domain: Domain,
    step: TimeStep,
    config: MappingConfig | None = None,
) -> DomainMappingResult:
    """新メッシュの全要素へ旧メッシュの状態を写像する.

    要素ごとに adaptive_map → adaptive_update を行い、途中で例外が
    発生しても全要素の adaptive_finish を必ず実行する。
    """
    mapper = AdaptiveStateMapper(old_domain, config)
    elements = new_domain.elements
    failed: list[int] = []
    try:
        for elem in elements:
            result = elem.adaptive_map(old_domain, step, mapper=mapper)
            updated = elem.adaptive_update(step)
            if not (result.ok and updated):
                failed.append(elem.number)
    finally:
        for elem in elements:
            elem.adaptive_finish(step)
    if failed:
        logger.warning("状態写像: %d 要素で写像元の無い積分点あり: %s", len(failed), failed)
    logger.info("状態写像: %d 要素を処理", len(elements))
    return DomainMappingResult(ok=not failed, n_elements=len(elements), failed_elements=failed)
