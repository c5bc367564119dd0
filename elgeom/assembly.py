"""積分点走査による汎用アセンブリ.

被積分関数 integrand(element, gp) の値に compute_volume_around(gp) を掛けて
積分点ごとに足し込み、要素の方程式番号配列で全体へ組み込む。
行列は COO 形式で寄与を蓄積し、最終的に CSR 行列を生成する。

非活性要素と REMOTE 要素は一切寄与せず、被積分関数も呼ばれない。
複数の積分則を持つ要素では全積分則の点が渡されるので、
integrand 側で gp.rule.number を見て使い分ける。
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import scipy.sparse as sp

from elgeom.core.enums import ElementStage, EquationKind, ParallelMode
from elgeom.core.errors import ConfigurationError, ElementStateError
from elgeom.core.time import TimeStep
from elgeom.domain import Domain
from elgeom.elements.element import ElementGeometry
from elgeom.integration.gauss_point import GaussPoint
from elgeom.integration.traversal import iter_integration_points


def assembled_elements(domain: Domain, step: TimeStep) -> list[ElementGeometry]:
    """アセンブリ対象の要素（活性かつ LOCAL）."""
    return [
        e
        for e in domain.elements
        if e.parallel_mode is ParallelMode.LOCAL and e.is_activated(step)
    ]


def _n_equations(domain: Domain, equation: EquationKind) -> int:
    try:
        return domain.n_equations[equation]
    except KeyError:
        raise ConfigurationError(
            f"領域 {domain.number}: {equation.name} の方程式番号が未設定"
        ) from None


def _integrate(
    element: ElementGeometry,
    integrand: Callable[[ElementGeometry, GaussPoint], np.ndarray],
) -> np.ndarray:
    rules = element.integration_rules
    if element.stage < ElementStage.RULES_BUILT or not rules:
        raise ElementStateError(
            f"要素 {element.number}: 積分則が未構築のためアセンブリできない"
            f"（stage={element.stage.name}）"
        )
    acc = None
    for _, _, gp in iter_integration_points(rules):
        term = np.asarray(integrand(element, gp), dtype=float) * element.compute_volume_around(gp)
        acc = term if acc is None else acc + term
    return acc


def assemble_global_vector(
    domain: Domain,
    step: TimeStep,
    equation: EquationKind,
    integrand: Callable[[ElementGeometry, GaussPoint], np.ndarray],
) -> np.ndarray:
    """全体ベクトルをアセンブルする.

    Args:
        domain: 解析領域（number_equations 済み）
        step: 現在のステップ（活性判定に使う）
        equation: 方程式種別
        integrand: (要素, 積分点) → 要素ベクトル（方程式番号配列と同じ長さ）

    Returns:
        f: (n_equations,) 全体ベクトル
    """
    f = np.zeros(_n_equations(domain, equation), dtype=float)
    for element in assembled_elements(domain, step):
        loc = np.asarray(element.give_location_array(equation), dtype=np.int64)
        fe = _integrate(element, integrand)
        if fe.shape != loc.shape:
            raise ConfigurationError(
                f"要素 {element.number}: 要素ベクトルの形状 {fe.shape} != {loc.shape}"
            )
        mask = loc > 0
        np.add.at(f, loc[mask] - 1, fe[mask])
    return f


def assemble_global_matrix(
    domain: Domain,
    step: TimeStep,
    equation: EquationKind,
    integrand: Callable[[ElementGeometry, GaussPoint], np.ndarray],
) -> sp.csr_matrix:
    """全体行列をアセンブルする（COO→CSR）.

    Args:
        integrand: (要素, 積分点) → 要素行列 (m, m)、m は方程式番号配列の長さ

    Returns:
        K: CSR 形式の全体行列 (n_equations, n_equations)
    """
    n = _n_equations(domain, equation)
    rows, cols, data = [], [], []
    for element in assembled_elements(domain, step):
        loc = np.asarray(element.give_location_array(equation), dtype=np.int64)
        Ke = _integrate(element, integrand)
        m = len(loc)
        if Ke.shape != (m, m):
            raise ConfigurationError(
                f"要素 {element.number}: 要素行列の形状 {Ke.shape} != {(m, m)}"
            )
        r = np.repeat(loc, m)
        c = np.tile(loc, m)
        mask = (r > 0) & (c > 0)
        rows.append(r[mask] - 1)
        cols.append(c[mask] - 1)
        data.append(Ke.ravel()[mask])
    if not rows:
        return sp.csr_matrix((n, n))
    K = sp.coo_matrix(
        (np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))), shape=(n, n)
    )
    return K.tocsr()
