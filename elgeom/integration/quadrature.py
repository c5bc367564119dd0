"""ガウス求積の積分点テーブル.

母要素ごとの局所座標と重みを返す。
  LINE        : ξ ∈ [-1, 1]、Gauss-Legendre n 点
  SQUARE      : [-1, 1]²、n×n テンソル積
  CUBE        : [-1, 1]³、n×n×n テンソル積
  TRIANGLE    : 面積座標 (ξ, η)、ξ, η ≥ 0, ξ + η ≤ 1、重み和 = 1/2
  TETRAHEDRON : 体積座標 (ξ, η, ζ)、重み和 = 1/6

参考文献:
  - Dunavant (1985) "High degree efficient symmetrical Gaussian quadrature
    rules for the triangle"
  - Zienkiewicz & Taylor "The Finite Element Method", Vol.1, Ch.5
"""

from __future__ import annotations

import numpy as np

from elgeom.core.enums import IntegrationDomain
from elgeom.core.errors import ConfigurationError

# ============================================================
# 三角形・四面体テーブル
# ============================================================

_TRI_1 = (np.array([[1.0 / 3.0, 1.0 / 3.0]]), np.array([0.5]))

_TRI_3 = (
    np.array([[1.0 / 6.0, 1.0 / 6.0], [2.0 / 3.0, 1.0 / 6.0], [1.0 / 6.0, 2.0 / 3.0]]),
    np.full(3, 1.0 / 6.0),
)

_TRI_4 = (
    np.array([[1.0 / 3.0, 1.0 / 3.0], [0.6, 0.2], [0.2, 0.6], [0.2, 0.2]]),
    np.array([-27.0 / 96.0, 25.0 / 96.0, 25.0 / 96.0, 25.0 / 96.0]),
)

# Dunavant 5次（7点）
_A1, _B1 = 0.797426985353087, 0.101286507323456
_A2, _B2 = 0.059715871789770, 0.470142064105115
_W1, _W2 = 0.125939180544827, 0.132394152788506
_TRI_7 = (
    np.array(
        [
            [1.0 / 3.0, 1.0 / 3.0],
            [_A1, _B1],
            [_B1, _A1],
            [_B1, _B1],
            [_A2, _B2],
            [_B2, _A2],
            [_B2, _B2],
        ]
    ),
    0.5 * np.array([0.225, _W1, _W1, _W1, _W2, _W2, _W2]),
)

_TET_1 = (np.array([[0.25, 0.25, 0.25]]), np.array([1.0 / 6.0]))

_TA, _TB = 0.5854101966249685, 0.1381966011250105
_TET_4 = (
    np.array([[_TA, _TB, _TB], [_TB, _TA, _TB], [_TB, _TB, _TA], [_TB, _TB, _TB]]),
    np.full(4, 1.0 / 24.0),
)

_TRIANGLE_RULES = {1: _TRI_1, 3: _TRI_3, 4: _TRI_4, 7: _TRI_7}
_TETRA_RULES = {1: _TET_1, 4: _TET_4}


# ============================================================
# テンソル積
# ============================================================


def _gauss_line(n: int) -> tuple[np.ndarray, np.ndarray]:
    xi, w = np.polynomial.legendre.leggauss(n)
    return xi.reshape(-1, 1), w


def _tensor_order(nip: int, dim: int) -> int:
    n = round(nip ** (1.0 / dim))
    if n < 1 or n**dim != nip:
        raise ConfigurationError(f"{dim}次元テンソル積で実現できない積分点数: nip={nip}")
    return n


def _gauss_tensor(nip: int, dim: int) -> tuple[np.ndarray, np.ndarray]:
    n = _tensor_order(nip, dim)
    xi, w = np.polynomial.legendre.leggauss(n)
    # 第1座標が最も速く変わる順（ξ → η → ζ）
    grids = np.meshgrid(*([xi] * dim), indexing="ij")
    wgrids = np.meshgrid(*([w] * dim), indexing="ij")
    coords = np.stack([g.transpose().ravel() for g in grids], axis=1)
    weights = np.prod(np.stack([g.transpose().ravel() for g in wgrids], axis=1), axis=1)
    return coords, weights


def gauss_points(domain: IntegrationDomain, nip: int) -> tuple[np.ndarray, np.ndarray]:
    """積分領域と積分点数から (局所座標 (nip, dim), 重み (nip,)) を返す.

    Raises:
        ConfigurationError: 対応していない積分点数
    """
    if nip < 1:
        raise ConfigurationError(f"積分点数は1以上: nip={nip}")
    if domain is IntegrationDomain.LINE:
        coords, weights = _gauss_line(nip)
    elif domain is IntegrationDomain.SQUARE:
        coords, weights = _gauss_tensor(nip, 2)
    elif domain is IntegrationDomain.CUBE:
        coords, weights = _gauss_tensor(nip, 3)
    elif domain is IntegrationDomain.TRIANGLE:
        if nip not in _TRIANGLE_RULES:
            raise ConfigurationError(
                f"三角形の積分点数 {nip} は未対応（対応: {sorted(_TRIANGLE_RULES)}）"
            )
        coords, weights = _TRIANGLE_RULES[nip]
    elif domain is IntegrationDomain.TETRAHEDRON:
        if nip not in _TETRA_RULES:
            raise ConfigurationError(
                f"四面体の積分点数 {nip} は未対応（対応: {sorted(_TETRA_RULES)}）"
            )
        coords, weights = _TETRA_RULES[nip]
    else:
        raise ConfigurationError(f"未対応の積分領域: {domain}")
    return np.array(coords, dtype=float), np.array(weights, dtype=float)


def parent_measure(domain: IntegrationDomain) -> float:
    """母要素の大きさ（重み和）."""
    return {
        IntegrationDomain.LINE: 2.0,
        IntegrationDomain.SQUARE: 4.0,
        IntegrationDomain.CUBE: 8.0,
        IntegrationDomain.TRIANGLE: 0.5,
        IntegrationDomain.TETRAHEDRON: 1.0 / 6.0,
    }[domain]


__all__ = ["gauss_points", "parent_measure"]
