"""積分点の走査.

要素が所有する全積分則の全積分点を「積分則順 → 点順」で訪問する唯一の仕組み。
体積集計・状態 commit・直列化・適応写像はすべてこの走査を通る。
訪問順は固定で再現可能であり、交換フォーマットと履歴更新の順序がこれに依存する。
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from elgeom.integration.gauss_point import GaussPoint
    from elgeom.integration.rule import IntegrationRule

T = TypeVar("T")


def iter_integration_points(
    rules: Iterable[IntegrationRule],
) -> Iterator[tuple[int, int, GaussPoint]]:
    """(積分則番号, 点番号, 積分点) を走査順に返す."""
    for ir, rule in enumerate(rules):
        for ip, gp in enumerate(rule):
            yield ir, ip, gp


def ip_evaluator(
    rules: Iterable[IntegrationRule],
    fn: Callable[[GaussPoint], None],
) -> None:
    """全積分点に fn を適用する."""
    for _, _, gp in iter_integration_points(rules):
        fn(gp)


def ip_accumulate(
    rules: Iterable[IntegrationRule],
    fn: Callable[[GaussPoint, T], T],
    initial: T,
) -> T:
    """全積分点に fn を適用し、累積値を引き回す.

    Example:
        volume = ip_accumulate(rules, lambda gp, v: v + measure(gp), 0.0)
    """
    acc = initial
    for _, _, gp in iter_integration_points(rules):
        acc = fn(gp, acc)
    return acc


def count_integration_points(rules: Iterable[IntegrationRule]) -> int:
    """全積分則の積分点数の合計."""
    return ip_accumulate(rules, lambda gp, n: n + 1, 0)
