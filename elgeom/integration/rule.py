"""積分則.

1つの求積スキームを実現する積分点の順序付き列を所有する。
点の順序は積分則の生存期間中は不変で、直列化・パーティション交換は
点オブジェクトの同一性ではなく位置で対応付ける。
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

from elgeom.core.enums import IntegrationDomain, MaterialMode
from elgeom.core.errors import ContextIOError
from elgeom.core.state import MaterialStatus
from elgeom.integration.gauss_point import GaussPoint
from elgeom.integration.quadrature import gauss_points

if TYPE_CHECKING:
    from elgeom.elements.element import ElementGeometry
    from elgeom.io.datastream import DataStream


class IntegrationRule:
    """積分則.

    Args:
        number: 要素内での積分則番号
        element: 所属要素
    """

    def __init__(self, number: int, element: ElementGeometry) -> None:
        self.number = number
        self.element = element
        self.integration_domain: IntegrationDomain | None = None
        self._points: tuple[GaussPoint, ...] = ()

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[GaussPoint]:
        return iter(self._points)

    def __getitem__(self, i: int) -> GaussPoint:
        return self._points[i]

    def __repr__(self) -> str:
        return (
            f"IntegrationRule(number={self.number}, domain={self.integration_domain}, "
            f"n_points={len(self)})"
        )

    @property
    def points(self) -> tuple[GaussPoint, ...]:
        return self._points

    def set_up_integration_points(
        self, domain: IntegrationDomain, nip: int, mode: MaterialMode
    ) -> int:
        """求積テーブルから積分点を生成する。既存の点（と状態）は破棄する.

        Returns:
            生成した積分点数
        """
        coords, weights = gauss_points(domain, nip)
        self.integration_domain = domain
        self._points = tuple(
            GaussPoint(
                rule=self,
                number=i,
                local_coords=coords[i].copy(),
                weight=float(weights[i]),
                material_mode=mode,
            )
            for i in range(len(weights))
        )
        return len(self._points)

    def save_context(self, stream: DataStream) -> None:
        stream.write_int(len(self._points))
        for gp in self._points:
            status = gp.material_status
            stream.write_int(0 if status is None else 1)
            if status is not None:
                status.save_context(stream)

    def restore_context(
        self,
        stream: DataStream,
        status_factory: Callable[[GaussPoint], MaterialStatus],
    ) -> None:
        """保存された積分点状態を復元する.

        Args:
            stream: 入力ストリーム
            status_factory: 積分点の状態を取得（なければ生成）する関数
        """
        n = stream.read_int()
        if n != len(self._points):
            raise ContextIOError(
                f"積分則 {self.number} の積分点数が不一致: 保存 {n} != 現在 {len(self._points)}"
            )
        for gp in self._points:
            if stream.read_int():
                status_factory(gp).restore_context(stream)
            else:
                gp.material_status = None

