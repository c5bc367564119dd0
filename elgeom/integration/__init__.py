"""elgeom.integration - 積分点・積分則・求積テーブル・積分点走査."""

from elgeom.integration.gauss_point import GaussPoint
from elgeom.integration.quadrature import gauss_points, parent_measure
from elgeom.integration.rule import IntegrationRule
from elgeom.integration.traversal import (
    count_integration_points,
    ip_accumulate,
    ip_evaluator,
    iter_integration_points,
)

__all__ = [
    "GaussPoint",
    "IntegrationRule",
    "gauss_points",
    "parent_measure",
    "iter_integration_points",
    "ip_evaluator",
    "ip_accumulate",
    "count_integration_points",
]
