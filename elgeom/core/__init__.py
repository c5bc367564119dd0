"""elgeom.core - 要素幾何層の抽象インタフェース定義・列挙型・戻り値型.

Protocol:
  ElementKindProtocol   : 要素種別（形状関数、DOF マスク、積分則レイアウト）
  MaterialProtocol      : 積分点状態の所有者
  CrossSectionProtocol  : 材料と断面幾何の束
  TimeFunctionProtocol  : 活性判定用の時間関数
"""

from elgeom.core.constitutive import (
    CrossSectionProtocol,
    MaterialProtocol,
    TimeFunctionProtocol,
)
from elgeom.core.element import ElementKindProtocol
from elgeom.core.enums import (
    Capability,
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
    BufferOverrunError,
    ConfigurationError,
    ContextIOError,
    ElementGeometryError,
    ElementStateError,
    ProtocolDesyncError,
)
from elgeom.core.results import (
    DomainMappingResult,
    IPValueResult,
    MappingResult,
    SourcePoint,
)
from elgeom.core.state import (
    MaterialStatus,
    PlasticMaterialStatus,
    StructuralMaterialStatus,
)
from elgeom.core.time import (
    ConstantFunction,
    HeavisideFunction,
    PiecewiseLinearFunction,
    TimeStep,
)

__all__ = [
    "ElementKindProtocol",
    "MaterialProtocol",
    "CrossSectionProtocol",
    "TimeFunctionProtocol",
    "Capability",
    "ContextMode",
    "DofID",
    "ElementStage",
    "EntityKind",
    "EquationKind",
    "GeometryType",
    "IntegrationDomain",
    "InternalStateType",
    "MaterialMode",
    "ParallelMode",
    "ElementGeometryError",
    "ConfigurationError",
    "ElementStateError",
    "ProtocolDesyncError",
    "BufferOverrunError",
    "ContextIOError",
    "IPValueResult",
    "SourcePoint",
    "MappingResult",
    "DomainMappingResult",
    "MaterialStatus",
    "StructuralMaterialStatus",
    "PlasticMaterialStatus",
    "TimeStep",
    "ConstantFunction",
    "HeavisideFunction",
    "PiecewiseLinearFunction",
]
