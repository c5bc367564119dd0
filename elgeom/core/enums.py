"""要素幾何層で使う列挙型.

DOF 識別子、方程式種別、材料モード、能力フラグ、内部状態種別、
並列モード、要素ライフサイクル段階などをまとめて定義する。
"""

from __future__ import annotations

from enum import Enum, Flag, IntEnum


class DofID(IntEnum):
    """節点自由度の識別子."""

    D_u = 1
    D_v = 2
    D_w = 3
    R_u = 4
    R_v = 5
    R_w = 6
    T_f = 7  # 温度
    P_f = 8  # 圧力


class EquationKind(Enum):
    """自由度が属する方程式系."""

    DISPLACEMENT = "displacement"
    TEMPERATURE = "temperature"


class MaterialMode(Enum):
    """積分点の材料モード（Voigt 成分数を持つ）."""

    ONE_D = 1
    PLANE_STRESS = 3
    PLANE_STRAIN = 4
    THREE_D = 6

    @property
    def n_components(self) -> int:
        """応力・ひずみベクトルの成分数."""
        return self.value


class Capability(Flag):
    """断面・材料が提供する能力フラグ."""

    NONE = 0
    ONE_D = 1
    PLANE_STRESS = 2
    PLANE_STRAIN = 4
    THREE_D = 8
    ALL = 15

    @classmethod
    def for_mode(cls, mode: MaterialMode) -> Capability:
        """材料モードに対応する能力フラグを返す."""
        return _MODE_CAPABILITY[mode]


_MODE_CAPABILITY = {
    MaterialMode.ONE_D: Capability.ONE_D,
    MaterialMode.PLANE_STRESS: Capability.PLANE_STRESS,
    MaterialMode.PLANE_STRAIN: Capability.PLANE_STRAIN,
    MaterialMode.THREE_D: Capability.THREE_D,
}


class InternalStateType(Enum):
    """積分点で問い合わせ可能な内部状態量."""

    STRESS_TENSOR = "stress"
    STRAIN_TENSOR = "strain"
    PLASTIC_STRAIN_TENSOR = "plastic_strain"
    CUMULATIVE_PLASTIC_STRAIN = "cumulative_plastic_strain"
    DAMAGE = "damage"
    TEMPERATURE = "temperature"


class ParallelMode(IntEnum):
    """分散計算での要素の所有モード."""

    LOCAL = 0
    REMOTE = 1


class ElementStage(IntEnum):
    """要素のライフサイクル段階."""

    CREATED = 0
    DOF_MANAGERS_ATTACHED = 1
    RULES_BUILT = 2
    MAPPING_IN_PROGRESS = 3
    MAPPING_FINISHED = 4


class EntityKind(Enum):
    """番号付け替え対象のエンティティ種別."""

    DOF_MANAGER = "dofman"
    ELEMENT = "element"
    PARTITION = "partition"


class ContextMode(Flag):
    """コンテキスト保存の内容."""

    STATE = 1
    DEFINITION = 2


class IntegrationDomain(Enum):
    """積分領域（母要素の形状）."""

    LINE = "line"
    TRIANGLE = "triangle"
    SQUARE = "square"
    TETRAHEDRON = "tetrahedron"
    CUBE = "cube"


class GeometryType(Enum):
    """要素の幾何形状."""

    LINE_1 = "line_1"
    TRIANGLE_1 = "triangle_1"
    QUAD_1 = "quad_1"
    TETRA_1 = "tetra_1"
    HEXA_1 = "hexa_1"
