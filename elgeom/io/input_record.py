"""入力レコード.

1つの要素（や部品）を構成するキーワード・番号・フィールドの束。
テキスト文法の解析はこの層の範囲外で、ここでは構文解析済みの
{キー: 値} を型付きで取り出す。未知のキーは無視される。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from elgeom.core.errors import ConfigurationError

# 要素レコードのキー
IFT_MATERIAL = "mat"
IFT_CROSS_SECTION = "crosssect"
IFT_NODES = "nodes"
IFT_LCS = "lcs"
IFT_NIP = "nip"
IFT_ACTIVITY_FUNCTION = "activityltf"

_MISSING = object()


@dataclass
class InputRecord:
    """入力レコード.

    Attributes:
        keyword: レコードのキーワード（要素種別名など）
        number: 部品番号
        fields: {キー: 値}
    """

    keyword: str
    number: int
    fields: dict[str, Any] = field(default_factory=dict)

    def has_field(self, key: str) -> bool:
        return key in self.fields

    def set_field(self, key: str, value: Any) -> None:
        self.fields[key] = value

    def _require(self, key: str) -> None:
        if key not in self.fields:
            raise ConfigurationError(
                f"{self.keyword} {self.number}: 必須フィールド '{key}' がありません"
            )

    def give_int(self, key: str, default: Any = _MISSING) -> Any:
        if key not in self.fields and default is not _MISSING:
            return default
        self._require(key)
        value = self.fields[key]
        try:
            if isinstance(value, bool) or int(value) != value:
                raise TypeError
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"{self.keyword} {self.number}: '{key}' は整数: {value!r}"
            ) from None

    def give_int_list(self, key: str, default: Any = _MISSING) -> Any:
        if key not in self.fields and default is not _MISSING:
            return default
        self._require(key)
        value = self.fields[key]
        try:
            arr = np.asarray(value)
            if arr.ndim != 1 or not np.issubdtype(arr.dtype, np.integer):
                raise TypeError
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"{self.keyword} {self.number}: '{key}' は整数リスト: {value!r}"
            ) from None
        return [int(v) for v in arr]

    def give_float_list(self, key: str, default: Any = _MISSING) -> Any:
        if key not in self.fields and default is not _MISSING:
            return default
        self._require(key)
        value = self.fields[key]
        try:
            arr = np.asarray(value, dtype=float)
            if arr.ndim != 1:
                raise TypeError
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"{self.keyword} {self.number}: '{key}' は実数リスト: {value!r}"
            ) from None
        return [float(v) for v in arr]

    def as_dict(self) -> dict[str, Any]:
        """比較・表示用の辞書."""
        return {"keyword": self.keyword, "number": self.number, **self.fields}
