"""汎用バイナリデータストリーム.

コンテキスト保存とパーティション間交換に共通の読み書き API を提供する。
整数は little-endian int64、実数は little-endian float64 で符号化する。

  write_int / read_int                 : スカラー整数
  write_double / read_double           : スカラー実数
  write_ints / read_ints               : 長さ付き整数配列
  write_doubles / read_doubles         : 長さ付き実数配列
  write_raw_doubles / read_raw_doubles : 長さなし実数配列（長さは呼び出し側が管理）
  write_matrix / read_matrix           : 形状付き実数行列（空行列可）
"""

from __future__ import annotations

import io
from typing import BinaryIO

import numpy as np

from elgeom.core.errors import ContextIOError

_INT = np.dtype("<i8")
_DOUBLE = np.dtype("<f8")


class DataStream:
    """バイナリストリームの基底クラス.

    派生クラスは _write_bytes / _read_bytes を実装する。
    """

    def _write_bytes(self, data: bytes) -> None:
        raise NotImplementedError

    def _read_bytes(self, n: int) -> bytes:
        raise NotImplementedError

    # --- サイズ見積り ---

    @staticmethod
    def int_size(n: int = 1) -> int:
        return n * _INT.itemsize

    @staticmethod
    def double_size(n: int = 1) -> int:
        return n * _DOUBLE.itemsize

    def ints_size(self, n: int) -> int:
        """write_ints(長さ n) のバイト数."""
        return self.int_size(n + 1)

    def doubles_size(self, n: int) -> int:
        """write_doubles(長さ n) のバイト数."""
        return self.int_size() + self.double_size(n)

    # --- 書き込み ---

    def write_int(self, value: int) -> None:
        self._write_bytes(np.asarray(int(value), dtype=_INT).tobytes())

    def write_double(self, value: float) -> None:
        self._write_bytes(np.asarray(float(value), dtype=_DOUBLE).tobytes())

    def write_ints(self, values) -> None:
        arr = np.asarray(values, dtype=_INT).ravel()
        self.write_int(arr.size)
        self._write_bytes(arr.tobytes())

    def write_doubles(self, values) -> None:
        arr = np.asarray(values, dtype=_DOUBLE).ravel()
        self.write_int(arr.size)
        self._write_bytes(arr.tobytes())

    def write_raw_doubles(self, values) -> None:
        self._write_bytes(np.asarray(values, dtype=_DOUBLE).ravel().tobytes())

    def write_matrix(self, matrix: np.ndarray | None) -> None:
        if matrix is None:
            self.write_int(0)
            self.write_int(0)
            return
        m = np.atleast_2d(np.asarray(matrix, dtype=_DOUBLE))
        self.write_int(m.shape[0])
        self.write_int(m.shape[1])
        self.write_raw_doubles(m)

    # --- 読み出し ---

    def read_int(self) -> int:
        return int(np.frombuffer(self._read_bytes(_INT.itemsize), dtype=_INT)[0])

    def read_double(self) -> float:
        return float(np.frombuffer(self._read_bytes(_DOUBLE.itemsize), dtype=_DOUBLE)[0])

    def read_ints(self) -> np.ndarray:
        n = self.read_int()
        return np.frombuffer(self._read_bytes(n * _INT.itemsize), dtype=_INT).astype(np.int64)

    def read_doubles(self) -> np.ndarray:
        return self.read_raw_doubles(self.read_int())

    def read_raw_doubles(self, n: int) -> np.ndarray:
        data = self._read_bytes(n * _DOUBLE.itemsize)
        return np.frombuffer(data, dtype=_DOUBLE).astype(float)

    def read_matrix(self) -> np.ndarray | None:
        nrows = self.read_int()
        ncols = self.read_int()
        if nrows == 0 or ncols == 0:
            return None
        return self.read_raw_doubles(nrows * ncols).reshape(nrows, ncols)


class FileDataStream(DataStream):
    """バイナリファイル（BinaryIO）上のストリーム.

    Args:
        fh: "rb" / "wb" で開いたファイルオブジェクト
    """

    def __init__(self, fh: BinaryIO) -> None:
        self.fh = fh

    def _write_bytes(self, data: bytes) -> None:
        self.fh.write(data)

    def _read_bytes(self, n: int) -> bytes:
        data = self.fh.read(n)
        if len(data) != n:
            raise ContextIOError(f"ストリームが途中で終了: {n} バイト要求、{len(data)} バイト取得")
        return data


class BytesDataStream(FileDataStream):
    """メモリ上のストリーム."""

    def __init__(self, data: bytes = b"") -> None:
        super().__init__(io.BytesIO(data))

    def getvalue(self) -> bytes:
        return self.fh.getvalue()

    def rewind(self) -> None:
        """読み出し位置を先頭へ戻す."""
        self.fh.seek(0)
