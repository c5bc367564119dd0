"""パーティション間の通信バッファ.

容量固定の順序付きバイト列。書き込み側（所有パーティション）が pack を
完了してから、読み出し側（ミラー側）が同じ順序で unpack する。
容量超過の書き込みはバッファオーバーランとして即座にエラーにする。
"""

from __future__ import annotations

from elgeom.core.errors import BufferOverrunError, ProtocolDesyncError
from elgeom.io.datastream import DataStream


class CommunicationBuffer(DataStream):
    """容量固定の通信バッファ.

    Args:
        size: 容量 [byte]
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"バッファ容量は0以上: {size}")
        self._data = bytearray(size)
        self._write_pos = 0
        self._read_pos = 0

    @property
    def capacity(self) -> int:
        return len(self._data)

    @property
    def size_written(self) -> int:
        """書き込み済みバイト数."""
        return self._write_pos

    @property
    def size_remaining(self) -> int:
        """未読のバイト数."""
        return self._write_pos - self._read_pos

    def resize(self, size: int) -> None:
        """容量を変更する。書き込み済みの内容は保持する."""
        if size < self._write_pos:
            raise BufferOverrunError(
                f"書き込み済み {self._write_pos} バイトより小さく縮小できない: {size}"
            )
        if size > len(self._data):
            self._data.extend(bytes(size - len(self._data)))
        else:
            del self._data[size:]

    def init_for_packing(self) -> None:
        """書き込みを先頭からやり直す."""
        self._write_pos = 0
        self._read_pos = 0

    def init_for_unpacking(self) -> None:
        """読み出しを先頭からやり直す."""
        self._read_pos = 0

    def _write_bytes(self, data: bytes) -> None:
        end = self._write_pos + len(data)
        if end > len(self._data):
            raise BufferOverrunError(
                f"通信バッファの容量超過: {end} > {len(self._data)} バイト"
            )
        self._data[self._write_pos : end] = data
        self._write_pos = end

    def _read_bytes(self, n: int) -> bytes:
        end = self._read_pos + n
        if end > self._write_pos:
            raise ProtocolDesyncError(
                f"書き込み済み範囲を超えた読み出し: {end} > {self._write_pos} バイト"
            )
        data = bytes(self._data[self._read_pos : end])
        self._read_pos = end
        return data

    def getvalue(self) -> bytes:
        """書き込み済みの内容."""
        return bytes(self._data[: self._write_pos])

    def peek_int(self) -> int:
        """次の整数を読み出し位置を進めずに返す."""
        pos = self._read_pos
        value = self.read_int()
        self._read_pos = pos
        return value
