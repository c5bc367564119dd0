"""パーティション間の積分点状態の同期.

境界要素は所有パーティションで LOCAL、共有する他のパーティションで
REMOTE（ミラー）として保持される。同期は送信元・送信先の組ごとに:
  1. 送信元で共有要素を全体番号順に pack（サイズ見積りで容量を確保）
  2. 送信先で全要素のペイロードを読み出して検証
  3. 全て読み出せた後にミラーの積分点状態へ反映
の順に行う。読み出し途中の不整合はミラーを一切変更せずに
ProtocolDesyncError となる。

メッセージ形式: n_elements, 要素ペイロード × n_elements
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from elgeom.config import CommunicationConfig
from elgeom.core.enums import ParallelMode
from elgeom.core.errors import BufferOverrunError, ConfigurationError, ProtocolDesyncError
from elgeom.core.time import TimeStep
from elgeom.domain import Domain
from elgeom.elements.element import ElementGeometry
from elgeom.parallel.buffer import CommunicationBuffer

logger = logging.getLogger(__name__)


class PartitionSynchronizer:
    """パーティション間の状態交換.

    Args:
        domains: パーティションごとの領域（rank が一意であること）
        config: 通信設定
    """

    def __init__(
        self, domains: Sequence[Domain], config: CommunicationConfig | None = None
    ) -> None:
        self.config = config or CommunicationConfig()
        self.domains: dict[int, Domain] = {}
        for domain in domains:
            if domain.rank in self.domains:
                raise ConfigurationError(f"パーティション番号が重複: {domain.rank}")
            self.domains[domain.rank] = domain
        self._buffers: dict[tuple[int, int], CommunicationBuffer] = {}

    def shared_elements(self, src_rank: int, dst_rank: int) -> list[ElementGeometry]:
        """src_rank が所有し dst_rank と共有する要素（全体番号順）."""
        elements = [
            e
            for e in self.domains[src_rank].elements
            if e.parallel_mode is ParallelMode.LOCAL and dst_rank in e.partitions
        ]
        return sorted(elements, key=lambda e: e.global_number)

    def _element_bound(self, element: ElementGeometry, buffer: CommunicationBuffer) -> int:
        return element.estimate_pack_size(buffer) + self.config.safety_bytes

    def pack(self, src_rank: int, dst_rank: int, step: TimeStep) -> CommunicationBuffer:
        """送信元の共有要素の状態をバッファへ書き込む."""
        elements = self.shared_elements(src_rank, dst_rank)
        key = (src_rank, dst_rank)
        buffer = self._buffers.get(key)
        if buffer is None:
            buffer = self._buffers[key] = CommunicationBuffer(self.config.initial_size)
        buffer.init_for_packing()
        bounds = [self._element_bound(e, buffer) for e in elements]
        required = buffer.int_size() + sum(bounds)
        if required > buffer.capacity:
            buffer.resize(required)

        buffer.write_int(len(elements))
        for element, bound in zip(elements, bounds):
            start = buffer.size_written
            element.pack_unknowns(buffer, step)
            written = buffer.size_written - start
            if written > bound:
                raise BufferOverrunError(
                    f"要素 {element.global_number}: pack {written} バイトが見積り {bound} を超過"
                )
        logger.debug(
            "pack %d -> %d: %d 要素、%d / %d バイト",
            src_rank,
            dst_rank,
            len(elements),
            buffer.size_written,
            buffer.capacity,
        )
        return buffer

    def unpack(self, dst_rank: int, buffer: CommunicationBuffer, step: TimeStep) -> int:
        """受信したバッファから送信先のミラー要素を更新する.

        Returns:
            更新した要素数
        """
        domain = self.domains[dst_rank]
        buffer.init_for_unpacking()
        n_elements = buffer.read_int()
        staged = []
        for _ in range(n_elements):
            global_number = buffer.peek_int()
            mirror = domain.give_element_by_global_number(global_number)
            if mirror is None:
                raise ProtocolDesyncError(
                    f"パーティション {dst_rank}: 全体番号 {global_number} のミラー要素がない"
                )
            staged.append((mirror, mirror.read_packed_unknowns(buffer, step)))
        if buffer.size_remaining:
            raise ProtocolDesyncError(
                f"パーティション {dst_rank}: 未読のバイトが残っている: {buffer.size_remaining}"
            )
        for mirror, payload in staged:
            mirror.apply_unpacked(payload)
        return n_elements

    def exchange(self, step: TimeStep) -> int:
        """全パーティション間で共有要素の状態を交換する.

        Returns:
            更新したミラー要素の総数
        """
        total = 0
        ranks = sorted(self.domains)
        for src in ranks:
            for dst in ranks:
                if src == dst:
                    continue
                total += self.unpack(dst, self.pack(src, dst, step), step)
        logger.debug("ステップ %d: %d ミラー要素を同期", step.number, total)
        return total
