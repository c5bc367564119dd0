"""ログ設定.

elgeom 名前空間のロガーにハンドラを設定する。各モジュールは
logging.getLogger(__name__) で子ロガーを持ち、ここでの設定を継承する。
パーティションごとにプロセスを分ける場合は rank を渡すと、
どのパーティションの出力かが各行に付く。
"""

from __future__ import annotations

import logging
import sys

_DATEFMT = "%H:%M:%S"


def _make_formatter(rank: int | None) -> logging.Formatter:
    prefix = "" if rank is None else f"[rank {rank}] "
    return logging.Formatter(
        f"%(asctime)s {prefix}%(levelname)s %(name)s: %(message)s", datefmt=_DATEFMT
    )


def setup_logging(
    level: int = logging.INFO,
    log_file: str | None = None,
    *,
    rank: int | None = None,
) -> logging.Logger:
    """elgeom 名前空間のロガーを設定する.

    既存のハンドラは閉じて取り外すので、何度呼んでも出力は重複しない。

    Args:
        level: ログレベル（logging.DEBUG, logging.INFO 等）
        log_file: ログファイルのパス（上書き）。None なら標準出力のみ。
        rank: パーティション番号。None なら付けない。

    Returns:
        設定した elgeom ロガー
    """
    logger = logging.getLogger("elgeom")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    formatter = _make_formatter(rank)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("ログ設定を初期化（rank=%s）", rank)
    return logger
