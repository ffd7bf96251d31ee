"""Per-run diagnostic log collector.

Extraction and navigation code accepts a plain ``log(message)`` callable.
``DebugLog`` is the implementation the sync orchestrator passes in: it keeps
timestamped lines for ``SyncResult.debug_info`` and forwards each line to the
standard logger. Tests can pass a list's ``append`` instead.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

LogSink = Callable[[str], None]

logger = logging.getLogger(__name__)


def _null_sink(message: str) -> None:
    logger.debug(message)


def sink_or_default(log: LogSink | None) -> LogSink:
    """Return *log*, or a sink that only writes to the module logger."""
    return log if log is not None else _null_sink


class DebugLog:
    """Collects timestamped diagnostic lines for one sync run."""

    def __init__(
        self,
        *,
        forward_to: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._lines: list[str] = []
        self._logger = forward_to or logger
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __call__(self, message: str) -> None:
        line = f"[{self._clock().isoformat()}] {message}"
        self._lines.append(line)
        self._logger.info(message)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)
