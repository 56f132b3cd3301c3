from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping

from .app_logging import log_with_fields
from .utils import write_json_atomic


def _valid_cost(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value >= 0


class StatsStore:
    """Per-job compile times from the last run, persisted as JSON.

    The document looks like ``{"compile_time": {"app.js": 1.25, ...}}``.
    Reads never fail: anything short of a well-formed document is reported
    as missing so scheduling can fall back to round robin.
    """

    def __init__(self, path: Path, logger: logging.Logger) -> None:
        self.path = path
        self.logger = logger

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> dict[str, float] | None:
        if not self.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self._unreadable(f"cannot parse stats: {exc}")
            return None

        if not isinstance(raw, dict) or not isinstance(raw.get("compile_time"), dict):
            self._unreadable("missing `compile_time` mapping")
            return None

        compile_time = raw["compile_time"]
        for key, value in compile_time.items():
            if not _valid_cost(value):
                self._unreadable(f"invalid cost for {key}: {value!r}")
                return None
        return {str(key): float(value) for key, value in compile_time.items()}

    def write(self, compile_time: Mapping[str, float]) -> None:
        write_json_atomic(self.path, {"compile_time": dict(compile_time)})

    def _unreadable(self, reason: str) -> None:
        log_with_fields(
            self.logger,
            logging.WARNING,
            "stats_unreadable",
            path=str(self.path),
            reason=reason,
        )
