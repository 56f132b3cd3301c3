from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class CompiledAsset:
    logical_path: str
    digest_path: str
    mtime: datetime
    bytesize: int
    hexdigest: str
    compile_time: float
    artifact_exists: bool

    def properties(self) -> dict[str, Any]:
        return {
            "logical_path": self.logical_path,
            "mtime": self.mtime.isoformat(),
            "size": self.bytesize,
            "digest": self.hexdigest,
        }


@dataclass(frozen=True, slots=True)
class BucketResult:
    """What one worker wrote, keyed by category. Returned by value, never shared."""

    files: dict[str, dict[str, Any]] = field(default_factory=dict)
    assets: dict[str, str] = field(default_factory=dict)
    compile_time: dict[str, float] = field(default_factory=dict)


@dataclass(slots=True)
class RunResult:
    files: dict[str, dict[str, Any]] = field(default_factory=dict)
    assets: dict[str, str] = field(default_factory=dict)
    compile_time: dict[str, float] = field(default_factory=dict)

    def manifest_data(self) -> dict[str, Any]:
        return {"files": dict(self.files), "assets": dict(self.assets)}
