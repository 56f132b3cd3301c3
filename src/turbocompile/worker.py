from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol, Sequence

from .app_logging import LOGGER_NAME, log_with_fields
from .manifest import compute_alias_logical_path
from .models import BucketResult, CompiledAsset


class CompileEngine(Protocol):
    def compile(self, paths: Iterable[str]) -> list[CompiledAsset]: ...


def run_bucket(bucket: Sequence[str], engine: CompileEngine) -> BucketResult:
    """Compile one bucket and report what was newly written.

    Runs inside a worker process. The engine compiles the whole bucket in one
    call; assets whose artifact was already on disk are left out of the result.
    """
    if not bucket:
        return BucketResult()

    logger = logging.getLogger(f"{LOGGER_NAME}.worker")
    files: dict[str, dict[str, Any]] = {}
    assets: dict[str, str] = {}
    compile_time: dict[str, float] = {}

    for asset in engine.compile(list(bucket)):
        if asset.artifact_exists:
            continue
        log_with_fields(logger, logging.INFO, f"Writing {asset.digest_path}", logical_path=asset.logical_path)

        files[asset.digest_path] = asset.properties()
        assets[asset.logical_path] = asset.digest_path
        compile_time[asset.logical_path] = asset.compile_time

        alias = compute_alias_logical_path(asset.logical_path)
        if alias:
            assets[alias] = asset.digest_path
            compile_time[alias] = asset.compile_time

    return BucketResult(files=files, assets=assets, compile_time=compile_time)
