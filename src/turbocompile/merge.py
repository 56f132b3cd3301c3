from __future__ import annotations

from typing import Iterable

from .models import BucketResult, RunResult


def merge_results(results: Iterable[BucketResult]) -> RunResult:
    """Union per-bucket results category by category; later buckets win on key clashes."""
    merged = RunResult()
    for result in results:
        merged.files.update(result.files)
        merged.assets.update(result.assets)
        merged.compile_time.update(result.compile_time)
    return merged
