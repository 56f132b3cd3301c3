from __future__ import annotations

from typing import Mapping, Sequence

from .config import validate_worker_count


def assign_buckets(
    paths: Sequence[str],
    worker_count: int,
    stats: Mapping[str, float] | None = None,
) -> list[list[str]]:
    """Split ``paths`` into ``worker_count`` buckets of similar total cost.

    With historical stats, jobs are placed slowest first, each into the bucket
    with the lowest accumulated cost (lowest index wins ties). Jobs missing
    from the stats weigh 0. Without stats, jobs are dealt out round robin in
    input order.

    Always returns exactly ``worker_count`` buckets; some may be empty.
    """
    worker_count = validate_worker_count(worker_count)
    buckets: list[list[str]] = [[] for _ in range(worker_count)]

    if stats is None:
        for index, path in enumerate(paths):
            buckets[index % worker_count].append(path)
        return buckets

    weights = [0.0] * worker_count
    # sorted() is stable, so equal costs keep their input order
    weighted_paths = sorted(
        ((path, float(stats.get(path, 0))) for path in paths),
        key=lambda item: item[1],
        reverse=True,
    )
    for path, weight in weighted_paths:
        index = weights.index(min(weights))
        buckets[index].append(path)
        weights[index] += weight
    return buckets


def bucket_weights(buckets: Sequence[Sequence[str]], stats: Mapping[str, float] | None) -> list[float]:
    if stats is None:
        return [0.0 for _ in buckets]
    return [sum(float(stats.get(path, 0)) for path in bucket) for bucket in buckets]
