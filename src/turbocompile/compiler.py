from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor, wait
from typing import Callable, Protocol, Sequence

from .app_logging import log_with_fields
from .config import AppConfig, PrecompilerConfig
from .discovery import AssetEnvironment, find_precompile_paths
from .manifest import Filter, ManifestWriter
from .merge import merge_results
from .models import BucketResult, RunResult
from .scheduler import assign_buckets, bucket_weights
from .stats import StatsStore
from .worker import CompileEngine, run_bucket

ExecutorFactory = Callable[..., Executor]


class BucketTimeoutError(RuntimeError):
    pass


class Environment(AssetEnvironment, CompileEngine, Protocol):
    """Lists logical paths and compiles them. Must pickle for process pools.

    ``stage`` returns a copy whose artifacts stay invisible until ``commit``;
    ``discard`` throws them away.
    """

    def stage(self, rebuild: bool = False) -> Environment: ...

    def commit(self) -> None: ...

    def discard(self) -> None: ...


def stage_environment(environment: Environment, manifest: ManifestWriter, logger: logging.Logger) -> Environment:
    rebuild = not manifest.is_usable()
    if rebuild:
        log_with_fields(
            logger,
            logging.WARNING,
            "manifest_rebuild",
            manifest_path=str(manifest.path),
            reason="manifest missing or unreadable, recompiling every asset",
        )
    return environment.stage(rebuild=rebuild)


def discard_staged(staged: Environment, logger: logging.Logger) -> None:
    try:
        staged.discard()
    except OSError as exc:
        # the run is failing already; leftovers stay in the staging dir
        log_with_fields(logger, logging.ERROR, "staging_discard_failed", error=str(exc))


class Precompiler(Protocol):
    def compile(self, *filters: Filter) -> RunResult: ...


class ParallelCompiler:
    def __init__(
        self,
        config: PrecompilerConfig,
        environment: Environment,
        manifest: ManifestWriter,
        stats: StatsStore,
        logger: logging.Logger,
        *,
        executor_factory: ExecutorFactory = ProcessPoolExecutor,
        after_parallel: Callable[[], None] | None = None,
    ) -> None:
        self.config = config
        self.environment = environment
        self.manifest = manifest
        self.stats = stats
        self.logger = logger
        self.executor_factory = executor_factory
        self.after_parallel = after_parallel

    @property
    def worker_count(self) -> int:
        return self.config.worker_count

    def compile(self, *filters: Filter) -> RunResult:
        started = time.perf_counter()
        log_with_fields(
            self.logger,
            logging.WARNING,
            "precompile_started",
            detail=f"Precompiling with {self.worker_count} workers",
            worker_count=self.worker_count,
        )

        paths = find_precompile_paths(self.environment, filters)
        buckets = self.plan(paths)

        # artifacts reach output_dir only if every bucket succeeds
        staged = stage_environment(self.environment, self.manifest, self.logger)
        try:
            results = self.compile_in_parallel(buckets, staged)
        except BaseException:
            discard_staged(staged, self.logger)
            raise
        merged = merge_results(results)

        staged.commit()
        self.manifest.write(**merged.manifest_data())
        self.stats.write(merged.compile_time)

        elapsed = time.perf_counter() - started
        log_with_fields(
            self.logger,
            logging.INFO,
            "precompile_completed",
            detail=f"Completed precompiling assets ({elapsed:.2f}s)",
            elapsed_seconds=round(elapsed, 2),
            compiled=len(merged.files),
            jobs=len(paths),
        )
        return merged

    def plan(self, paths: Sequence[str]) -> list[list[str]]:
        historical_stats = self.stats.read()
        if historical_stats is None:
            log_with_fields(
                self.logger,
                logging.WARNING,
                "schedule_round_robin",
                stats_path=str(self.stats.path),
            )
        else:
            log_with_fields(
                self.logger,
                logging.INFO,
                "schedule_using_stats",
                stats_path=str(self.stats.path),
                known_jobs=len(historical_stats),
            )

        buckets = assign_buckets(paths, self.worker_count, historical_stats)
        weights = bucket_weights(buckets, historical_stats)
        for index, bucket in enumerate(buckets):
            log_with_fields(
                self.logger,
                logging.INFO,
                "bucket_assigned",
                bucket=index,
                jobs=len(bucket),
                estimated_seconds=round(weights[index], 2),
            )
        return buckets

    def compile_in_parallel(
        self,
        buckets: Sequence[Sequence[str]],
        environment: Environment | None = None,
    ) -> list[BucketResult]:
        """Run every bucket and wait for all of them, then call ``after_parallel``."""
        try:
            results = self._fan_out(buckets, environment or self.environment)
        except BaseException:
            self._run_after_parallel(buckets_failed=True)
            raise
        self._run_after_parallel(buckets_failed=False)
        return results

    def _fan_out(self, buckets: Sequence[Sequence[str]], environment: Environment) -> list[BucketResult]:
        executor = self.executor_factory(max_workers=self.worker_count)
        timed_out = False
        try:
            futures: list[Future[BucketResult]] = [
                executor.submit(run_bucket, list(bucket), environment) for bucket in buckets
            ]
            _, not_done = wait(futures, timeout=self.config.timeout_seconds)
            if not_done:
                timed_out = True
                for future in not_done:
                    future.cancel()
                log_with_fields(
                    self.logger,
                    logging.ERROR,
                    "precompile_timeout",
                    timeout_seconds=self.config.timeout_seconds,
                    pending_buckets=len(not_done),
                )
                raise BucketTimeoutError(
                    f"{len(not_done)} of {len(futures)} buckets did not finish "
                    f"within {self.config.timeout_seconds}s"
                )

            for index, future in enumerate(futures):
                error = future.exception()
                if error is not None:
                    log_with_fields(
                        self.logger,
                        logging.ERROR,
                        "precompile_failed",
                        bucket=index,
                        error=str(error),
                    )
                    raise error
            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=not timed_out, cancel_futures=True)

    def _run_after_parallel(self, *, buckets_failed: bool) -> None:
        if self.after_parallel is None:
            return
        try:
            self.after_parallel()
        except Exception as exc:
            log_with_fields(
                self.logger,
                logging.ERROR,
                "after_parallel_failed",
                error=str(exc),
            )
            # a bucket error is already propagating and takes precedence
            if not buckets_failed:
                raise


class SequentialCompiler:
    """Compiles everything in-process as a single bucket. Stats are left alone."""

    def __init__(self, environment: Environment, manifest: ManifestWriter, logger: logging.Logger) -> None:
        self.environment = environment
        self.manifest = manifest
        self.logger = logger

    def compile(self, *filters: Filter) -> RunResult:
        started = time.perf_counter()
        paths = find_precompile_paths(self.environment, filters)

        staged = stage_environment(self.environment, self.manifest, self.logger)
        try:
            merged = merge_results([run_bucket(paths, staged)])
        except BaseException:
            discard_staged(staged, self.logger)
            raise
        staged.commit()
        self.manifest.write(**merged.manifest_data())

        elapsed = time.perf_counter() - started
        log_with_fields(
            self.logger,
            logging.INFO,
            "precompile_completed",
            detail=f"Completed precompiling assets ({elapsed:.2f}s)",
            elapsed_seconds=round(elapsed, 2),
            compiled=len(merged.files),
            jobs=len(paths),
        )
        return merged


def build_compiler(
    config: AppConfig,
    environment: Environment,
    manifest: ManifestWriter,
    stats: StatsStore,
    logger: logging.Logger,
    *,
    executor_factory: ExecutorFactory = ProcessPoolExecutor,
    after_parallel: Callable[[], None] | None = None,
) -> Precompiler:
    if config.precompiler.enabled:
        return ParallelCompiler(
            config.precompiler,
            environment,
            manifest,
            stats,
            logger,
            executor_factory=executor_factory,
            after_parallel=after_parallel,
        )
    return SequentialCompiler(environment, manifest, logger)
