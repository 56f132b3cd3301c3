from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass

from .app_logging import log_with_fields, setup_logger
from .compiler import ParallelCompiler, build_compiler
from .config import AppConfig, ConfigError, ensure_local_paths, load_config, validate_worker_count
from .discovery import find_precompile_paths
from .environment import FileSystemEnvironment
from .manifest import ManifestWriter
from .scheduler import bucket_weights
from .stats import StatsStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="turbocompile",
        description="Parallel asset precompiler with history-aware scheduling",
    )
    parser.add_argument("--config", required=True, help="Path to turbocompile YAML config")
    subparsers = parser.add_subparsers(dest="command", required=True)

    precompile = subparsers.add_parser("precompile", help="Compile assets and write the manifest")
    precompile.add_argument("filters", nargs="*", help="Logical paths or globs (default: config `precompile`)")
    precompile.add_argument("--workers", type=int, help="Override `precompiler.worker_count`")
    precompile.add_argument(
        "--sequential",
        action="store_true",
        help="Compile in-process without worker processes",
    )

    plan = subparsers.add_parser("plan", help="Show the bucket assignment without compiling")
    plan.add_argument("filters", nargs="*", help="Logical paths or globs (default: config `precompile`)")
    plan.add_argument("--workers", type=int, help="Override `precompiler.worker_count`")

    subparsers.add_parser("stats", help="Show compile times recorded by the last run")
    return parser


@dataclass(slots=True)
class Runtime:
    logger: logging.Logger
    environment: FileSystemEnvironment
    manifest: ManifestWriter
    stats: StatsStore


def _open_runtime(config: AppConfig) -> Runtime:
    ensure_local_paths(config)
    logger = setup_logger(config.paths.log)
    environment = FileSystemEnvironment(config.paths.source, config.paths.output)
    if config.preloader.enabled:
        count = environment.preload()
        log_with_fields(logger, logging.INFO, "preloaded_assets", assets=count)
    return Runtime(
        logger=logger,
        environment=environment,
        manifest=ManifestWriter(config.paths.manifest),
        stats=StatsStore(config.paths.stats, logger),
    )


def _apply_overrides(config: AppConfig, workers: int | None, sequential: bool = False) -> None:
    if workers is not None:
        config.precompiler.worker_count = validate_worker_count(workers)
    if sequential:
        config.precompiler.enabled = False


def cmd_precompile(config: AppConfig, filters: list[str]) -> int:
    runtime = _open_runtime(config)
    compiler = build_compiler(
        config,
        runtime.environment,
        runtime.manifest,
        runtime.stats,
        runtime.logger,
        after_parallel=runtime.environment.reload,
    )
    try:
        compiler.compile(*(filters or config.precompile))
    except Exception as exc:
        log_with_fields(
            runtime.logger,
            logging.ERROR,
            "precompile_aborted",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return 1
    return 0


def cmd_plan(config: AppConfig, filters: list[str]) -> int:
    runtime = _open_runtime(config)
    compiler = ParallelCompiler(
        config.precompiler,
        runtime.environment,
        runtime.manifest,
        runtime.stats,
        runtime.logger,
    )
    paths = find_precompile_paths(runtime.environment, filters or config.precompile)
    buckets = compiler.plan(paths)
    weights = bucket_weights(buckets, runtime.stats.read())
    for index, bucket in enumerate(buckets):
        print(f"bucket {index}: {len(bucket)} jobs, ~{weights[index]:.2f}s")
        for path in bucket:
            print(f"  {path}")
    return 0


def cmd_stats(config: AppConfig) -> int:
    stats = StatsStore(config.paths.stats, logging.getLogger("turbocompile"))
    compile_time = stats.read()
    if compile_time is None:
        print(f"no usable stats at {config.paths.stats}")
        return 0
    if not compile_time:
        print("no assets were compiled by the last run")
        return 0
    for path, seconds in sorted(compile_time.items(), key=lambda item: item[1], reverse=True):
        print(f"  {seconds:10.3f}s  {path}")
    print(f"\nTotal: {sum(compile_time.values()):.2f}s over {len(compile_time)} assets")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
        if args.command in {"precompile", "plan"}:
            _apply_overrides(config, args.workers, getattr(args, "sequential", False))
    except ConfigError as exc:
        print(f"config error: {exc}", file=sys.stderr)
        return 2

    if args.command == "precompile":
        return cmd_precompile(config, args.filters)
    if args.command == "plan":
        return cmd_plan(config, args.filters)
    if args.command == "stats":
        return cmd_stats(config)
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
