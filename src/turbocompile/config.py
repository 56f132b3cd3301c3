from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(ValueError):
    pass


@dataclass(slots=True)
class PathsConfig:
    source: Path
    output: Path
    manifest: Path
    stats: Path
    log: Path


@dataclass(slots=True)
class PrecompilerConfig:
    enabled: bool = True
    worker_count: int = field(default_factory=lambda: os.cpu_count() or 1)
    timeout_seconds: float | None = None


@dataclass(slots=True)
class PreloaderConfig:
    enabled: bool = False


@dataclass(slots=True)
class AppConfig:
    paths: PathsConfig
    precompiler: PrecompilerConfig
    preloader: PreloaderConfig
    precompile: list[str]


def _require(mapping: dict, key: str, section: str) -> object:
    if key not in mapping:
        raise ConfigError(f"Missing `{section}.{key}` in config")
    return mapping[key]


def _to_bool(value: object, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"`{key}` must be true or false")


def validate_worker_count(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"`precompiler.worker_count` must be an integer, found: {value!r}")
    if value < 1:
        raise ConfigError(f"`precompiler.worker_count` must be >= 1, found: {value}")
    return value


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path).expanduser().resolve()
    raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")

    paths_raw = _require(raw, "paths", "root")
    precompiler_raw = raw.get("precompiler") or {}
    preloader_raw = raw.get("preloader") or {}
    precompile_raw = raw.get("precompile") or []

    if not isinstance(paths_raw, dict):
        raise ConfigError("`paths` must be a mapping")
    if not isinstance(precompiler_raw, dict):
        raise ConfigError("`precompiler` must be a mapping")
    if not isinstance(preloader_raw, dict):
        raise ConfigError("`preloader` must be a mapping")
    if not isinstance(precompile_raw, list):
        raise ConfigError("`precompile` must be a list of filters")

    def resolve(value: object) -> Path:
        output = Path(str(value)).expanduser()
        if not output.is_absolute():
            output = config_path.parent / output
        return output

    def to_path(key: str, default: Path | None = None) -> Path:
        if key not in paths_raw and default is not None:
            return default
        return resolve(_require(paths_raw, key, "paths"))

    output_dir = to_path("output")
    paths = PathsConfig(
        source=to_path("source"),
        output=output_dir,
        manifest=to_path("manifest", output_dir / ".manifest.json"),
        stats=to_path("stats", output_dir.parent / ".assets_precompile_stats"),
        log=to_path("log", output_dir.parent / "turbocompile.log"),
    )

    precompiler = PrecompilerConfig(
        enabled=_to_bool(precompiler_raw.get("enabled", True), "precompiler.enabled"),
    )
    if "worker_count" in precompiler_raw:
        precompiler.worker_count = validate_worker_count(precompiler_raw["worker_count"])

    timeout = precompiler_raw.get("timeout_seconds")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ConfigError("`precompiler.timeout_seconds` must be a number")
        if timeout <= 0:
            raise ConfigError("`precompiler.timeout_seconds` must be > 0")
        precompiler.timeout_seconds = float(timeout)

    preloader = PreloaderConfig(
        enabled=_to_bool(preloader_raw.get("enabled", False), "preloader.enabled"),
    )

    precompile: list[str] = []
    for idx, item in enumerate(precompile_raw):
        if not isinstance(item, str) or not item:
            raise ConfigError(f"`precompile[{idx}]` must be a non-empty string")
        precompile.append(item)

    return AppConfig(paths=paths, precompiler=precompiler, preloader=preloader, precompile=precompile)


def ensure_local_paths(config: AppConfig) -> None:
    config.paths.output.mkdir(parents=True, exist_ok=True)
    config.paths.manifest.parent.mkdir(parents=True, exist_ok=True)
    config.paths.stats.parent.mkdir(parents=True, exist_ok=True)
    config.paths.log.parent.mkdir(parents=True, exist_ok=True)
