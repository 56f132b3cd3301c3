from __future__ import annotations

import json
import posixpath
import re
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Mapping, Union

from .utils import write_json_atomic

MatchFilter = Callable[[str, str], bool]
Filter = Union[str, re.Pattern, MatchFilter]

GLOB_CHARS = re.compile(r"[*?\[\]{}]")


def _is_absolute(value: str) -> bool:
    return Path(value).is_absolute() or PurePosixPath(value).is_absolute()


def is_simple_logical_path(value: object) -> bool:
    if not isinstance(value, str) or _is_absolute(value) or GLOB_CHARS.search(value):
        return False
    return ".." not in PurePosixPath(value.replace("\\", "/")).parts


def compile_match_filter(filter: Filter) -> MatchFilter:
    """Turn a precompile filter into a ``(logical_path, filename) -> bool`` predicate."""
    if isinstance(filter, re.Pattern):
        return lambda logical_path, filename: filter.search(logical_path) is not None
    if isinstance(filter, str):
        if _is_absolute(filter):
            return lambda logical_path, filename: fnmatchcase(filename, filter)
        return lambda logical_path, filename: fnmatchcase(logical_path, filter)
    if callable(filter):
        return filter
    raise TypeError(f"unsupported precompile filter: {filter!r}")


def compute_alias_logical_path(logical_path: str) -> str | None:
    """``foo/index.js`` is also addressable as ``foo.js``."""
    dirname, basename = posixpath.split(logical_path)
    stem, extname = posixpath.splitext(basename)
    if stem != "index" or not dirname:
        return None
    return f"{dirname}{extname}"


class ManifestWriter:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, dict[str, Any]] | None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(raw, dict):
            return None
        files = raw.get("files")
        assets = raw.get("assets")
        if not isinstance(files, dict) or not isinstance(assets, dict):
            return None
        return {"files": files, "assets": assets}

    def is_usable(self) -> bool:
        """False when the manifest is missing or cannot be parsed.

        Assets skipped as already compiled are only recorded here, so callers
        must recompile everything when this is false.
        """
        return self._load() is not None

    def read(self) -> dict[str, dict[str, Any]]:
        return self._load() or {"files": {}, "assets": {}}

    def write(self, files: Mapping[str, Any], assets: Mapping[str, str]) -> dict[str, dict[str, Any]]:
        """Merge freshly compiled entries over the existing manifest and save it.

        Entries for assets that were skipped because their artifact already
        existed stay as they were.
        """
        manifest = self.read()
        manifest["files"].update(files)
        manifest["assets"].update(assets)
        write_json_atomic(self.path, manifest)
        return manifest
