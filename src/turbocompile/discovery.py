from __future__ import annotations

from typing import Iterable, Protocol

from .manifest import Filter, compile_match_filter, is_simple_logical_path
from .utils import unique


class AssetEnvironment(Protocol):
    def logical_paths(self) -> Iterable[tuple[str, str]]: ...


def _flatten(filters: Iterable[object]) -> list[object]:
    output: list[object] = []
    for item in filters:
        if isinstance(item, (list, tuple)):
            output.extend(_flatten(item))
        else:
            output.append(item)
    return output


def find_precompile_paths(environment: AssetEnvironment, filters: Iterable[Filter]) -> list[str]:
    paths: list[str] = []
    matchers = []
    for item in _flatten(filters):
        if is_simple_logical_path(item):
            paths.append(item)
        else:
            matchers.append(compile_match_filter(item))

    if matchers:
        for logical_path, filename in environment.logical_paths():
            if any(match(logical_path, filename) for match in matchers):
                paths.append(logical_path)
    return unique(paths)
