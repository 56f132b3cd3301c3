from __future__ import annotations

import hashlib
import posixpath
import shutil
import tempfile
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable

from .models import CompiledAsset

STAGING_PREFIX = ".turbocompile-"


class AssetNotFoundError(LookupError):
    pass


def digest_path_for(logical_path: str, hexdigest: str) -> str:
    stem, extname = posixpath.splitext(logical_path)
    return f"{stem}-{hexdigest}{extname}"


class FileSystemEnvironment:
    """Serves every file under ``source_dir`` as an asset and writes
    fingerprinted copies into ``output_dir``.

    A run works on a staged copy (see ``stage``): artifacts land in a private
    directory under ``output_dir`` and only show up in ``output_dir`` itself
    once ``commit`` is called. ``discard`` drops them.

    Instances are plain data and pickle cleanly, so they can be shipped to
    worker processes.
    """

    def __init__(
        self,
        source_dir: Path,
        output_dir: Path,
        *,
        staging_dir: Path | None = None,
        rebuild: bool = False,
    ) -> None:
        self.source_dir = source_dir
        self.output_dir = output_dir
        self.staging_dir = staging_dir
        self.rebuild = rebuild
        self._logical_paths: list[tuple[str, str]] | None = None

    def __getstate__(self) -> dict[str, object]:
        state = dict(self.__dict__)
        state["_logical_paths"] = None
        return state

    def __setstate__(self, state: dict[str, object]) -> None:
        self.__dict__.update(state)

    def logical_paths(self) -> list[tuple[str, str]]:
        if self._logical_paths is None:
            self._logical_paths = sorted(
                (path.relative_to(self.source_dir).as_posix(), str(path))
                for path in self.source_dir.rglob("*")
                if path.is_file()
            )
        return self._logical_paths

    def preload(self) -> int:
        return len(self.logical_paths())

    def reload(self) -> None:
        self._logical_paths = None

    def stage(self, rebuild: bool = False) -> FileSystemEnvironment:
        """Copy of this environment whose writes go to a fresh staging dir.

        With ``rebuild`` every asset is reported as newly written, even when
        its artifact is already in ``output_dir``.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self.output_dir))
        return FileSystemEnvironment(
            self.source_dir,
            self.output_dir,
            staging_dir=staging_dir,
            rebuild=rebuild,
        )

    def commit(self) -> None:
        if self.staging_dir is None:
            return
        for staged in sorted(self.staging_dir.rglob("*")):
            if not staged.is_file():
                continue
            target = self.output_dir / staged.relative_to(self.staging_dir)
            target.parent.mkdir(parents=True, exist_ok=True)
            staged.replace(target)
        self.discard()

    def discard(self) -> None:
        if self.staging_dir is not None and self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)

    def find_source(self, logical_path: str) -> Path:
        source = self.source_dir / logical_path
        if not source.resolve().is_relative_to(self.source_dir.resolve()) or not source.is_file():
            raise AssetNotFoundError(f"asset not found: {logical_path}")
        return source

    def compile(self, paths: Iterable[str]) -> list[CompiledAsset]:
        compiled: list[CompiledAsset] = []
        for logical_path in paths:
            compiled.append(self._compile_one(logical_path))
        return compiled

    def _compile_one(self, logical_path: str) -> CompiledAsset:
        started = time.perf_counter()
        source = self.find_source(logical_path)
        body = source.read_bytes()
        hexdigest = hashlib.sha256(body).hexdigest()
        digest_path = digest_path_for(logical_path, hexdigest)
        artifact_exists = not self.rebuild and (self.output_dir / digest_path).exists()
        if not artifact_exists:
            target = (self.staging_dir or self.output_dir) / digest_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(body)
        return CompiledAsset(
            logical_path=logical_path,
            digest_path=digest_path,
            mtime=datetime.fromtimestamp(source.stat().st_mtime, UTC),
            bytesize=len(body),
            hexdigest=hexdigest,
            compile_time=time.perf_counter() - started,
            artifact_exists=artifact_exists,
        )
