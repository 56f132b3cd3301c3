from datetime import UTC, datetime
import unittest

from turbocompile.models import BucketResult, CompiledAsset
from turbocompile.worker import run_bucket


def make_asset(logical_path: str, *, exists: bool = False, seconds: float = 0.5) -> CompiledAsset:
    stem, _, ext = logical_path.rpartition(".")
    return CompiledAsset(
        logical_path=logical_path,
        digest_path=f"{stem}-abc.{ext}",
        mtime=datetime(2025, 1, 1, tzinfo=UTC),
        bytesize=10,
        hexdigest="abc",
        compile_time=seconds,
        artifact_exists=exists,
    )


class RecordingEngine:
    def __init__(self, existing: set[str] | None = None) -> None:
        self.existing = existing or set()
        self.calls: list[list[str]] = []

    def compile(self, paths):
        paths = list(paths)
        self.calls.append(paths)
        return [make_asset(path, exists=path in self.existing) for path in paths]


class RunBucketTest(unittest.TestCase):
    def test_compiles_bucket_in_one_call(self) -> None:
        engine = RecordingEngine()
        result = run_bucket(["app.js", "app.css"], engine)
        self.assertEqual(engine.calls, [["app.js", "app.css"]])
        self.assertEqual(result.assets, {"app.js": "app-abc.js", "app.css": "app-abc.css"})
        self.assertEqual(result.compile_time, {"app.js": 0.5, "app.css": 0.5})
        self.assertEqual(
            result.files["app-abc.js"],
            {"logical_path": "app.js", "mtime": "2025-01-01T00:00:00+00:00", "size": 10, "digest": "abc"},
        )

    def test_skips_existing_artifacts(self) -> None:
        result = run_bucket(["app.js", "app.css"], RecordingEngine(existing={"app.js"}))
        self.assertEqual(list(result.assets), ["app.css"])
        self.assertEqual(list(result.files), ["app-abc.css"])

    def test_alias_duplicates_assets_and_compile_time(self) -> None:
        result = run_bucket(["admin/index.js"], RecordingEngine())
        self.assertEqual(
            result.assets,
            {"admin/index.js": "admin/index-abc.js", "admin.js": "admin/index-abc.js"},
        )
        self.assertEqual(result.compile_time, {"admin/index.js": 0.5, "admin.js": 0.5})
        self.assertEqual(len(result.files), 1)

    def test_empty_bucket_does_no_work(self) -> None:
        engine = RecordingEngine()
        self.assertEqual(run_bucket([], engine), BucketResult())
        self.assertEqual(engine.calls, [])


if __name__ == "__main__":
    unittest.main()
