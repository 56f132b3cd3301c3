from pathlib import Path
from tempfile import TemporaryDirectory
import pickle
import unittest

from turbocompile.environment import AssetNotFoundError, FileSystemEnvironment, digest_path_for


class FileSystemEnvironmentTest(unittest.TestCase):
    def test_compile_writes_fingerprinted_copy_once(self) -> None:
        with TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / "src" / "admin").mkdir(parents=True)
            (root / "src" / "admin" / "index.js").write_bytes(b"abc")
            environment = FileSystemEnvironment(root / "src", root / "out")

            self.assertEqual(
                environment.logical_paths(),
                [("admin/index.js", str(root / "src" / "admin" / "index.js"))],
            )

            [asset] = environment.compile(["admin/index.js"])
            self.assertEqual(
                asset.digest_path,
                "admin/index-ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad.js",
            )
            self.assertFalse(asset.artifact_exists)
            self.assertEqual(asset.bytesize, 3)
            self.assertGreaterEqual(asset.compile_time, 0)
            self.assertEqual((root / "out" / asset.digest_path).read_bytes(), b"abc")

            [again] = environment.compile(["admin/index.js"])
            self.assertTrue(again.artifact_exists)

    def test_unknown_asset(self) -> None:
        with TemporaryDirectory() as temp_dir:
            environment = FileSystemEnvironment(Path(temp_dir), Path(temp_dir) / "out")
            with self.assertRaises(AssetNotFoundError):
                environment.compile(["missing.js"])

    def test_pickles_without_cached_listing(self) -> None:
        with TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / "a.css").write_text("body {}", encoding="utf-8")
            environment = FileSystemEnvironment(root, root / "out")
            self.assertEqual(environment.preload(), 1)

            copy = pickle.loads(pickle.dumps(environment))
            self.assertIsNone(copy._logical_paths)
            self.assertEqual(copy.source_dir, root)

            (root / "b.css").write_text("p {}", encoding="utf-8")
            self.assertEqual(len(environment.logical_paths()), 1)
            environment.reload()
            self.assertEqual(len(environment.logical_paths()), 2)

    def test_staged_writes_appear_only_on_commit(self) -> None:
        with TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / "src").mkdir()
            (root / "src" / "app.js").write_bytes(b"abc")
            environment = FileSystemEnvironment(root / "src", root / "out")

            staged = environment.stage()
            [asset] = staged.compile(["app.js"])
            self.assertFalse((root / "out" / asset.digest_path).exists())
            staged.commit()
            self.assertTrue((root / "out" / asset.digest_path).is_file())
            self.assertEqual(
                [path.name for path in (root / "out").iterdir()],
                [asset.digest_path],
            )

            rebuilt = environment.stage(rebuild=True)
            [again] = rebuilt.compile(["app.js"])
            self.assertFalse(again.artifact_exists)
            rebuilt.discard()
            self.assertFalse(rebuilt.staging_dir.exists())

    def test_discarded_stage_leaves_output_empty(self) -> None:
        with TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / "src").mkdir()
            (root / "src" / "app.js").write_bytes(b"abc")
            staged = FileSystemEnvironment(root / "src", root / "out").stage()
            with self.assertRaises(AssetNotFoundError):
                staged.compile(["app.js", "missing.js"])
            staged.discard()
            self.assertEqual(list((root / "out").iterdir()), [])

    def test_rejects_paths_outside_source_dir(self) -> None:
        with TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / "src").mkdir()
            (root / "secret.js").write_text("nope", encoding="utf-8")
            environment = FileSystemEnvironment(root / "src", root / "out")
            with self.assertRaises(AssetNotFoundError):
                environment.compile(["../secret.js"])
            self.assertFalse((root / "out").exists())

    def test_digest_path_for(self) -> None:
        self.assertEqual(digest_path_for("app.js", "f00"), "app-f00.js")
        self.assertEqual(digest_path_for("img/logo", "f00"), "img/logo-f00")


if __name__ == "__main__":
    unittest.main()
