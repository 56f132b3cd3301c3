from pathlib import Path
from tempfile import TemporaryDirectory
import json
import unittest

from turbocompile.utils import unique, write_json_atomic


class UtilsTest(unittest.TestCase):
    def test_unique_keeps_first_occurrence(self) -> None:
        self.assertEqual(unique(["b", "a", "b", "c", "a"]), ["b", "a", "c"])

    def test_write_json_atomic_creates_parents(self) -> None:
        with TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "nested" / "doc.json"
            write_json_atomic(path, {"b": 1, "a": 2})
            self.assertEqual(json.loads(path.read_text(encoding="utf-8")), {"a": 2, "b": 1})
            self.assertEqual([item.name for item in path.parent.iterdir()], ["doc.json"])


if __name__ == "__main__":
    unittest.main()
