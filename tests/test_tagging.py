import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace

from audio_catalog.models import TagReadError
from audio_catalog.tagging import TagReader, parse_year


class TestParseYear(unittest.TestCase):
    def test_parse_year_accepts_mutagen_id3_timestamp(self) -> None:
        from mutagen.id3 import ID3TimeStamp

        self.assertEqual(parse_year(str(ID3TimeStamp("1998-04-01"))), 1998)

    def test_parse_year_handles_missing_and_garbage(self) -> None:
        self.assertIsNone(parse_year(None))
        self.assertIsNone(parse_year(""))
        self.assertIsNone(parse_year("unknown"))
        self.assertEqual(parse_year("(p) 1965 EMI"), 1965)


class TestTagReader(unittest.TestCase):
    def test_unsupported_extension_raises(self) -> None:
        with self.assertRaises(TagReadError):
            TagReader().read(Path("/music/notes.txt"))

    def test_missing_file_raises_tag_read_error(self) -> None:
        with self.assertRaises(TagReadError):
            TagReader().read(Path("/this/path/does/not/exist.mp3"))

    def test_garbage_files_raise_tag_read_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            for ext in sorted(TagReader.SUPPORTED_EXTS):
                path = Path(tmpdir) / f"junk{ext}"
                path.write_bytes(b"this is not audio" * 8)
                with self.subTest(ext=ext):
                    with self.assertRaises(TagReadError):
                        TagReader().read(path)

    def test_length_ignores_non_finite_values(self) -> None:
        for length, expected in ((float("nan"), 0.0), (float("inf"), 0.0), (None, 0.0), (-1.0, 0.0), (12.5, 12.5)):
            with self.subTest(length=length):
                audio = SimpleNamespace(info=SimpleNamespace(length=length))
                self.assertEqual(TagReader._length(audio), expected)


if __name__ == "__main__":
    unittest.main()
