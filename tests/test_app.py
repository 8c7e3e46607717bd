import tempfile
import unittest
from pathlib import Path

from audio_catalog.app import CatalogApp
from audio_catalog.config import LibrarySettings, Settings, SnapshotSettings
from audio_catalog.models import TagReadError, TrackTags


class _ReaderStub:
    def __init__(self, tags: dict[str, TrackTags]) -> None:
        self.tags = tags
        self.calls = 0

    def read(self, path: Path) -> TrackTags:
        self.calls += 1
        if path.name not in self.tags:
            raise TagReadError(str(path))
        return self.tags[path.name]


class TestCatalogAppStartup(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name).resolve()
        self.root = self.tmp / "music"
        self.root.mkdir()
        for name in ("a.mp3", "b.mp3"):
            (self.root / name).write_bytes(b"")
        self.reader = _ReaderStub(
            {
                "a.mp3": TrackTags(title="A", artist="X", album="One", track=1),
                "b.mp3": TrackTags(title="B", artist="X", album="One", track=2),
            }
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _settings(self, *, force: bool = False) -> Settings:
        library = LibrarySettings(rescan_roots=[self.root]) if force else LibrarySettings(roots=[self.root])
        return Settings(library=library, snapshot=SnapshotSettings(path=self.tmp / "library.json"))

    def test_second_startup_reuses_snapshot_without_parsing(self) -> None:
        first = CatalogApp.create(self._settings(), reader=self.reader)
        first.startup()
        first_ids = {r.id for r in first.store.records()}
        self.assertEqual(self.reader.calls, 2)

        second = CatalogApp.create(self._settings(), reader=self.reader)
        report = second.startup()

        self.assertEqual(self.reader.calls, 2)
        self.assertEqual(report.skipped_known, 2)
        self.assertEqual({r.id for r in second.store.records()}, first_ids)

    def test_forced_rescan_picks_up_changed_tags_and_drops_old_identity(self) -> None:
        first = CatalogApp.create(self._settings(), reader=self.reader)
        first.startup()
        old_id = next(r.id for r in first.store.records() if r.title == "A")

        self.reader.tags["a.mp3"] = TrackTags(title="A (edit)", artist="X", album="One", track=1)
        CatalogApp.create(self._settings(force=True), reader=self.reader).startup()

        reloaded = CatalogApp.create(Settings(snapshot=SnapshotSettings(path=self.tmp / "library.json")))
        reloaded.load()
        titles = sorted(r.title for r in reloaded.store.records())
        self.assertEqual(titles, ["A (edit)", "B"])
        self.assertNotIn(old_id, reloaded.store)

    def test_startup_without_roots_only_loads(self) -> None:
        app = CatalogApp.create(Settings(snapshot=SnapshotSettings(path=self.tmp / "library.json")))
        self.assertIsNone(app.startup())
        self.assertEqual(len(app.store), 0)
        self.assertFalse((self.tmp / "library.json").exists())

    def test_rescan_and_forget_file_rewrite_snapshot(self) -> None:
        app = CatalogApp.create(self._settings(), reader=self.reader)
        app.startup()
        (self.root / "c.mp3").write_bytes(b"")
        self.reader.tags["c.mp3"] = TrackTags(title="C", artist="Y", album="Two")
        self.assertIsNotNone(app.rescan_file(self.root / "c.mp3"))
        self.assertEqual(len((self.tmp / "library.json").read_text(encoding="utf-8").splitlines()), 3)

        (self.root / "c.mp3").unlink()
        self.assertIsNotNone(app.forget_file(self.root / "c.mp3"))
        self.assertEqual(len(app.store), 2)
        self.assertEqual(len((self.tmp / "library.json").read_text(encoding="utf-8").splitlines()), 2)

    def test_disabled_snapshot_never_writes(self) -> None:
        settings = Settings(
            library=LibrarySettings(roots=[self.root]),
            snapshot=SnapshotSettings(enabled=False, path=self.tmp / "library.json"),
        )
        app = CatalogApp.create(settings, reader=self.reader)
        app.startup()
        self.assertEqual(len(app.store), 2)
        self.assertFalse(app.save())
        self.assertFalse((self.tmp / "library.json").exists())


if __name__ == "__main__":
    unittest.main()
