import threading
import unittest
from pathlib import Path

from audio_catalog.catalog import CatalogStore
from audio_catalog.models import Record, TrackTags
from audio_catalog.query import SearchTerms


def _record(path: str, title: str = "Song", **tags) -> Record:
    return Record.build(path, TrackTags(title=title, **tags))


class TestCatalogStore(unittest.TestCase):
    def test_put_replaces_record_for_same_path(self) -> None:
        store = CatalogStore()
        old = _record("/m/a.mp3", title="Old")
        new = _record("/m/a.mp3", title="New")
        self.assertIsNone(store.put(old))
        evicted = store.put(new)
        self.assertEqual(evicted, old)
        self.assertEqual(len(store), 1)
        self.assertIsNone(store.get(old.id))
        self.assertEqual(store.get(new.id), new)

    def test_same_content_under_two_paths_is_one_record(self) -> None:
        store = CatalogStore()
        first = _record("/m/a/song.mp3")
        copy = _record("/backup/song.mp3")
        self.assertEqual(first.id, copy.id)
        store.put(first)
        store.put(copy)
        self.assertEqual(len(store), 1)
        self.assertEqual(store.known_paths(), {"/m/a/song.mp3", "/backup/song.mp3"})

    def test_discarding_one_copy_keeps_the_other(self) -> None:
        store = CatalogStore([_record("/m/a/song.mp3"), _record("/backup/song.mp3")])
        store.discard_path("/backup/song.mp3")
        remaining = store.records()
        self.assertEqual(len(remaining), 1)
        self.assertEqual(remaining[0].path, "/m/a/song.mp3")
        store.discard_path("/m/a/song.mp3")
        self.assertEqual(len(store), 0)
        self.assertEqual(store.known_paths(), set())

    def test_discard_unknown_path_is_noop(self) -> None:
        store = CatalogStore([_record("/m/a.mp3")])
        self.assertIsNone(store.discard_path("/m/missing.mp3"))
        self.assertEqual(len(store), 1)

    def test_merge_takes_union_without_duplicates(self) -> None:
        a = _record("/m/a.mp3", title="A")
        b = _record("/m/b.mp3", title="B")
        store = CatalogStore([a])
        added = store.merge([a, b])
        self.assertEqual(added, 1)
        self.assertEqual({r.id for r in store.records()}, {a.id, b.id})

    def test_resolve_path(self) -> None:
        record = _record("/m/a.mp3")
        store = CatalogStore([record])
        self.assertEqual(store.resolve_path(record.token), Path("/m/a.mp3"))
        self.assertIsNone(store.resolve_path("999"))
        self.assertIsNone(store.resolve_path("bogus"))

    def test_query_waits_for_exclusive_holder(self) -> None:
        store = CatalogStore([_record("/m/a.mp3")])
        finished = threading.Event()

        def reader() -> None:
            store.query(SearchTerms())
            finished.set()

        with store.exclusive():
            worker = threading.Thread(target=reader)
            worker.start()
            self.assertFalse(finished.wait(0.2))
            store.put(_record("/m/b.mp3", title="B"))
        worker.join(timeout=5)
        self.assertTrue(finished.is_set())


if __name__ == "__main__":
    unittest.main()
