from __future__ import annotations

import datetime as dt
import unittest

from timeruler.config import Settings
from timeruler.graph import GraphLoader, TaskGraph, raw_items_digest
from timeruler.model import RawItem, Task, TaskDate


def _tree() -> list:
    return [
        RawItem(text="Plan trip", path="Proj.md", line=0, children=(1, 2)),
        RawItem(text="Book flights", path="Proj.md", line=1, parent=0, children=(3,)),
        RawItem(text="Book hotel", path="Proj.md", line=2, parent=0),
        RawItem(text="Compare fares", path="Proj.md", line=3, parent=1),
    ]


class TestTaskGraphContract(unittest.TestCase):
    def test_parents_resolved_from_children(self) -> None:
        g = TaskGraph.load(_tree())
        self.assertEqual(len(g), 4)
        self.assertEqual(g.require("Proj::1").parent, "Proj::0")
        self.assertEqual(g.require("Proj::3").parent, "Proj::1")
        self.assertIsNone(g.require("Proj::0").parent)
        self.assertEqual(g.require("Proj::0").children, ("Proj::1", "Proj::2"))

    def test_descendants_exclude_root(self) -> None:
        g = TaskGraph.load(_tree())
        self.assertEqual(g.descendants("Proj::0"), {"Proj::1", "Proj::2", "Proj::3"})
        self.assertEqual(g.descendants("Proj::2"), set())
        self.assertEqual(g.descendants("missing::9"), set())

    def test_cycles_terminate(self) -> None:
        g = TaskGraph.from_tasks([Task(id="a", children=("b",)), Task(id="b", children=("a",))])
        self.assertEqual(g.descendants("a"), {"b"})
        self.assertFalse(g.ancestor_is_query_parent("a"))

    def test_dangling_children_are_ignored(self) -> None:
        g = TaskGraph.from_tasks([Task(id="a", children=("ghost",))])
        self.assertEqual(g.descendants("a"), set())

    def test_query_parent_ancestry(self) -> None:
        g = TaskGraph.from_tasks(
            [
                Task(id="q", query_parent=True, children=("c",)),
                Task(id="c", children=("d",)),
                Task(id="d"),
            ]
        )
        self.assertTrue(g.ancestor_is_query_parent("d"))
        self.assertTrue(g.ancestor_is_query_parent("c"))
        self.assertFalse(g.ancestor_is_query_parent("q"))

    def test_scheduled_between_skips_all_day(self) -> None:
        day = dt.date(2026, 3, 2)
        g = TaskGraph.from_tasks(
            [
                Task(id="late", scheduled=TaskDate(day, (15, 0))),
                Task(id="early", scheduled=TaskDate(day, (9, 0))),
                Task(id="allday", scheduled=TaskDate(day)),
                Task(id="tomorrow", scheduled=TaskDate(day + dt.timedelta(days=1), (9, 0))),
            ]
        )
        start = dt.datetime(2026, 3, 2)
        got = [t.id for t in g.scheduled_between(start, start + dt.timedelta(days=1))]
        self.assertEqual(got, ["early", "late"])
        self.assertEqual({t.id for t in g.on_day(day)}, {"late", "early", "allday"})


class TestGraphLoaderContract(unittest.TestCase):
    def test_identical_reload_is_skipped(self) -> None:
        settings = Settings()
        loader = GraphLoader(settings)
        items = _tree()

        self.assertTrue(loader.reload(items, today=dt.date(2026, 3, 2)))
        first = loader.graph
        self.assertFalse(loader.reload(list(items), today=dt.date(2026, 3, 2)))
        self.assertIs(loader.graph, first)
        self.assertEqual(loader.rebuilds, 1)

        changed = items[:3] + [RawItem(text="Compare fares #cheap", path="Proj.md", line=3, parent=1)]
        self.assertTrue(loader.reload(changed, today=dt.date(2026, 3, 2)))
        self.assertEqual(loader.rebuilds, 2)
        self.assertEqual(loader.graph.require("Proj::3").tags, ("#cheap",))

    def test_new_paths_merge_into_file_order(self) -> None:
        settings = Settings(file_order=["b.md"])
        loader = GraphLoader(settings)
        loader.reload(
            [
                RawItem(text="x", path="c.md", line=0),
                RawItem(text="y", path="a.md", line=0),
                RawItem(text="z", path="b.md", line=0),
            ]
        )
        self.assertEqual(settings.file_order, ["a.md", "b.md", "c.md"])

    def test_filtering(self) -> None:
        settings = Settings(exclude_paths=["Archive/"])
        loader = GraphLoader(settings)
        items = [
            RawItem(text="open", path="a.md", line=0),
            RawItem(text="done", path="a.md", line=1, completed=True),
            RawItem(text="old", path="Archive/x.md", line=0),
            RawItem(text="later", path="a.md", line=2, fields={"start": "2026-12-01"}),
            RawItem(text="started", path="a.md", line=3, fields={"start": "2026-01-01"}),
        ]
        kept = loader.filter_items(items, today=dt.date(2026, 3, 2))
        self.assertEqual([i.text for i in kept], ["open", "started"])

    def test_digest_is_order_sensitive_and_stable(self) -> None:
        a = RawItem(text="x", path="a.md", line=0)
        b = RawItem(text="y", path="a.md", line=1)
        self.assertEqual(raw_items_digest([a, b]), raw_items_digest([a, b]))
        self.assertNotEqual(raw_items_digest([a, b]), raw_items_digest([b, a]))


if __name__ == "__main__":
    unittest.main(verbosity=2)
