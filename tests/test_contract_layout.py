from __future__ import annotations

import datetime as dt
import random
import unittest

from timeruler.layout import Block, Event, blocks_from_tasks, covered_minutes, is_tiled, iter_spans, layout_blocks
from timeruler.model import Task, TaskDate, TaskLength

DAY = dt.date(2026, 3, 2)
WS = dt.datetime(2026, 3, 2, 8, 0)
WE = dt.datetime(2026, 3, 2, 12, 0)


def _at(h: int, m: int = 0) -> dt.datetime:
    return dt.datetime(2026, 3, 2, h, m)


def _block(h: int, m: int, minutes: int, tid: str) -> Block:
    start = _at(h, m)
    return Block(start=start, end=start + dt.timedelta(minutes=minutes), task_ids=(tid,))


class TestLayoutContract(unittest.TestCase):
    def test_empty_window_is_one_filler(self) -> None:
        spans = layout_blocks([], WS, WE)
        self.assertEqual(len(spans), 1)
        self.assertTrue(spans[0].is_filler)
        self.assertEqual((spans[0].start, spans[0].end), (WS, WE))
        self.assertFalse(spans[0].chop_start)
        self.assertFalse(spans[0].chop_end)

    def test_single_block_with_fillers_and_chop_flags(self) -> None:
        spans = layout_blocks([_block(9, 0, 60, "a")], WS, WE)
        self.assertEqual([s.kind for s in spans], ["filler", "block", "filler"])
        self.assertTrue(is_tiled(spans, WS, WE))

        lead, block, tail = spans
        self.assertFalse(lead.chop_start)
        self.assertTrue(lead.chop_end)
        self.assertTrue(tail.chop_start)
        self.assertFalse(tail.chop_end)
        self.assertEqual(block.block.task_ids, ("a",))

    def test_overlapping_block_nests(self) -> None:
        spans = layout_blocks([_block(9, 0, 120, "outer"), _block(9, 30, 30, "inner")], WS, WE)
        self.assertEqual([s.kind for s in spans], ["filler", "block", "filler"])
        outer = spans[1]
        self.assertEqual((outer.start, outer.end), (_at(9), _at(11)))
        self.assertTrue(is_tiled(outer.children, _at(9), _at(11)))
        self.assertEqual([s.kind for s in outer.children], ["filler", "block", "filler"])
        # nested fillers are chopped on both window edges
        self.assertTrue(outer.children[0].chop_start)
        self.assertTrue(outer.children[-1].chop_end)

        depths = [(d, s.block.task_ids[0]) for d, s in iter_spans(spans) if s.block]
        self.assertEqual(depths, [(0, "outer"), (1, "inner")])

    def test_block_starting_at_previous_end_does_not_nest(self) -> None:
        spans = layout_blocks([_block(9, 0, 60, "a"), _block(10, 0, 30, "b")], WS, WE)
        self.assertEqual([s.kind for s in spans], ["filler", "block", "block", "filler"])

    def test_extension_off_leaves_point_block(self) -> None:
        spans = layout_blocks([_block(9, 0, 0, "point"), _block(10, 30, 30, "b")], WS, WE)
        self.assertTrue(is_tiled(spans, WS, WE))
        point = [s for s in spans if s.block and s.block.task_ids == ("point",)][0]
        self.assertEqual(point.minutes, 0)

    def test_extension_on_reaches_next_block(self) -> None:
        spans = layout_blocks([_block(9, 0, 0, "point"), _block(10, 30, 30, "b")], WS, WE, extend=True)
        self.assertEqual([s.kind for s in spans], ["filler", "block", "block", "filler"])
        self.assertEqual((spans[1].start, spans[1].end), (_at(9), _at(10, 30)))

    def test_extension_of_last_block_reaches_window_end(self) -> None:
        spans = layout_blocks([_block(11, 0, 0, "last")], WS, WE, extend=True)
        self.assertEqual([s.kind for s in spans], ["filler", "block"])
        self.assertEqual(spans[-1].end, WE)

    def test_clipping_and_invisible_blocks(self) -> None:
        blocks = [
            _block(6, 0, 60, "gone"),
            _block(7, 0, 120, "clipped"),
            _block(12, 0, 30, "after"),
        ]
        spans = layout_blocks(blocks, WS, WE)
        self.assertEqual([s.kind for s in spans], ["block", "filler"])
        self.assertEqual((spans[0].start, spans[0].end), (WS, _at(9)))
        self.assertEqual(covered_minutes(spans), 240)

    def test_rejects_inverted_window(self) -> None:
        with self.assertRaises(ValueError):
            layout_blocks([], WE, WS)

    def test_chain_nests_only_under_the_first_block(self) -> None:
        # b starts inside a; c starts inside b but after a ends
        blocks = [_block(9, 0, 60, "a"), _block(9, 30, 90, "b"), _block(10, 30, 30, "c")]
        spans = layout_blocks(blocks, WS, WE)
        top = [s.block.task_ids[0] for s in spans if s.block]
        self.assertEqual(top, ["a", "c"])

        a = [s for s in spans if s.block and s.block.task_ids == ("a",)][0]
        self.assertEqual((a.start, a.end), (_at(9), _at(10)))
        inner = [s for s in a.children if s.block]
        self.assertEqual(inner[0].block.task_ids, ("b",))
        # b is clipped to the end of a
        self.assertEqual((inner[0].start, inner[0].end), (_at(9, 30), _at(10)))
        self.assertTrue(is_tiled(spans, WS, WE))

    def test_every_level_tiles_its_window(self) -> None:
        rng = random.Random(20260302)

        def check(spans, start, end) -> None:
            self.assertTrue(is_tiled(spans, start, end), [(s.start, s.end) for s in spans])
            for s in spans:
                if s.children:
                    check(s.children, s.start, s.end)

        for n in range(200):
            blocks = []
            for k in range(rng.randint(0, 8)):
                start = WS + dt.timedelta(minutes=rng.randrange(-120, 300, 15))
                minutes = rng.choice([0, 0, 15, 30, 60, 90, 180])
                blocks.append(Block(start=start, end=start + dt.timedelta(minutes=minutes), task_ids=(f"t{k}",)))
            for extend in (False, True):
                with self.subTest(n=n, extend=extend):
                    check(layout_blocks(blocks, WS, WE, extend=extend), WS, WE)


class TestBlocksFromTasksContract(unittest.TestCase):
    def test_same_start_groups_into_one_block(self) -> None:
        tasks = [
            Task(id="b", scheduled=TaskDate(DAY, (9, 0)), length=TaskLength(1, 0)),
            Task(id="a", scheduled=TaskDate(DAY, (9, 0)), length=TaskLength(0, 30)),
            Task(id="c", scheduled=TaskDate(DAY, (13, 0))),
            Task(id="allday", scheduled=TaskDate(DAY)),
            Task(id="unscheduled"),
        ]
        blocks = blocks_from_tasks(tasks)
        self.assertEqual(len(blocks), 2)
        self.assertEqual(blocks[0].task_ids, ("a", "b"))
        self.assertEqual(blocks[0].end, _at(10))
        self.assertTrue(blocks[1].is_point)

    def test_events_attach_by_start(self) -> None:
        tasks = [Task(id="a", scheduled=TaskDate(DAY, (9, 0)), length=TaskLength(0, 30))]
        standup = Event(id="ev1", title="Standup")
        lunch = Event(id="ev2", title="Lunch")
        blocks = blocks_from_tasks(tasks, {_at(9): [standup], _at(12): [lunch]})
        self.assertEqual([b.start for b in blocks], [_at(9), _at(12)])
        self.assertEqual(blocks[0].events, (standup,))
        self.assertEqual(blocks[0].task_ids, ("a",))
        self.assertEqual(blocks[1].task_ids, ())
        self.assertEqual(blocks[1].events, (lunch,))
        self.assertTrue(blocks[1].is_point)


if __name__ == "__main__":
    unittest.main(verbosity=2)
