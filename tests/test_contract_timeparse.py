from __future__ import annotations

import datetime as dt
import unittest

from timeruler.model import Task, TaskDate, TaskLength, make_task_id, patch_task, task_id_sort_key
from timeruler.util.duration import fmt_length, parse_length
from timeruler.util.timeparse import fmt_delta, parse_hhmm, split_iso


class TestTimeparseContract(unittest.TestCase):
    def test_parse_hhmm(self) -> None:
        self.assertEqual(parse_hhmm("9:05"), (9, 5))
        for bad in ("24:00", "9:60", "0900", ""):
            with self.subTest(bad=bad), self.assertRaises(ValueError):
                parse_hhmm(bad)

    def test_split_iso(self) -> None:
        self.assertEqual(split_iso("2026-03-02"), (dt.date(2026, 3, 2), None))
        self.assertEqual(split_iso("2026-03-02T09:30:00"), (dt.date(2026, 3, 2), (9, 30)))
        self.assertEqual(split_iso("2026-03-02 09:30"), (dt.date(2026, 3, 2), (9, 30)))
        self.assertIsNone(split_iso("2026-02-30"))
        self.assertIsNone(split_iso("tomorrow"))

    def test_fmt_delta(self) -> None:
        self.assertEqual(fmt_delta(90), "1h30m")
        self.assertEqual(fmt_delta(-45), "-0h45m")
        self.assertEqual(fmt_delta(0), "0h0m")

    def test_lengths(self) -> None:
        self.assertEqual(parse_length("PT1H30M"), (1, 30))
        self.assertEqual(parse_length("2 hours"), (2, 0))
        self.assertIsNone(parse_length("0m"))
        self.assertEqual(fmt_length(1, 0), "1h")
        self.assertEqual(fmt_length(0, 45), "45m")


class TestTaskDateContract(unittest.TestCase):
    def test_shift_crosses_midnight(self) -> None:
        d = TaskDate(dt.date(2026, 3, 2), (23, 30))
        self.assertEqual(d.shifted(60), TaskDate(dt.date(2026, 3, 3), (0, 30)))

    def test_all_day_shifts_whole_days(self) -> None:
        d = TaskDate(dt.date(2026, 3, 2))
        self.assertEqual(d.shifted(90), d)
        self.assertEqual(d.shifted(2 * 1440), TaskDate(dt.date(2026, 3, 4)))

    def test_all_day_sorts_first(self) -> None:
        day = dt.date(2026, 3, 2)
        values = [TaskDate(day, (0, 0)), TaskDate(day)]
        self.assertEqual(sorted(values, key=TaskDate.sort_key)[0], TaskDate(day))

    def test_iso(self) -> None:
        self.assertEqual(str(TaskDate(dt.date(2026, 3, 2), (9, 5))), "2026-03-02T09:05")
        self.assertEqual(TaskDate.parse("2026-03-02").iso(), "2026-03-02")


class TestTaskIdsContract(unittest.TestCase):
    def test_ids(self) -> None:
        self.assertEqual(make_task_id("Notes/a.md", 12), "Notes/a::12")
        ids = ["b::1", "a::10", "a::9"]
        self.assertEqual(sorted(ids, key=task_id_sort_key), ["a::9", "a::10", "b::1"])


class TestPatchTaskContract(unittest.TestCase):
    def test_patch_fields(self) -> None:
        t = Task(id="a::0", title="x", extra_fields={"project": "alpha"})
        out = patch_task(
            t,
            {
                "scheduled": "2026-03-02T09:00",
                "length": {"hour": 1, "minute": 15},
                "due": dt.date(2026, 3, 4),
                "priority": "high",
                "project": None,
                "area": "home",
            },
        )
        self.assertEqual(out.scheduled, TaskDate(dt.date(2026, 3, 2), (9, 0)))
        self.assertEqual(out.length, TaskLength(1, 15))
        self.assertEqual(out.due, dt.date(2026, 3, 4))
        self.assertEqual(out.priority, 4)
        self.assertEqual(out.extra_fields, {"area": "home"})

    def test_zero_length_clears(self) -> None:
        t = Task(id="a::0", length=TaskLength(0, 30))
        self.assertIsNone(patch_task(t, {"length": 0}).length)

    def test_bad_values_raise(self) -> None:
        with self.assertRaises(ValueError):
            patch_task(Task(id="a::0"), {"scheduled": "soon"})
        with self.assertRaises(ValueError):
            patch_task(Task(id="a::0"), {"length": "long"})


if __name__ == "__main__":
    unittest.main(verbosity=2)
