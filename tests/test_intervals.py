import unittest
from datetime import time

from academy.core.intervals import TimeRange, overlaps, parse_hhmm


class OverlapTests(unittest.TestCase):
    def test_overlap_is_symmetric(self):
        pairs = [
            (time(10, 0), time(11, 0), time(10, 30), time(11, 30)),
            (time(9, 0), time(12, 0), time(10, 0), time(11, 0)),
            (time(8, 0), time(9, 0), time(9, 0), time(10, 0)),
            (time(8, 0), time(9, 0), time(13, 0), time(14, 0)),
        ]
        for s1, e1, s2, e2 in pairs:
            self.assertEqual(overlaps(s1, e1, s2, e2), overlaps(s2, e2, s1, e1))

    def test_non_empty_interval_overlaps_itself(self):
        self.assertTrue(overlaps(time(10, 0), time(11, 0), time(10, 0), time(11, 0)))

    def test_touching_boundaries_do_not_overlap(self):
        self.assertFalse(overlaps(time(10, 0), time(11, 0), time(11, 0), time(12, 0)))
        self.assertFalse(overlaps(time(11, 0), time(12, 0), time(10, 0), time(11, 0)))

    def test_disjoint_and_contained(self):
        self.assertFalse(overlaps(time(8, 0), time(9, 0), time(13, 0), time(14, 0)))
        self.assertTrue(overlaps(time(9, 0), time(12, 0), time(10, 0), time(10, 30)))


class TimeRangeTests(unittest.TestCase):
    def test_empty_range_overlaps_nothing(self):
        empty = TimeRange(time(10, 0), time(10, 0))
        self.assertTrue(empty.is_empty)
        self.assertFalse(empty.overlaps(TimeRange(time(9, 0), time(11, 0))))

    def test_label(self):
        self.assertEqual(TimeRange(time(9, 5), time(10, 30)).label(), '09:05-10:30')

    def test_parse_hhmm(self):
        self.assertEqual(parse_hhmm('07:30'), time(7, 30))
        self.assertEqual(parse_hhmm('18:00:00'), time(18, 0))
        for bad in ('', '7', '25:00', '10:75', 'ab:cd'):
            with self.assertRaises(ValueError):
                parse_hhmm(bad)


if __name__ == '__main__':
    unittest.main()
