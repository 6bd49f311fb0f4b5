import math
import unittest

from tt_bot.records import TimeRecord, latest_record
from tt_bot.sampler import sample_minutes


def _seq(values: list[float]):
    it = iter(values)
    return lambda: next(it)


class TestSampler(unittest.TestCase):
    def test_box_muller_with_fixed_uniforms(self) -> None:
        # u1 = e^-0.5 -> sqrt(-2 ln u1) = 1; u2 = 0 -> cos = 1
        self.assertAlmostEqual(sample_minutes(15, 2, uniform=_seq([math.exp(-0.5), 0.0])), 17.0)
        # u2 = 0.5 -> cos(pi) = -1
        self.assertAlmostEqual(sample_minutes(15, 2, uniform=_seq([math.exp(-0.5), 0.5])), 13.0)

    def test_zero_u1_is_redrawn(self) -> None:
        self.assertAlmostEqual(sample_minutes(10, 1, uniform=_seq([0.0, math.exp(-0.5), 0.0])), 11.0)

    def test_not_clamped(self) -> None:
        # sqrt(-2 ln 1e-6) ~ 5.26 -> 1 - 5.26 * 10 < 0
        self.assertLess(sample_minutes(1, 10, uniform=_seq([1e-6, 0.5])), 0.0)

    def test_defaults_are_deterministic_with_injected_source(self) -> None:
        a = sample_minutes(uniform=_seq([0.3, 0.7]))
        b = sample_minutes(uniform=_seq([0.3, 0.7]))
        self.assertEqual(a, b)


class TestRecords(unittest.TestCase):
    def test_from_dict_round_trip_fields(self) -> None:
        r = TimeRecord.from_dict({'key': 'k', 't1': 10, 't2': 20.0, 'ds': '#x', 'mt': 20, 'st': 123.5})
        self.assertEqual((r.key, r.t1, r.t2, r.ds, r.mt, r.st), ('k', 10, 20, '#x', 20, 123.5))
        self.assertEqual(r.to_dict(), {'key': 'k', 't1': 10, 't2': 20, 'ds': '#x', 'mt': 20, 'st': 123.5})

    def test_closing_resets_server_time(self) -> None:
        r = TimeRecord(key='k', t1=10, t2=10, st=99.0)
        self.assertTrue(r.is_open)
        c = r.closed_at(50, mt=60)
        self.assertFalse(c.is_open)
        self.assertEqual((c.t2, c.mt, c.st), (50, 60, 0.0))

    def test_latest_record_skips_soft_deleted(self) -> None:
        records = [
            TimeRecord(key='a', t1=1, t2=2, ds='first'),
            TimeRecord(key='b', t1=3, t2=3, ds='second'),
            TimeRecord(key='c', t1=4, t2=5, ds='HIDDEN second try'),
        ]
        latest = latest_record(records)
        self.assertIsNotNone(latest)
        self.assertEqual(latest.key, 'b')  # type: ignore[union-attr]

    def test_latest_record_none_when_all_deleted(self) -> None:
        self.assertIsNone(latest_record([TimeRecord(key='c', t1=4, t2=5, ds='HIDDEN x')]))
        self.assertIsNone(latest_record([]))
