import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import MathTools, ProgressionRules


class InitialWeightTest(unittest.TestCase):
    def test_percent_of_body_weight_snapped(self) -> None:
        self.assertEqual(ProgressionRules.initial_weight(82.0, 0.30, 2.5), 25.0)
        self.assertEqual(ProgressionRules.initial_weight(82.0, 0.04, 1.0), 3.0)
        self.assertEqual(ProgressionRules.initial_weight(90.0, 0.30, 2.5), 27.5)

    def test_floored_at_one_increment(self) -> None:
        self.assertEqual(ProgressionRules.initial_weight(82.0, 0.01, 2.5), 2.5)

    def test_zero_increment_is_bodyweight_exercise(self) -> None:
        self.assertEqual(ProgressionRules.initial_weight(82.0, 0.0, 0.0), 0.0)

    def test_body_weight_fallbacks(self) -> None:
        self.assertEqual(ProgressionRules.body_weight(79.0, 82.0), 79.0)
        self.assertEqual(ProgressionRules.body_weight(None, 85.0), 85.0)
        self.assertEqual(ProgressionRules.body_weight(None, None), 82.0)


class NextWeightTest(unittest.TestCase):
    def test_too_heavy_drops_one_increment(self) -> None:
        self.assertEqual(
            ProgressionRules.next_weight(25.0, "too_heavy", 2.5, 25.0, 2), (22.5, 0)
        )

    def test_too_heavy_never_below_one_increment(self) -> None:
        self.assertEqual(
            ProgressionRules.next_weight(2.5, "too_heavy", 2.5, 2.5, 1), (2.5, 0)
        )

    def test_too_light_adds_one_increment(self) -> None:
        self.assertEqual(
            ProgressionRules.next_weight(25.0, "too_light", 2.5, 25.0, 2), (27.5, 0)
        )

    def test_three_sessions_at_same_weight_increase(self) -> None:
        weight, sessions = ProgressionRules.next_weight(25.0, "just_right", 2.5)
        self.assertEqual((weight, sessions), (25.0, 1))
        weight, sessions = ProgressionRules.next_weight(25.0, "just_right", 2.5, weight, sessions)
        self.assertEqual((weight, sessions), (25.0, 2))
        weight, sessions = ProgressionRules.next_weight(25.0, "just_right", 2.5, weight, sessions)
        self.assertEqual((weight, sessions), (27.5, 0))

    def test_just_right_at_new_weight_restarts_counter(self) -> None:
        self.assertEqual(
            ProgressionRules.next_weight(30.0, "just_right", 2.5, 25.0, 2), (30.0, 1)
        )

    def test_logged_weight_snapped_to_increment(self) -> None:
        self.assertEqual(
            ProgressionRules.next_weight(26.0, "too_light", 2.5), (27.5, 0)
        )

    def test_invalid_feedback(self) -> None:
        with self.assertRaises(ValueError):
            ProgressionRules.next_weight(25.0, "meh", 2.5)


class MathToolsTest(unittest.TestCase):
    def test_progress_percentage(self) -> None:
        self.assertEqual(MathTools.progress_percentage(82.0, 79.0, 75.0), 43)
        self.assertEqual(MathTools.progress_percentage(80.0, 80.0, 80.0), 0)
        self.assertEqual(MathTools.progress_percentage(82.0, 84.0, 75.0), -29)

    def test_round_half_up(self) -> None:
        self.assertEqual(MathTools.round_half_up(42.5), 43)
        self.assertEqual(MathTools.round_half_up(42.49), 42)

    def test_levels(self) -> None:
        self.assertEqual(MathTools.level_for_xp(0), 1)
        self.assertEqual(MathTools.level_for_xp(499), 1)
        self.assertEqual(MathTools.level_for_xp(500), 2)
        self.assertEqual(MathTools.level_for_xp(1250), 3)

    def test_moving_average(self) -> None:
        self.assertEqual(MathTools.moving_average([80, 81, 82]), [80.0, 80.5, 81.0])
        self.assertEqual(MathTools.moving_average([1, 2, 3], window=2), [1.0, 1.5, 2.5])
        self.assertEqual(MathTools.moving_average([]), [])

    def test_snap_to_increment(self) -> None:
        self.assertEqual(MathTools.snap_to_increment(24.6, 2.5), 25.0)
        self.assertEqual(MathTools.snap_to_increment(3.5, 1.0), 4.0)
        self.assertEqual(MathTools.snap_to_increment(3.0, 0.0), 0.0)


if __name__ == "__main__":
    unittest.main()
