import datetime
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from gamification_service import GamificationService, QUESTS
from rest_api import FitAPI
from seed_exercises import seed


class SilentMessenger:
    def send_message(self, chat_id: str, text: str) -> bool:
        return True


class GamificationTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_game.db"
        self.yaml_path = "test_game.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.now = datetime.datetime(2024, 5, 15, 10, 0)
        self.api = FitAPI(
            self.db_path,
            self.yaml_path,
            messenger=SilentMessenger(),
            clock=lambda: self.now,
        )
        seed(self.api.exercises)
        self.uid = self.api.users.create("sam@example.com", "Sam", 82.0, 75.0)
        self.ids = {e["name"]: e["id"] for e in self.api.exercises.fetch_all_records()}

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_first_blood_awarded_once(self) -> None:
        first = self.api.workout_service.complete_workout(self.uid, "A", False, [])
        second = self.api.workout_service.complete_workout(self.uid, "B", False, [])
        self.assertEqual(first["achievements"], ["first_blood"])
        self.assertEqual(second["achievements"], [])
        self.assertEqual(len(self.api.achievements.fetch_for_user(self.uid)), 1)

    def test_scale_warrior_after_eight_logs(self) -> None:
        for _ in range(7):
            self.api.workout_service.log_weight(self.uid, 82.0)
        self.assertNotIn("scale_warrior", self.api.achievements.fetch_types(self.uid))
        result = self.api.workout_service.log_weight(self.uid, 82.0)
        self.assertEqual(result["achievements"], ["scale_warrior"])

    def test_goal_weight_awards(self) -> None:
        result = self.api.workout_service.log_weight(self.uid, 75.0)
        self.assertEqual(result["achievements"], ["first_kilo_down", "down_5", "goal_crusher"])
        # weight log plus 100 + 200 + 1000
        self.assertEqual(self.api.stats.total_xp(self.uid), 1310)
        self.assertEqual(self.api.stats.level(self.uid), 3)

    def test_healthy_zone(self) -> None:
        self.assertEqual(self.api.workout_service.log_waist(self.uid, 95.0)["achievements"], [])
        self.assertEqual(
            self.api.workout_service.log_waist(self.uid, 89.0)["achievements"],
            ["healthy_zone"],
        )

    def test_achievement_labels(self) -> None:
        self.api.workout_service.complete_workout(self.uid, "A", False, [])
        listed = self.api.gamification.achievements(self.uid)
        self.assertEqual(listed[0]["type"], "first_blood")
        self.assertEqual(listed[0]["label"], "First Blood")

    def test_invalid_event(self) -> None:
        with self.assertRaises(ValueError):
            self.api.gamification.check_achievements(self.uid, "sleep")

    def test_quest_choice_stable_per_week(self) -> None:
        week = datetime.date(2024, 5, 13)
        ids = GamificationService.weekly_quest_ids(week)
        self.assertEqual(ids, GamificationService.weekly_quest_ids(week))
        self.assertEqual(len(ids), 3)
        self.assertEqual(len(set(ids)), 3)
        self.assertTrue(set(ids) <= {q[0] for q in QUESTS})

    def test_award_quest_xp_once(self) -> None:
        bench = self.ids["Smith Machine Bench Press"]
        curl = self.ids["Dumbbell Bicep Curl"]
        self.now = datetime.datetime(2024, 5, 8, 12, 0)
        self.api.workout_service.complete_workout(
            self.uid,
            "A",
            False,
            [{"exercise_id": bench, "weight_kg": 25.0, "sets_completed": 3,
              "difficulty_feedback": "just_right", "enjoyed": True}],
        )
        self.now = datetime.datetime(2024, 5, 15, 12, 0)
        self.api.workout_service.complete_workout(
            self.uid,
            "B",
            False,
            [
                {"exercise_id": bench, "weight_kg": 27.5, "sets_completed": 3,
                 "difficulty_feedback": "just_right", "enjoyed": True},
                {"exercise_id": curl, "weight_kg": 5.0, "sets_completed": 3,
                 "difficulty_feedback": "just_right", "enjoyed": True},
            ],
        )
        self.api.workout_service.complete_workout(self.uid, "C", False, [])
        self.api.workout_service.complete_workout(self.uid, "A", False, [])
        self.api.workout_service.log_weight(self.uid, 81.0)
        self.api.workout_service.log_weight(self.uid, 80.5)
        self.api.workout_service.log_waist(self.uid, 95.0)

        quests = self.api.gamification.weekly_quests(self.uid)
        expected = sum(1 for q in quests if q["id"] != "no_skips")
        for quest in quests:
            self.assertEqual(quest["completed"], quest["id"] != "no_skips")

        before = self.api.weekly.fetch(self.uid, "2024-05-13")["xp_earned"]
        self.assertEqual(self.api.gamification.award_quest_xp(self.uid), expected * 30)
        self.assertEqual(self.api.gamification.award_quest_xp(self.uid), 0)
        row = self.api.weekly.fetch(self.uid, "2024-05-13")
        self.assertEqual(row["quests_completed"], expected)
        self.assertEqual(row["xp_earned"], before + expected * 30)


if __name__ == "__main__":
    unittest.main()
