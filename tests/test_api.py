import os
import sys
import datetime
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import FitAPI


class RecordingMessenger:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send_message(self, chat_id: str, text: str) -> bool:
        self.sent.append((chat_id, text))
        return True


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_gym.db"
        self.yaml_path = "test_gym_settings.yaml"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)
        os.environ.pop("CRON_SECRET", None)
        self.now = datetime.datetime(2024, 5, 15, 10, 0)
        self.messenger = RecordingMessenger()
        self.api = FitAPI(
            db_path=self.db_path,
            yaml_path=self.yaml_path,
            messenger=self.messenger,
            clock=lambda: self.now,
        )
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)

    def seed_and_user(self) -> int:
        self.assertEqual(self.client.post("/admin/seed").json(), {"seeded": 24})
        response = self.client.post(
            "/users",
            json={"email": "sam@example.com", "name": "Sam"},
        )
        self.assertEqual(response.status_code, 200)
        return response.json()["id"]

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_seed_is_idempotent(self) -> None:
        self.assertEqual(self.client.post("/admin/seed").json(), {"seeded": 24})
        self.assertEqual(self.client.post("/admin/seed").json(), {"seeded": 0})
        self.assertEqual(len(self.client.get("/exercises").json()), 24)

    def test_users(self) -> None:
        uid = self.seed_and_user()
        response = self.client.post("/users", json={"email": "sam@example.com"})
        self.assertEqual(response.status_code, 400)
        data = self.client.get(f"/users/{uid}").json()
        self.assertEqual(data["email"], "sam@example.com")
        self.assertEqual(data["starting_weight"], 82.0)
        self.assertFalse(data["telegram_linked"])
        self.assertEqual(self.client.get("/users/99").status_code, 404)

    def test_workout_flow(self) -> None:
        uid = self.seed_and_user()
        response = self.client.get(f"/users/{uid}/workout/next", params={"express": True})
        self.assertEqual(response.status_code, 200)
        plan = response.json()
        self.assertEqual(plan["workout_type"], "A")
        self.assertTrue(plan["is_express"])
        self.assertEqual(len(plan["warm_up"]), 6)
        self.assertEqual(len(plan["exercises"]), 3)
        bench = plan["exercises"][0]
        self.assertEqual(bench["name"], "Smith Machine Bench Press")
        self.assertEqual(bench["recommended_weight_kg"], 25.0)

        response = self.client.post(
            f"/users/{uid}/workout/complete",
            json={
                "workout_type": "A",
                "is_express": True,
                "exercises": [
                    {
                        "exercise_id": bench["id"],
                        "weight_kg": 25.0,
                        "sets_completed": 3,
                        "difficulty_feedback": "too_light",
                        "enjoyed": True,
                    }
                ],
            },
        )
        self.assertEqual(response.status_code, 200)
        result = response.json()
        self.assertEqual(result["workouts_this_week"], 1)
        self.assertTrue(result["punishment_active"])
        self.assertEqual(result["progression"][0]["next_weight_kg"], 27.5)
        self.assertEqual(result["achievements"], ["first_blood"])

        plan = self.client.get(f"/users/{uid}/workout/next").json()
        self.assertEqual(plan["workout_type"], "B")
        exercises = self.client.get(f"/users/{uid}/workout/A/exercises").json()
        self.assertEqual(exercises[0]["recommended_weight_kg"], 27.5)

        history = self.client.get(f"/users/{uid}/workout/history").json()
        self.assertEqual(history, [{"week": "2024-05-13", "count": 1}])

        dash = self.client.get(f"/users/{uid}/dashboard").json()
        self.assertEqual(dash["workouts_this_week"], 1)
        self.assertEqual(dash["next_workout_type"], "B")
        self.assertEqual(dash["xp"], 100)

    def test_workout_validation(self) -> None:
        uid = self.seed_and_user()
        response = self.client.post(
            f"/users/{uid}/workout/complete", json={"workout_type": "D"}
        )
        self.assertEqual(response.status_code, 422)
        response = self.client.post(
            f"/users/{uid}/workout/complete",
            json={
                "workout_type": "A",
                "exercises": [
                    {
                        "exercise_id": 999,
                        "weight_kg": 10,
                        "sets_completed": 3,
                        "difficulty_feedback": "just_right",
                    }
                ],
            },
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get(f"/users/{uid}/workout/D/exercises").status_code, 400)
        self.assertEqual(self.client.get("/users/99/workout/next").status_code, 404)
        self.assertEqual(
            self.client.post("/users/99/workout/complete", json={"workout_type": "A"}).status_code,
            404,
        )

    def test_preference_blacklist(self) -> None:
        uid = self.seed_and_user()
        bench = self.client.get(f"/users/{uid}/workout/A/exercises").json()[0]
        response = self.client.put(
            f"/users/{uid}/exercises/{bench['id']}/preference", json={"blacklisted": True}
        )
        self.assertEqual(response.status_code, 200)
        names = [e["name"] for e in self.client.get(f"/users/{uid}/workout/A/exercises").json()]
        self.assertNotIn("Smith Machine Bench Press", names)
        response = self.client.put(
            f"/users/{uid}/exercises/999/preference", json={"blacklisted": True}
        )
        self.assertEqual(response.status_code, 404)

    def test_weight_and_waist(self) -> None:
        uid = self.seed_and_user()
        self.assertEqual(
            self.client.post(f"/users/{uid}/weight", json={"weight_kg": 20}).status_code, 422
        )
        response = self.client.post(f"/users/{uid}/weight", json={"weight_kg": 80.5})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["ok"])
        self.assertEqual(response.json()["achievements"], ["first_kilo_down"])
        history = self.client.get(f"/users/{uid}/weight/history").json()
        self.assertEqual([h["weight_kg"] for h in history], [80.5])

        self.assertEqual(
            self.client.post(f"/users/{uid}/waist", json={"waist_cm": 30}).status_code, 422
        )
        self.client.post(f"/users/{uid}/waist", json={"waist_cm": 95})
        self.client.post(f"/users/{uid}/waist", json={"waist_cm": 94})
        waist = self.client.get(f"/users/{uid}/waist").json()
        self.assertEqual([w["waist_cm"] for w in waist], [94.0, 95.0])
        self.assertEqual(
            self.client.post("/users/99/weight", json={"weight_kg": 80}).status_code, 404
        )

    def test_injuries(self) -> None:
        uid = self.seed_and_user()
        response = self.client.post(
            f"/users/{uid}/injuries", json={"body_area": "back", "severity": "moderate"}
        )
        self.assertEqual(response.status_code, 200)
        iid = response.json()["id"]
        active = self.client.get(f"/users/{uid}/injuries").json()
        self.assertEqual([i["body_area"] for i in active], ["back"])
        names = [e["name"] for e in self.client.get(f"/users/{uid}/workout/B/exercises").json()]
        self.assertNotIn("Smith Machine Bent-Over Row", names)

        self.assertEqual(
            self.client.post(
                f"/users/{uid}/injuries", json={"body_area": "tail", "severity": "mild"}
            ).status_code,
            422,
        )
        response = self.client.post(f"/users/{uid}/injuries/{iid}/resolve")
        self.assertEqual(response.json(), {"status": "resolved"})
        self.assertEqual(self.client.get(f"/users/{uid}/injuries").json(), [])
        self.assertEqual(
            self.client.post(f"/users/{uid}/injuries/999/resolve").status_code, 404
        )

    def test_verify_workout(self) -> None:
        uid = self.seed_and_user()
        wid = self.client.post(
            f"/users/{uid}/workout/complete", json={"workout_type": "A"}
        ).json()["workout_id"]
        samples = [
            {"time": f"10:{m:02d}", "value": 110} for m in range(25)
        ]
        response = self.client.post(
            f"/users/{uid}/workouts/{wid}/verify", json={"samples": samples}
        )
        self.assertEqual(response.json(), {"verified": True})
        self.assertTrue(self.api.workouts.fetch_detail(wid)["wearable_verified"])
        response = self.client.post(
            f"/users/{uid}/workouts/{wid}/verify",
            json={"samples": [{"time": "ten", "value": 110}]},
        )
        self.assertEqual(response.status_code, 422)
        for bad in ("24:00", "99:99", "10:60", "10:00:75"):
            response = self.client.post(
                f"/users/{uid}/workouts/{wid}/verify",
                json={"samples": [{"time": bad, "value": 110}]},
            )
            self.assertEqual(response.status_code, 422, bad)
        self.assertEqual(
            self.client.post(f"/users/{uid}/workouts/999/verify", json={"samples": []}).status_code,
            404,
        )

    def test_progress_endpoints(self) -> None:
        uid = self.seed_and_user()
        self.client.post(f"/users/{uid}/weight", json={"weight_kg": 80.0})
        analytics = self.client.get(f"/users/{uid}/analytics", params={"range": "1W"}).json()
        self.assertEqual(analytics["weight_trend"][0]["weight"], 80.0)
        self.assertEqual(len(analytics["heatmap"]), 365)
        quests = self.client.get(f"/users/{uid}/quests").json()["quests"]
        self.assertEqual(len(quests), 3)
        self.assertIn("xp", self.client.post(f"/users/{uid}/quests/award").json())
        achievements = self.client.get(f"/users/{uid}/achievements").json()
        self.assertEqual([a["type"] for a in achievements], ["first_kilo_down"])
        self.assertEqual(self.client.get("/users/99/analytics").status_code, 404)

    def test_settings_masked(self) -> None:
        self.api.settings.set_text("telegram_bot_token", "123:abc")
        data = self.client.get("/settings").json()
        self.assertEqual(data["telegram_bot_token"], "***")
        self.assertEqual(data["timezone"], "Australia/Sydney")

    def test_unknown_timezone_keeps_dashboard_working(self) -> None:
        uid = self.seed_and_user()
        with self.assertRaises(ValueError):
            self.api.settings.set_text("timezone", "Mars/Base")
        self.assertEqual(self.client.get(f"/users/{uid}/dashboard").status_code, 200)
        self.assertEqual(self.client.get("/settings").json()["timezone"], "Australia/Sydney")

    def test_cron_requires_secret_when_configured(self) -> None:
        self.assertEqual(self.client.get("/cron/daily").status_code, 200)
        self.api.settings.set_text("cron_secret", "s3cret")
        self.assertEqual(self.client.get("/cron/daily").status_code, 401)
        self.assertEqual(
            self.client.get(
                "/cron/daily", headers={"Authorization": "Bearer wrong"}
            ).status_code,
            401,
        )
        self.assertEqual(self.client.post("/admin/seed").status_code, 401)
        response = self.client.get(
            "/cron/daily", headers={"Authorization": "Bearer s3cret"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True, "users": 0, "sent": 0, "errors": 0})
        self.assertEqual(self.client.get("/cron/wearable-sync").status_code, 401)

    def test_cron_jobs(self) -> None:
        self.assertEqual(
            self.client.get("/cron/weekly").json(),
            {"ok": True, "message": "Only run on Sunday"},
        )
        self.assertEqual(self.client.get("/cron/rest-day").json()["users"], 0)
        self.assertEqual(
            self.client.get("/cron/wearable-sync").json(),
            {"ok": True, "users": 0, "synced": 0, "errors": 0},
        )
        self.assertTrue(self.client.get("/cron/tick").json()["ok"])

    def test_telegram_link_and_webhook(self) -> None:
        uid = self.seed_and_user()
        code = self.client.post(f"/users/{uid}/telegram/link").json()["code"]
        self.assertEqual(len(code), 6)
        response = self.client.post(
            "/telegram/webhook",
            json={"message": {"from": {"id": 5}, "chat": {"id": 5}, "text": f"/link {code}"}},
        )
        self.assertEqual(response.json(), {"ok": True})
        self.assertTrue(self.client.get(f"/users/{uid}").json()["telegram_linked"])
        self.assertEqual(self.messenger.sent[-1][0], "5")

        response = self.client.post("/telegram/webhook", json={"message": {"chat": "garbage"}})
        self.assertEqual(response.json(), {"ok": True})
        response = self.client.post(
            "/telegram/webhook",
            json={"message": {"from": {"id": 5}, "chat": {}, "text": "/status"}},
        )
        self.assertEqual(response.json(), {"ok": True})
        self.assertEqual(self.client.post("/users/99/telegram/link").status_code, 404)


if __name__ == "__main__":
    unittest.main()
