import os
import sys
import unittest
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from cli import (
    backup_db,
    restore_db,
    seed_catalog,
    create_user,
    run_job,
)
from rest_api import FitAPI

class CLITest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_cli.db"
        self.yaml_path = "test_cli.yaml"
        for path in [self.db_path, self.yaml_path, "backup.db"]:
            if os.path.exists(path):
                os.remove(path)

    def tearDown(self) -> None:
        for path in [self.db_path, self.yaml_path, "backup.db"]:
            if os.path.exists(path):
                os.remove(path)

    def test_seed_and_create_user(self) -> None:
        seed_catalog(self.db_path, self.yaml_path)
        seed_catalog(self.db_path, self.yaml_path)
        create_user(self.db_path, self.yaml_path, "sam@example.com", "Sam", 82.0, 75.0)
        api = FitAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.assertEqual(api.exercises.count(), 24)
        user = api.users.fetch_detail(1)
        self.assertEqual(user["email"], "sam@example.com")
        self.assertEqual(len(user["telegram_link_code"]), 6)

    def test_backup_restore(self) -> None:
        seed_catalog(self.db_path, self.yaml_path)
        backup_db(self.db_path, "backup.db")
        self.assertTrue(os.path.exists("backup.db"))
        os.remove(self.db_path)
        restore_db("backup.db", self.db_path)
        api = FitAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.assertEqual(api.exercises.count(), 24)

    def test_run_job(self) -> None:
        result = run_job(self.db_path, self.yaml_path, "rest-day")
        self.assertEqual(result, {"ok": True, "users": 0, "sent": 0, "errors": 0})
        self.assertTrue(run_job(self.db_path, self.yaml_path, "tick")["ok"])
        self.assertEqual(
            run_job(self.db_path, self.yaml_path, "wearable-sync"),
            {"ok": True, "users": 0, "synced": 0, "errors": 0},
        )

if __name__ == "__main__":
    unittest.main()
