import os
import sys
import unittest
import keyring
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig, env_secret
from db import SettingsRepository
from settings_schema import validate_settings

class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1
    def __init__(self):
        self.store = {}
    def get_password(self, service, username):
        return self.store.get((service, username))
    def set_password(self, service, username, password):
        self.store[(service, username)] = password
    def delete_password(self, service, username):
        self.store.pop((service, username), None)

class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        self.keyring = DummyKeyring()
        keyring.set_keyring(self.keyring)
        os.environ['ENCRYPT_SETTINGS'] = '1'
        self.path = 'enc_settings.yaml'
        if os.path.exists(self.path):
            os.remove(self.path)

    def tearDown(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
        os.environ.pop('ENCRYPT_SETTINGS', None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'telegram_bot_token': '123:abc', 'timezone': 'UTC'})
        self.assertTrue(os.path.exists(self.path))
        with open(self.path, encoding='utf-8') as f:
            self.assertNotIn('123:abc', f.read())
        self.assertEqual(
            self.keyring.get_password('accountability-gym', 'telegram_bot_token'), '123:abc'
        )
        data = cfg.load()
        self.assertEqual(data['telegram_bot_token'], '123:abc')
        self.assertEqual(data['timezone'], 'UTC')

    def test_missing_secret_dropped(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'cron_secret': 'x'})
        self.keyring.delete_password('accountability-gym', 'cron_secret')
        self.assertNotIn('cron_secret', cfg.load())

    def test_empty_secret_stays_in_file(self) -> None:
        cfg = YamlConfig(self.path, service='gym-test')
        cfg.save({'cron_secret': '', 'calendar_api_key': 'cal-1'})
        self.assertIsNone(self.keyring.get_password('gym-test', 'cron_secret'))
        self.assertEqual(self.keyring.get_password('gym-test', 'calendar_api_key'), 'cal-1')
        self.assertEqual(cfg.load(), {'cron_secret': '', 'calendar_api_key': 'cal-1'})


class SettingsRepositoryTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = 'test_settings.db'
        self.yaml_path = 'test_settings.yaml'
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.settings = SettingsRepository(self.db_path, self.yaml_path)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        os.environ.pop('CRON_SECRET', None)

    def test_defaults(self) -> None:
        self.assertEqual(self.settings.get_int('min_workouts_for_goal', 0), 3)
        self.assertEqual(self.settings.get_int('planned_workouts_per_week', 0), 5)
        self.assertEqual(self.settings.get_text('timezone', ''), 'Australia/Sydney')
        self.assertTrue(self.settings.get_bool('notifications_enabled', False))

    def test_secrets_masked_and_kept_as_text(self) -> None:
        self.settings.set_text('cron_secret', '12345')
        self.assertEqual(self.settings.get_text('cron_secret', ''), '12345')
        data = self.settings.all_settings()
        self.assertEqual(data['cron_secret'], '***')
        self.assertEqual(data['telegram_bot_token'], '')
        self.assertEqual(data['min_workouts_for_goal'], 3.0)

    def test_yaml_edits_picked_up(self) -> None:
        import yaml
        with open(self.yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
        data['min_workouts_for_goal'] = 4
        with open(self.yaml_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f)
        self.assertEqual(self.settings.get_int('min_workouts_for_goal', 3), 4)

    def test_invalid_yaml_rejected(self) -> None:
        with self.assertRaises(ValueError):
            validate_settings({'min_workouts_for_goal': 'many'})
        validate_settings({'timezone': 'UTC', 'notifications_enabled': False})

    def test_unknown_timezone_rejected(self) -> None:
        with self.assertRaises(ValueError):
            validate_settings({'timezone': 'Mars/Base'})
        validate_settings({'timezone': 'Europe/Berlin'})
        with self.assertRaises(ValueError):
            self.settings.set_text('timezone', 'Mars/Base')
        self.assertEqual(self.settings.get_text('timezone', ''), 'Australia/Sydney')
        self.settings.set_text('timezone', 'Europe/Berlin')
        self.assertEqual(self.settings.get_text('timezone', ''), 'Europe/Berlin')

    def test_unknown_timezone_in_yaml_rejected(self) -> None:
        import yaml
        with open(self.yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
        data['timezone'] = 'Mars/Base'
        with open(self.yaml_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f)
        with self.assertRaises(ValueError):
            self.settings.get_text('timezone', '')

    def test_env_overrides_stored_secret(self) -> None:
        self.assertEqual(env_secret('cron_secret', 'stored'), 'stored')
        os.environ['CRON_SECRET'] = 'from-env'
        self.assertEqual(env_secret('cron_secret', 'stored'), 'from-env')
