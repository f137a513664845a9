import os
import yaml
import keyring

APP_VERSION = "1.0.0"

DEFAULT_SCHEDULE_TIMEZONE = "Australia/Sydney"
PLANNED_WORKOUTS_PER_WEEK = 5
MIN_WORKOUTS_FOR_GOAL = 3
WORKOUT_WINDOW_START_HOUR = 11
WORKOUT_WINDOW_END_HOUR = 16


class YamlConfig:
    """Settings file in YAML. Secrets move to the OS keyring when ``ENCRYPT_SETTINGS=1``.

    An encrypted secret is written to the file as ``true``; empty secrets stay
    in the file as empty strings and never reach the keyring.
    """

    SENSITIVE_KEYS = {
        "telegram_bot_token",
        "cron_secret",
        "calendar_api_key",
    }

    def __init__(self, path: str = "settings.yaml", service: str = "accountability-gym") -> None:
        self.path = path
        self.service = service
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"

    def _secret_keys(self, data: dict) -> list[str]:
        return sorted(self.SENSITIVE_KEYS & set(data)) if self.encrypt else []

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        for key in self._secret_keys(data):
            if data[key] is not True:
                continue
            secret = keyring.get_password(self.service, key)
            if secret is None:
                del data[key]
            else:
                data[key] = secret
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        for key in self._secret_keys(out):
            if out[key] in ("", None, True):
                continue
            keyring.set_password(self.service, key, str(out[key]))
            out[key] = True
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)


def env_secret(key: str, stored: str = "") -> str:
    """Return ``key`` from the environment, falling back to ``stored``."""
    return os.environ.get(key.upper(), "") or stored
