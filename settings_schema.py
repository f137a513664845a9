import pytz
from pydantic import BaseModel, ValidationError, field_validator


class SettingsSchema(BaseModel):
    timezone: str = "Australia/Sydney"
    min_workouts_for_goal: int = 3
    planned_workouts_per_week: int = 5
    workout_window_start_hour: int = 11
    workout_window_end_hour: int = 16
    default_body_weight: float = 82.0
    default_target_weight: float = 75.0
    notifications_enabled: bool = True
    telegram_bot_token: str | bool = ""
    cron_secret: str | bool = ""
    calendar_api_key: str | bool = ""

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones_set:
            raise ValueError(f"unknown timezone: {value}")
        return value


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
