import datetime
from typing import Iterable


class RecoveryTools:
    """Sleep based recovery classification and heart-rate workout checks."""

    REST_SLEEP_MINS: int = 360
    REST_EFFICIENCY: int = 75
    PUSH_SLEEP_MINS: int = 420
    PUSH_EFFICIENCY: int = 85
    RESTING_HR: int = 60
    ELEVATION_BPM: int = 20
    MIN_ELEVATED_MINUTES: int = 20
    WINDOW_BEFORE_MINS: int = 5
    WINDOW_AFTER_MINS: int = 35

    @classmethod
    def classify_sleep(cls, duration_mins: float, efficiency: float) -> str:
        """Return ``rest``, ``push`` or ``normal`` from last night's sleep."""
        if duration_mins < cls.REST_SLEEP_MINS or efficiency < cls.REST_EFFICIENCY:
            return "rest"
        if duration_mins >= cls.PUSH_SLEEP_MINS and efficiency >= cls.PUSH_EFFICIENCY:
            return "push"
        return "normal"

    @staticmethod
    def _sample_time(day: datetime.date, value: str) -> datetime.datetime:
        parts = [int(p) for p in value.split(":")]
        while len(parts) < 3:
            parts.append(0)
        return datetime.datetime.combine(day, datetime.time(*parts[:3]))

    @classmethod
    def elevated_minutes(
        cls,
        samples: Iterable[dict],
        completed_at: datetime.datetime,
        resting_hr: int | None = None,
    ) -> int:
        """Count samples around ``completed_at`` at or above the elevated threshold.

        ``samples`` are ``{"time": "HH:MM[:SS]", "value": bpm}`` entries for the
        day of the workout.
        """
        threshold = (resting_hr or cls.RESTING_HR) + cls.ELEVATION_BPM
        start = completed_at - datetime.timedelta(minutes=cls.WINDOW_BEFORE_MINS)
        end = completed_at + datetime.timedelta(minutes=cls.WINDOW_AFTER_MINS)
        count = 0
        for sample in samples:
            moment = cls._sample_time(completed_at.date(), str(sample["time"]))
            if start <= moment <= end and float(sample["value"]) >= threshold:
                count += 1
        return count

    @classmethod
    def verify_heart_rate(
        cls,
        samples: Iterable[dict],
        completed_at: datetime.datetime,
        resting_hr: int | None = None,
    ) -> bool:
        return (
            cls.elevated_minutes(samples, completed_at, resting_hr)
            >= cls.MIN_ELEVATED_MINUTES
        )
