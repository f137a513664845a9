from __future__ import annotations
import datetime
import logging
import zlib
from typing import Protocol

from db import (
    UserRepository,
    SentNotificationRepository,
    WorkoutRepository,
    WearableDailyRepository,
    NOTIFICATION_KINDS,
)
from algorithms.calendar_tools import CalendarTools
from algorithms.recovery import RecoveryTools
from config import WORKOUT_WINDOW_START_HOUR, WORKOUT_WINDOW_END_HOUR
from recommendation_service import RecommendationService
from stats_service import StatsService

logger = logging.getLogger(__name__)


class Messenger(Protocol):
    def send_message(self, chat_id: str, text: str) -> bool: ...


class WearableProvider(Protocol):
    def sleep_summary(self, access_token: str, date: str) -> dict | None: ...

    def daily_activity(self, access_token: str, date: str) -> dict | None:
        """``steps``, ``active_minutes`` and ``resting_hr`` for ``date``."""
        ...


class CalendarProvider(Protocol):
    def free_slots(self, api_key: str, day: datetime.date) -> list: ...

    def bookings_today(self, api_key: str, day: datetime.date) -> list[datetime.datetime]: ...


MORNING_MESSAGES = [
    "Show up today and the rest of the week gets easier.",
    "You don't need a perfect session. You need a finished one.",
    "Consistency beats intensity. Go collect another rep.",
    "The goal weight doesn't care about excuses. Neither do you.",
    "One session closer than yesterday.",
    "Make the first hard choice of the day the gym.",
    "Yesterday's effort got you here. Today's gets you further.",
    "Habits are built on ordinary days like this one.",
    "Thirty minutes. That's all it takes to keep the streak alive.",
    "Future you is counting on present you.",
    "Small plates add up to big numbers.",
    "Train like the weekend depends on it. It does.",
]

PUMP_UP_MESSAGES = [
    "Thirty minutes to go. Water bottle, shoes, playlist.",
    "Warm-up starts soon. Get your head in the room.",
    "Half an hour out. Decide now that you're finishing every set.",
    "Almost time. The bar is waiting.",
    "Get moving. This one counts toward the week.",
    "The hardest part is the walk to the gym. Start it now.",
    "You booked it for a reason. Go keep the appointment.",
    "Thirty minutes until you beat last week's numbers.",
]


class NotificationService:
    """Once-a-day nudges and the scheduled notification jobs."""

    MORNING_HOURS = (7, 9)
    PUMP_UP_LEAD = datetime.timedelta(minutes=30)

    def __init__(
        self,
        user_repo: UserRepository,
        sent_repo: SentNotificationRepository,
        workout_repo: WorkoutRepository,
        wearable_repo: WearableDailyRepository,
        stats: StatsService,
        recommender: RecommendationService,
        messenger: Messenger,
        wearable: WearableProvider | None = None,
        calendar: CalendarProvider | None = None,
        calendar_api_key: str = "",
    ) -> None:
        self.users = user_repo
        self.sent = sent_repo
        self.workouts = workout_repo
        self.wearables = wearable_repo
        self.stats = stats
        self.recommender = recommender
        self.messenger = messenger
        self.wearable = wearable
        self.calendar = calendar
        self.calendar_api_key = calendar_api_key

    def today(self) -> str:
        return self.stats.now().date().isoformat()

    def was_sent_today(self, user_id: int, kind: str) -> bool:
        return self.sent.exists(user_id, self.today(), kind)

    def mark_sent(self, user_id: int, kind: str) -> None:
        self.sent.mark(
            user_id, self.today(), kind, CalendarTools.to_timestamp(self.stats.now())
        )

    def send_once(self, user_id: int, chat_id: str, kind: str, text: str) -> bool:
        """Send ``text`` unless ``kind`` already went to this user today.

        The marker is stored only when the messenger accepted the message, so
        a rejected or failed send is retried on the next run. A crash between
        the send and the marker write can repeat that one message.
        """
        if kind not in NOTIFICATION_KINDS:
            raise ValueError("invalid notification kind")
        if self.was_sent_today(user_id, kind):
            return False
        if not self.messenger.send_message(chat_id, text):
            return False
        self.mark_sent(user_id, kind)
        logger.info("sent %s notification to user %s", kind, user_id)
        return True

    def inspiration(self, category: str, day: str | None = None) -> str:
        """Stable message for ``(day, category)``."""
        pool = MORNING_MESSAGES if category == "morning" else PUMP_UP_MESSAGES
        key = f"{day or self.today()}:{category}"
        return pool[zlib.crc32(key.encode("utf-8")) % len(pool)]

    def _window(self) -> tuple[int, int]:
        return (
            self.stats.settings.get_int("workout_window_start_hour", WORKOUT_WINDOW_START_HOUR),
            self.stats.settings.get_int("workout_window_end_hour", WORKOUT_WINDOW_END_HOUR),
        )

    def _api_key(self, user: dict) -> str:
        return user.get("calendar_api_key") or self.calendar_api_key

    def _daily_for_user(self, user: dict, now: datetime.datetime) -> int:
        uid = user["id"]
        chat_id = user["telegram_chat_id"]
        next_type = self.recommender.next_workout_type(uid)
        week = self.stats.week_progress(uid)
        planned = self.stats.planned_workouts()
        minimum = self.stats.min_workouts()
        start, end = CalendarTools.day_bounds(now)
        worked_today = self.workouts.count_completed(uid, start, end) > 0
        api_key = self._api_key(user)
        window_start, window_end = self._window()
        sent = 0

        if self.MORNING_HOURS[0] <= now.hour < self.MORNING_HOURS[1]:
            slots = []
            if self.calendar is not None and api_key:
                slots = self.calendar.free_slots(api_key, now.date())
            hint = "has free slots." if slots else "check your calendar."
            text = (
                f"{self.inspiration('morning')}\n\n"
                f"Today: Workout {next_type}. This week: {week['workouts_completed']}/{planned} "
                f"planned (min {minimum}). Your workout window "
                f"({window_start}:00-{window_end}:00) {hint}"
            )
            sent += self.send_once(uid, chat_id, "morning", text)

        if self.calendar is not None and api_key and not worked_today:
            for booked in self.calendar.bookings_today(api_key, now.date()):
                if booked - self.PUMP_UP_LEAD <= now < booked:
                    text = f"{self.inspiration('pumpup')}\nWorkout {next_type} at {booked:%H:%M}."
                    sent += self.send_once(uid, chat_id, "pumpup", text)
                    break

        if worked_today:
            return sent
        if window_start <= now.hour < window_start + 1:
            text = (
                f"Your workout window is open ({window_start}:00-{window_end}:00). "
                f"Time for Workout {next_type}?"
            )
            sent += self.send_once(uid, chat_id, "window", text)
        elif window_end - 1 <= now.hour < window_end:
            text = (
                f"Last call: get your workout in before {window_end}:00! "
                f"{week['workouts_completed']}/{planned} this week (need {minimum} for goal)."
            )
            sent += self.send_once(uid, chat_id, "lastcall", text)
        return sent

    def run_daily(self) -> dict:
        """Morning, pump-up, window and last-call nudges for linked users."""
        now = self.stats.now()
        users = self.users.fetch_with_chat()
        sent = errors = 0
        for user in users:
            try:
                sent += self._daily_for_user(user, now)
            except Exception:
                errors += 1
                logger.exception("daily notifications failed for user %s", user["id"])
        return {"ok": True, "users": len(users), "sent": sent, "errors": errors}

    def run_rest_day(self) -> dict:
        """Classify last night's sleep and suggest a rest or push day."""
        if self.wearable is None:
            return {"ok": True, "users": 0, "sent": 0, "errors": 0}
        yesterday = (self.stats.now() - datetime.timedelta(days=1)).date().isoformat()
        users = [
            u for u in self.users.fetch_with_chat() if u["wearable_access_token"]
        ]
        sent = errors = 0
        for user in users:
            try:
                sleep = self.wearable.sleep_summary(user["wearable_access_token"], yesterday)
                if not sleep:
                    continue
                minutes = sleep.get("minutes_asleep", 0)
                efficiency = sleep.get("efficiency", 0)
                rec = RecoveryTools.classify_sleep(minutes, efficiency)
                self.wearables.upsert(
                    user["id"],
                    yesterday,
                    sleep_duration_mins=minutes,
                    sleep_efficiency=efficiency,
                    recovery_recommendation=rec,
                )
                if rec == "rest":
                    text = (
                        "Rest day suggested: your sleep was short or low quality. "
                        "Try light stretching or a walk instead of a full workout."
                    )
                elif rec == "push":
                    text = "You slept well. Good day to push a bit harder in your workout!"
                else:
                    continue
                sent += self.send_once(user["id"], user["telegram_chat_id"], "restday", text)
            except Exception:
                errors += 1
                logger.exception("rest-day check failed for user %s", user["id"])
        return {"ok": True, "users": len(users), "sent": sent, "errors": errors}

    def run_wearable_sync(self) -> dict:
        """Store yesterday's activity and sleep for every user with a wearable."""
        if self.wearable is None:
            return {"ok": True, "users": 0, "synced": 0, "errors": 0}
        yesterday = (self.stats.now() - datetime.timedelta(days=1)).date().isoformat()
        users = [u for u in self.users.fetch_all_users() if u["wearable_access_token"]]
        synced = errors = 0
        for user in users:
            try:
                token = user["wearable_access_token"]
                activity = self.wearable.daily_activity(token, yesterday)
                sleep = self.wearable.sleep_summary(token, yesterday)
                if not activity and not sleep:
                    continue
                fields = {}
                if activity:
                    for key in ("steps", "active_minutes", "resting_hr"):
                        if activity.get(key) is not None:
                            fields[key] = activity[key]
                if sleep:
                    minutes = sleep.get("minutes_asleep", 0)
                    efficiency = sleep.get("efficiency", 0)
                    fields.update(
                        sleep_duration_mins=minutes,
                        sleep_efficiency=efficiency,
                        recovery_recommendation=RecoveryTools.classify_sleep(minutes, efficiency),
                    )
                self.wearables.upsert(user["id"], yesterday, **fields)
                synced += 1
            except Exception:
                errors += 1
                logger.exception("wearable sync failed for user %s", user["id"])
        return {"ok": True, "users": len(users), "synced": synced, "errors": errors}

    def weekly_summary(self, user_id: int) -> str:
        now = self.stats.now()
        last_week = CalendarTools.week_start(now) - datetime.timedelta(days=7)
        start, end = CalendarTools.week_bounds(last_week)
        count = self.workouts.count_completed(user_id, start, end)
        minimum = self.stats.min_workouts()
        dash = self.stats.dashboard(user_id, self.recommender.next_workout_type(user_id))
        lines = [
            "Week recap:",
            f"Workouts: {count}/{self.stats.planned_workouts()} planned",
            (
                f"Alcohol ban active this weekend (fewer than {minimum} workouts)."
                if count < minimum
                else "No punishment."
            ),
            f"Weight: {dash['current_weight']}kg -> goal {dash['target_weight']}kg",
            f"Level {dash['level']} - {dash['xp']} XP",
        ]
        return "\n".join(lines)

    def run_weekly(self) -> dict:
        if self.stats.now().weekday() != 6:
            return {"ok": True, "message": "Only run on Sunday"}
        users = self.users.fetch_with_chat()
        sent = errors = 0
        for user in users:
            try:
                text = self.weekly_summary(user["id"])
                sent += self.send_once(user["id"], user["telegram_chat_id"], "summary", text)
            except Exception:
                errors += 1
                logger.exception("weekly recap failed for user %s", user["id"])
        return {"ok": True, "users": len(users), "sent": sent, "errors": errors}

    def run_tick(self) -> dict:
        """Run the daily job then the rest-day job, isolating their failures."""
        results: dict[str, dict] = {}
        for name, job in (("daily", self.run_daily), ("rest_day", self.run_rest_day)):
            try:
                results[name] = job()
            except Exception as e:
                logger.exception("%s job failed", name)
                results[name] = {"error": str(e)}
        return {"ok": True, "results": results}
