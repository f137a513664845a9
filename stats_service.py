from __future__ import annotations
import datetime
import math
import logging
from collections import OrderedDict
from typing import Callable

from config import DEFAULT_SCHEDULE_TIMEZONE, MIN_WORKOUTS_FOR_GOAL, PLANNED_WORKOUTS_PER_WEEK
from db import (
    UserRepository,
    WorkoutRepository,
    WeeklyStatRepository,
    WeightLogRepository,
    WaistLogRepository,
    ExerciseLogRepository,
    WearableDailyRepository,
    SettingsRepository,
    WORKOUT_TYPES,
)
from algorithms.calendar_tools import CalendarTools
from algorithms.math_tools import MathTools
from algorithms.progression import ProgressionRules

logger = logging.getLogger(__name__)


class StatsService:
    """Weekly bookkeeping, XP totals, streaks and progress analytics."""

    WORKOUT_XP = 50
    STREAK_MAX_WEEKS = 52
    HISTORY_WEEKS = 12
    ANALYTICS_RANGES = {"1W": 7, "1M": 30, "3M": 90, "6M": 180, "1Y": 365}

    def __init__(
        self,
        user_repo: UserRepository,
        workout_repo: WorkoutRepository,
        weekly_repo: WeeklyStatRepository,
        weight_repo: WeightLogRepository,
        waist_repo: WaistLogRepository,
        exercise_log_repo: ExerciseLogRepository,
        wearable_repo: WearableDailyRepository,
        settings_repo: SettingsRepository,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.users = user_repo
        self.workouts = workout_repo
        self.weekly = weekly_repo
        self.weights = weight_repo
        self.waists = waist_repo
        self.exercise_logs = exercise_log_repo
        self.wearables = wearable_repo
        self.settings = settings_repo
        self._clock = clock

    def timezone(self) -> str:
        return self.settings.get_text("timezone", DEFAULT_SCHEDULE_TIMEZONE)

    def now(self) -> datetime.datetime:
        """Current naive local time in the schedule timezone."""
        if self._clock is not None:
            return self._clock()
        return CalendarTools.local_now(self.timezone())

    def min_workouts(self) -> int:
        return self.settings.get_int("min_workouts_for_goal", MIN_WORKOUTS_FOR_GOAL)

    def planned_workouts(self) -> int:
        return self.settings.get_int(
            "planned_workouts_per_week", PLANNED_WORKOUTS_PER_WEEK
        )

    @staticmethod
    def week_key(moment: datetime.date | datetime.datetime) -> str:
        return CalendarTools.week_start(moment).isoformat()

    def _week_count(self, user_id: int, week_start: datetime.date) -> int:
        row = self.weekly.fetch(user_id, week_start.isoformat())
        if row is not None:
            return int(row["workouts_completed"])
        start, end = CalendarTools.week_bounds(week_start)
        return self.workouts.count_completed(user_id, start, end)

    def record_workout(
        self, user_id: int, completed_at: datetime.datetime | None = None
    ) -> dict:
        """Refresh the week row after a completed workout and grant its XP."""
        moment = completed_at or self.now()
        start, end = CalendarTools.week_bounds(moment)
        count = self.workouts.count_completed(user_id, start, end)
        punished = count < self.min_workouts()
        self.weekly.record_workouts(
            user_id, self.week_key(moment), count, punished, self.WORKOUT_XP
        )
        logger.info(
            "user %s has %s workouts in week of %s", user_id, count, self.week_key(moment)
        )
        return self.weekly.fetch(user_id, self.week_key(moment))

    def add_xp(self, user_id: int, xp: int, moment: datetime.datetime | None = None) -> None:
        if xp <= 0:
            return
        self.weekly.add_xp(user_id, self.week_key(moment or self.now()), xp)

    def total_xp(self, user_id: int) -> int:
        return self.weekly.total_xp(user_id)

    def level(self, user_id: int) -> int:
        return MathTools.level_for_xp(self.total_xp(user_id))

    def streak(self, user_id: int, weeks: int | None = None) -> int:
        """Consecutive successful weeks counting back from the current one."""
        limit = weeks or self.STREAK_MAX_WEEKS
        check = CalendarTools.week_start(self.now())
        minimum = self.min_workouts()
        streak = 0
        for _ in range(limit):
            if self._week_count(user_id, check) < minimum:
                break
            streak += 1
            check -= datetime.timedelta(days=7)
        return streak

    def week_progress(self, user_id: int) -> dict:
        now = self.now()
        row = self.weekly.fetch(user_id, self.week_key(now))
        if row is not None:
            count = int(row["workouts_completed"])
        else:
            start, end = CalendarTools.week_bounds(now)
            count = self.workouts.count_completed(user_id, start, end)
        return {
            "week_start": self.week_key(now),
            "workouts_completed": count,
            "punishment_active": count < self.min_workouts(),
        }

    def weights_for(self, user_id: int) -> dict:
        user = self.users.fetch_detail(user_id)
        starting = (
            user["starting_weight"]
            if user["starting_weight"] is not None
            else ProgressionRules.DEFAULT_BODY_WEIGHT
        )
        current = ProgressionRules.body_weight(user["current_weight"], starting)
        target = user["target_weight"] if user["target_weight"] is not None else 75.0
        return {
            "current_weight": current,
            "target_weight": target,
            "starting_weight": starting,
        }

    def progress_percentage(self, user_id: int) -> int:
        w = self.weights_for(user_id)
        return MathTools.progress_percentage(
            w["starting_weight"], w["current_weight"], w["target_weight"]
        )

    def dashboard(self, user_id: int, next_workout_type: str = "A") -> dict:
        week = self.week_progress(user_id)
        xp = self.total_xp(user_id)
        data = {
            "workouts_this_week": week["workouts_completed"],
            "planned_workouts_per_week": self.planned_workouts(),
            "min_workouts_for_goal": self.min_workouts(),
            "punishment_active": week["punishment_active"],
            "xp": xp,
            "level": MathTools.level_for_xp(xp),
            "streak": self.streak(user_id),
            "next_workout_type": next_workout_type,
        }
        data.update(self.weights_for(user_id))
        data["progress_percentage"] = self.progress_percentage(user_id)
        return data

    def workout_history(self, user_id: int, weeks: int | None = None) -> list[dict]:
        """Completed workout counts grouped by week start, oldest first."""
        by_week: dict[str, int] = {}
        for w in self.workouts.fetch_completed(user_id):
            key = self.week_key(datetime.datetime.fromisoformat(w["completed_at"]))
            by_week[key] = by_week.get(key, 0) + 1
        rows = [{"week": k, "count": v} for k, v in sorted(by_week.items())]
        return rows[-(weeks or self.HISTORY_WEEKS):]

    def analytics(self, user_id: int, range_key: str = "3M") -> dict:
        """Trends and summary figures for the last ``range_key`` period."""
        now = self.now()
        days = self.ANALYTICS_RANGES.get(range_key, self.ANALYTICS_RANGES["3M"])
        since = CalendarTools.to_timestamp(now - datetime.timedelta(days=days))

        weight_logs = self.weights.fetch_history(user_id, start=since)
        averages = MathTools.moving_average([l["weight_kg"] for l in weight_logs], 7)
        weight_trend = [
            {"date": l["logged_at"][:10], "weight": l["weight_kg"], "ma": ma}
            for l, ma in zip(weight_logs, averages)
        ]
        waist_trend = [
            {"date": l["logged_at"][:10], "waist": l["waist_cm"]}
            for l in reversed(self.waists.fetch_history(user_id, start=since))
        ]

        workouts = self.workouts.fetch_completed(user_id, start=since)
        per_week: "OrderedDict[str, dict]" = OrderedDict()
        type_counts = {t: 0 for t in WORKOUT_TYPES}
        for w in workouts:
            key = self.week_key(datetime.datetime.fromisoformat(w["completed_at"]))
            entry = per_week.setdefault(key, {"week": key, "total": 0, **{t: 0 for t in WORKOUT_TYPES}})
            entry["total"] += 1
            entry[w["workout_type"]] += 1
            type_counts[w["workout_type"]] += 1

        progress: dict[str, list[dict]] = {}
        for log in self.exercise_logs.fetch_for_user(user_id, start=since):
            progress.setdefault(log["name"], []).append(
                {"date": log["completed_at"][:10], "weight": log["weight_kg"]}
            )
        top = sorted(progress.items(), key=lambda kv: len(kv[1]), reverse=True)[:6]

        all_workouts = self.workouts.fetch_completed(user_id)
        day_counts: dict[str, int] = {}
        for w in all_workouts:
            day_counts[w["completed_at"][:10]] = day_counts.get(w["completed_at"][:10], 0) + 1
        heatmap = []
        for offset in range(364, -1, -1):
            day = (now - datetime.timedelta(days=offset)).date().isoformat()
            heatmap.append({"date": day, "count": day_counts.get(day, 0)})

        weights = self.weights_for(user_id)
        lost = weights["starting_weight"] - weights["current_weight"]
        pct = MathTools.clamp(self.progress_percentage(user_id), 0, 100)
        return {
            "weight_trend": weight_trend,
            "waist_trend": waist_trend,
            "workouts_per_week": list(per_week.values())[-self.HISTORY_WEEKS:],
            "workout_types": type_counts,
            "top_exercises": [{"name": n, "data": d} for n, d in top],
            "wearable_trend": self.wearables.fetch_history(user_id, start=since[:10]),
            "heatmap": heatmap,
            "stats": {
                "total_workouts": len(all_workouts),
                "weight_lost": round(lost, 1),
                "progress_percentage": int(pct),
                "streak": self.streak(user_id),
                "projected_weeks_left": self._projected_weeks(user_id, lost, weights),
                **weights,
            },
        }

    def _projected_weeks(self, user_id: int, lost: float, weights: dict) -> int | None:
        if lost <= 0:
            return None
        user = self.users.fetch_detail(user_id)
        started = datetime.datetime.fromisoformat(user["created_at"])
        elapsed = max(1, (self.now() - started).days // 7)
        rate = lost / elapsed
        remaining = weights["current_weight"] - weights["target_weight"]
        if remaining <= 0 or rate <= 0:
            return None
        return math.ceil(remaining / rate)
