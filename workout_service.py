from __future__ import annotations
import datetime
import logging
from db import (
    UserRepository,
    ExerciseRepository,
    ExercisePreferenceRepository,
    InjuryRepository,
    WorkoutRepository,
    ExerciseLogRepository,
    WeightLogRepository,
    WaistLogRepository,
    WearableDailyRepository,
)
from algorithms.calendar_tools import CalendarTools
from algorithms.progression import ProgressionRules
from algorithms.recovery import RecoveryTools
from gamification_service import GamificationService
from recommendation_service import RecommendationService
from stats_service import StatsService

logger = logging.getLogger(__name__)


class WorkoutService:
    """Record workouts and body measurements and apply their side effects."""

    WEIGHT_XP = 10
    WEIGHT_RANGE = (30.0, 200.0)
    WAIST_RANGE = (50.0, 200.0)

    def __init__(
        self,
        user_repo: UserRepository,
        exercise_repo: ExerciseRepository,
        preference_repo: ExercisePreferenceRepository,
        injury_repo: InjuryRepository,
        workout_repo: WorkoutRepository,
        exercise_log_repo: ExerciseLogRepository,
        weight_repo: WeightLogRepository,
        waist_repo: WaistLogRepository,
        stats: StatsService,
        gamification: GamificationService,
        recommender: RecommendationService,
        wearable_repo: WearableDailyRepository | None = None,
    ) -> None:
        self.users = user_repo
        self.exercises = exercise_repo
        self.preferences = preference_repo
        self.injuries = injury_repo
        self.workouts = workout_repo
        self.exercise_logs = exercise_log_repo
        self.weights = weight_repo
        self.waists = waist_repo
        self.stats = stats
        self.gamification = gamification
        self.recommender = recommender
        self.wearables = wearable_repo

    def _require_user(self, user_id: int) -> dict:
        return self.users.fetch_detail(user_id)

    def progress_exercise(
        self,
        user_id: int,
        exercise_id: int,
        weight_kg: float,
        feedback: str,
        enjoyed: bool,
        performed_at: str,
    ) -> dict:
        """Apply the overload rules for one logged exercise and store the result."""
        exercise = self.exercises.fetch_detail(exercise_id)
        pref = self.preferences.fetch(user_id, exercise_id)
        weight, sessions = ProgressionRules.next_weight(
            weight_kg,
            feedback,
            exercise["weight_increment_kg"],
            pref["current_weight_kg"] if pref else None,
            pref["sessions_at_current_weight"] if pref else 0,
        )
        self.preferences.record_session(
            user_id,
            exercise_id,
            blacklisted=not enjoyed,
            current_weight_kg=weight,
            sessions_at_current_weight=sessions,
            performed_at=performed_at,
        )
        return {
            "exercise_id": exercise_id,
            "next_weight_kg": weight,
            "sessions_at_current_weight": sessions,
            "blacklisted": not enjoyed,
        }

    def complete_workout(
        self,
        user_id: int,
        workout_type: str,
        is_express: bool,
        exercises: list[dict],
    ) -> dict:
        """Store a finished session with its exercise logs.

        Each entry of ``exercises`` holds ``exercise_id``, ``weight_kg``,
        ``sets_completed``, ``difficulty_feedback`` and ``enjoyed``.
        """
        self._require_user(user_id)
        for entry in exercises:
            self.exercises.fetch_detail(entry["exercise_id"])
        now = self.stats.now()
        completed_at = CalendarTools.to_timestamp(now)
        workout_id = self.workouts.create(
            user_id, workout_type, completed_at, is_express=is_express
        )
        progression = []
        for entry in exercises:
            self.exercise_logs.add(
                workout_id,
                entry["exercise_id"],
                entry["sets_completed"],
                entry["weight_kg"],
                entry["difficulty_feedback"],
                entry.get("enjoyed", True),
            )
            progression.append(
                self.progress_exercise(
                    user_id,
                    entry["exercise_id"],
                    entry["weight_kg"],
                    entry["difficulty_feedback"],
                    entry.get("enjoyed", True),
                    completed_at,
                )
            )
        week = self.stats.record_workout(user_id, now)
        awarded = self.gamification.check_achievements(user_id, "workout")
        logger.info("user %s completed workout %s (%s)", user_id, workout_id, workout_type)
        return {
            "workout_id": workout_id,
            "workouts_this_week": week["workouts_completed"],
            "punishment_active": week["punishment_active"],
            "progression": progression,
            "achievements": awarded,
        }

    def quick_complete(self, user_id: int) -> dict:
        """Log a full workout of the next type without exercise detail."""
        self._require_user(user_id)
        workout_type = self.recommender.next_workout_type(user_id)
        now = self.stats.now()
        workout_id = self.workouts.create(
            user_id, workout_type, CalendarTools.to_timestamp(now)
        )
        week = self.stats.record_workout(user_id, now)
        self.gamification.check_achievements(user_id, "workout")
        return {
            "workout_id": workout_id,
            "workout_type": workout_type,
            "workouts_this_week": week["workouts_completed"],
            "punishment_active": week["punishment_active"],
        }

    def stored_resting_hr(self, user_id: int, day: datetime.date) -> int | None:
        """Latest synced resting heart rate from the week up to ``day``."""
        if self.wearables is None:
            return None
        start = (day - datetime.timedelta(days=7)).isoformat()
        rows = [
            r
            for r in self.wearables.fetch_history(user_id, start=start)
            if r["date"] <= day.isoformat() and r["resting_hr"] is not None
        ]
        return int(rows[-1]["resting_hr"]) if rows else None

    def verify_workout(
        self,
        user_id: int,
        workout_id: int,
        samples: list[dict],
        resting_hr: int | None = None,
    ) -> bool:
        """Mark the workout verified when the heart-rate samples show real effort."""
        workout = self.workouts.fetch_detail(workout_id)
        if workout["user_id"] != user_id:
            raise ValueError("workout not found")
        if not workout["completed_at"]:
            return False
        completed = datetime.datetime.fromisoformat(workout["completed_at"])
        if resting_hr is None:
            resting_hr = self.stored_resting_hr(user_id, completed.date())
        verified = RecoveryTools.verify_heart_rate(samples, completed, resting_hr)
        if verified:
            self.workouts.set_verified(workout_id)
        return verified

    def log_weight(self, user_id: int, weight_kg: float) -> dict:
        low, high = self.WEIGHT_RANGE
        if not low <= weight_kg <= high:
            raise ValueError(f"weight must be between {low:g} and {high:g} kg")
        self._require_user(user_id)
        log_id = self.weights.log(
            user_id, weight_kg, CalendarTools.to_timestamp(self.stats.now())
        )
        self.users.set_current_weight(user_id, weight_kg)
        self.stats.add_xp(user_id, self.WEIGHT_XP)
        awarded = self.gamification.check_achievements(user_id, "weight")
        return {"id": log_id, "achievements": awarded}

    def log_waist(self, user_id: int, waist_cm: float) -> dict:
        low, high = self.WAIST_RANGE
        if not low <= waist_cm <= high:
            raise ValueError(f"waist must be between {low:g} and {high:g} cm")
        self._require_user(user_id)
        log_id = self.waists.log(
            user_id, waist_cm, CalendarTools.to_timestamp(self.stats.now())
        )
        awarded = self.gamification.check_achievements(user_id, "waist")
        return {"id": log_id, "achievements": awarded}

    def report_injury(
        self, user_id: int, body_area: str, severity: str, notes: str | None = None
    ) -> int:
        self._require_user(user_id)
        return self.injuries.add(
            user_id,
            body_area,
            severity,
            notes,
            CalendarTools.to_timestamp(self.stats.now()),
        )

    def resolve_injury(self, user_id: int, injury_id: int) -> None:
        self.injuries.resolve(
            injury_id, user_id, CalendarTools.to_timestamp(self.stats.now())
        )
