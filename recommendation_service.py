from __future__ import annotations
import logging
from db import (
    UserRepository,
    ExerciseRepository,
    ExercisePreferenceRepository,
    InjuryRepository,
    WorkoutRepository,
    WORKOUT_TYPES,
)
from algorithms.progression import ProgressionRules

logger = logging.getLogger(__name__)


class RecommendationService:
    """Select the exercises of a session and recommend their weights."""

    EXPRESS_LIMIT = 3

    def __init__(
        self,
        user_repo: UserRepository,
        exercise_repo: ExerciseRepository,
        preference_repo: ExercisePreferenceRepository,
        injury_repo: InjuryRepository,
        workout_repo: WorkoutRepository,
    ) -> None:
        self.users = user_repo
        self.exercises = exercise_repo
        self.preferences = preference_repo
        self.injuries = injury_repo
        self.workouts = workout_repo

    def _body_weight(self, user_id: int) -> float:
        user = self.users.fetch_detail(user_id)
        return ProgressionRules.body_weight(
            user["current_weight"], user["starting_weight"]
        )

    def recommended_weight(self, user_id: int, exercise: dict) -> float:
        """Weight to prescribe for ``exercise``, preferring the stored progression."""
        pref = self.preferences.fetch(user_id, exercise["id"])
        if pref is not None and pref["current_weight_kg"] is not None:
            return float(pref["current_weight_kg"])
        return ProgressionRules.initial_weight(
            self._body_weight(user_id),
            exercise["base_weight_percent"],
            exercise["weight_increment_kg"],
        )

    @staticmethod
    def _usable(exercise: dict, blacklisted: set[int], injured: set[str]) -> bool:
        if exercise["id"] in blacklisted:
            return False
        return not any(a.lower() in injured for a in exercise["injury_areas"])

    def select_exercises(
        self, user_id: int, workout_type: str, express: bool = False
    ) -> list[dict]:
        """Return the ordered exercises of ``workout_type`` for ``user_id``.

        Blacklisted or injury-conflicting exercises are replaced by their
        first usable substitute or dropped. Express sessions stop after
        three exercises.
        """
        if workout_type not in WORKOUT_TYPES:
            raise ValueError("invalid workout type")
        if not self.users.exists(user_id):
            raise ValueError("user not found")
        blacklisted = self.preferences.blacklisted_ids(user_id)
        injured = self.injuries.active_areas(user_id)
        limit = self.EXPRESS_LIMIT if express else None

        chosen: list[dict] = []
        used: set[int] = set()
        for primary in self.exercises.fetch_for_type(workout_type):
            if limit is not None and len(chosen) >= limit:
                break
            pick = None
            if primary["id"] not in used and self._usable(primary, blacklisted, injured):
                pick = primary
            else:
                for sub_id in primary["substitute_ids"]:
                    if sub_id in used:
                        continue
                    try:
                        sub = self.exercises.fetch_detail(sub_id)
                    except ValueError:
                        logger.warning("substitute %s of %s missing", sub_id, primary["id"])
                        continue
                    if self._usable(sub, blacklisted, injured):
                        pick = sub
                        break
            if pick is None:
                logger.debug("dropping exercise %s for user %s", primary["name"], user_id)
                continue
            used.add(pick["id"])
            chosen.append(self._prescription(user_id, pick, substituted_for=primary))
        return chosen

    def _prescription(self, user_id: int, exercise: dict, substituted_for: dict) -> dict:
        return {
            "id": exercise["id"],
            "name": exercise["name"],
            "muscle_group": exercise["muscle_group"],
            "equipment": exercise["equipment"],
            "instructions": exercise["instructions"],
            "video_url": exercise["video_url"],
            "sets": exercise["sets"],
            "reps_min": exercise["reps_min"],
            "reps_max": exercise["reps_max"],
            "rest_secs": exercise["rest_secs"],
            "weight_increment_kg": exercise["weight_increment_kg"],
            "recommended_weight_kg": self.recommended_weight(user_id, exercise),
            "substitute_for": (
                substituted_for["id"] if substituted_for["id"] != exercise["id"] else None
            ),
        }

    def warm_up(self) -> list[dict]:
        return [
            {
                "id": e["id"],
                "name": e["name"],
                "instructions": e["instructions"],
                "reps_min": e["reps_min"],
                "reps_max": e["reps_max"],
            }
            for e in self.exercises.fetch_warm_ups()
        ]

    def next_workout_type(self, user_id: int) -> str:
        last = self.workouts.fetch_last(user_id)
        if last is None:
            return WORKOUT_TYPES[0]
        idx = WORKOUT_TYPES.index(last["workout_type"])
        return WORKOUT_TYPES[(idx + 1) % len(WORKOUT_TYPES)]

    def next_workout(self, user_id: int, express: bool = False) -> dict:
        workout_type = self.next_workout_type(user_id)
        return {
            "workout_type": workout_type,
            "is_express": express,
            "warm_up": self.warm_up(),
            "exercises": self.select_exercises(user_id, workout_type, express),
        }
