import datetime
import logging
import zlib
from db import (
    AchievementRepository,
    UserRepository,
    WorkoutRepository,
    WeightLogRepository,
    WaistLogRepository,
    ExerciseLogRepository,
    WeeklyStatRepository,
)
from algorithms.calendar_tools import CalendarTools
from stats_service import StatsService

logger = logging.getLogger(__name__)


ACHIEVEMENTS = {
    "first_blood": ("First Blood", 50),
    "consistency_king": ("Consistency King", 100),
    "scale_warrior": ("Scale Warrior", 50),
    "first_kilo_down": ("First Kilo Down", 100),
    "down_5": ("Down 5", 200),
    "goal_crusher": ("Goal Crusher", 1000),
    "healthy_zone": ("Healthy Zone", 150),
}

QUESTS = [
    ("try_new_exercise", "Try a new exercise", "Complete an exercise you haven't done before"),
    ("beat_last_week", "Beat last week's weight", "Increase weight on any exercise vs last week"),
    ("log_weight_2x", "Log weight twice", "Log your body weight at least 2 times this week"),
    ("complete_3_workouts", "Hit the minimum", "Complete at least 3 workouts this week"),
    ("no_skips", "Full commitment", "Don't skip any warm-up exercises this week"),
    ("log_waist", "Measure up", "Log a waist measurement this week"),
]


class GamificationService:
    """Award achievements and evaluate the weekly quests."""

    QUEST_XP = 30
    QUESTS_PER_WEEK = 3
    CONSISTENCY_WEEKS = 4
    SCALE_WARRIOR_LOGS = 8
    HEALTHY_WAIST_CM = 90.0

    def __init__(
        self,
        achievement_repo: AchievementRepository,
        user_repo: UserRepository,
        workout_repo: WorkoutRepository,
        weight_repo: WeightLogRepository,
        waist_repo: WaistLogRepository,
        exercise_log_repo: ExerciseLogRepository,
        weekly_repo: WeeklyStatRepository,
        stats: StatsService,
    ) -> None:
        self.repo = achievement_repo
        self.users = user_repo
        self.workouts = workout_repo
        self.weights = weight_repo
        self.waists = waist_repo
        self.exercise_logs = exercise_log_repo
        self.weekly = weekly_repo
        self.stats = stats

    def _award(self, user_id: int, kind: str, have: set[str]) -> str | None:
        if kind in have:
            return None
        self.repo.add(user_id, kind, CalendarTools.to_timestamp(self.stats.now()))
        self.stats.add_xp(user_id, ACHIEVEMENTS[kind][1])
        have.add(kind)
        logger.info("user %s earned %s", user_id, kind)
        return kind

    def _consecutive_weeks(self, user_id: int) -> int:
        check = CalendarTools.week_start(self.stats.now())
        streak = 0
        for _ in range(self.CONSISTENCY_WEEKS):
            start, end = CalendarTools.week_bounds(check)
            if self.workouts.count_completed(user_id, start, end) < self.stats.min_workouts():
                break
            streak += 1
            check -= datetime.timedelta(days=7)
        return streak

    def check_achievements(self, user_id: int, event: str) -> list[str]:
        """Award every achievement newly earned by ``event``.

        ``event`` is ``workout``, ``weight`` or ``waist``. Returns the types
        awarded by this call.
        """
        if event not in ("workout", "weight", "waist"):
            raise ValueError("invalid achievement event")
        have = self.repo.fetch_types(user_id)
        awarded: list[str | None] = []

        if event == "workout":
            if self.workouts.count_completed(user_id) >= 1:
                awarded.append(self._award(user_id, "first_blood", have))
            if (
                "consistency_king" not in have
                and self._consecutive_weeks(user_id) >= self.CONSISTENCY_WEEKS
            ):
                awarded.append(self._award(user_id, "consistency_king", have))

        if event == "weight":
            if self.weights.count(user_id) >= self.SCALE_WARRIOR_LOGS:
                awarded.append(self._award(user_id, "scale_warrior", have))
            user = self.users.fetch_detail(user_id)
            start = user["starting_weight"] if user["starting_weight"] is not None else 82.0
            current = user["current_weight"] if user["current_weight"] is not None else start
            target = user["target_weight"] if user["target_weight"] is not None else 75.0
            if start - current >= 1:
                awarded.append(self._award(user_id, "first_kilo_down", have))
            if start - current >= 5:
                awarded.append(self._award(user_id, "down_5", have))
            if current <= target:
                awarded.append(self._award(user_id, "goal_crusher", have))

        if event == "waist":
            latest = self.waists.fetch_latest(user_id)
            if latest is not None and latest < self.HEALTHY_WAIST_CM:
                awarded.append(self._award(user_id, "healthy_zone", have))

        return [a for a in awarded if a]

    def achievements(self, user_id: int) -> list[dict]:
        return [
            {
                "type": row["achievement_type"],
                "label": ACHIEVEMENTS.get(row["achievement_type"], (row["achievement_type"], 0))[0],
                "awarded_at": row["awarded_at"],
            }
            for row in self.repo.fetch_for_user(user_id)
        ]

    @classmethod
    def weekly_quest_ids(cls, week_start: datetime.date) -> list[str]:
        """Pick this week's quests; the choice depends only on ``week_start``."""
        seed = week_start.isoformat()
        ordered = sorted(
            QUESTS, key=lambda q: zlib.crc32(f"{q[0]}{seed}".encode("utf-8"))
        )
        return [q[0] for q in ordered[: cls.QUESTS_PER_WEEK]]

    def _quest_completed(
        self, user_id: int, qid: str, week_start: datetime.date
    ) -> bool:
        start, _end = CalendarTools.week_bounds(week_start)
        last_start, _ = CalendarTools.week_bounds(week_start - datetime.timedelta(days=7))
        if qid == "try_new_exercise":
            before = {l["exercise_id"] for l in self.exercise_logs.fetch_for_user(user_id, end=start)}
            return any(
                l["exercise_id"] not in before
                for l in self.exercise_logs.fetch_for_user(user_id, start=start)
            )
        if qid == "beat_last_week":
            best: dict[int, float] = {}
            for l in self.exercise_logs.fetch_for_user(user_id, start=last_start, end=start):
                best[l["exercise_id"]] = max(best.get(l["exercise_id"], 0.0), l["weight_kg"])
            return any(
                l["exercise_id"] in best and l["weight_kg"] > best[l["exercise_id"]]
                for l in self.exercise_logs.fetch_for_user(user_id, start=start)
            )
        if qid == "log_weight_2x":
            return self.weights.count(user_id, since=start) >= 2
        if qid == "complete_3_workouts":
            return self.workouts.count_completed(user_id, start=start) >= 3
        if qid == "log_waist":
            return self.waists.count(user_id, since=start) >= 1
        # warm-up skips are not recorded, so no_skips never completes
        return False

    def weekly_quests(self, user_id: int) -> list[dict]:
        week_start = CalendarTools.week_start(self.stats.now())
        defs = {q[0]: q for q in QUESTS}
        return [
            {
                "id": qid,
                "title": defs[qid][1],
                "description": defs[qid][2],
                "completed": self._quest_completed(user_id, qid, week_start),
                "xp": self.QUEST_XP,
            }
            for qid in self.weekly_quest_ids(week_start)
        ]

    def award_quest_xp(self, user_id: int) -> int:
        """Grant XP for quests completed since the last award; return the XP added."""
        quests = self.weekly_quests(user_id)
        completed = sum(1 for q in quests if q["completed"])
        week = self.stats.week_key(self.stats.now())
        row = self.weekly.fetch(user_id, week)
        already = row["quests_completed"] if row else 0
        if completed <= already:
            return 0
        xp = (completed - already) * self.QUEST_XP
        self.weekly.set_quests(user_id, week, completed, xp)
        return xp
