import datetime
import logging
from typing import Callable
from fastapi import (
    FastAPI,
    HTTPException,
    Body,
    APIRouter,
    Header,
    Depends,
    Query,
)
from config import APP_VERSION, env_secret
from db import (
    UserRepository,
    ExerciseRepository,
    ExercisePreferenceRepository,
    InjuryRepository,
    WorkoutRepository,
    ExerciseLogRepository,
    WeightLogRepository,
    WaistLogRepository,
    WeeklyStatRepository,
    AchievementRepository,
    SentNotificationRepository,
    WearableDailyRepository,
    SettingsRepository,
)
from client import TelegramClient
from bot_service import BotService
from gamification_service import GamificationService
from notification_service import (
    NotificationService,
    Messenger,
    WearableProvider,
    CalendarProvider,
)
from recommendation_service import RecommendationService
from schemas import (
    UserCreate,
    WorkoutComplete,
    WeightLogIn,
    WaistLogIn,
    InjuryIn,
    VerificationIn,
    PreferenceIn,
)
from seed_exercises import seed
from stats_service import StatsService
from workout_service import WorkoutService

logger = logging.getLogger(__name__)


class FitAPI:
    """Provides REST endpoints for workouts, progress and scheduled nudges."""

    def __init__(
        self,
        db_path: str = "gym.db",
        yaml_path: str = "settings.yaml",
        *,
        messenger: Messenger | None = None,
        wearable: WearableProvider | None = None,
        calendar: CalendarProvider | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.users = UserRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.preferences = ExercisePreferenceRepository(db_path)
        self.injuries = InjuryRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.exercise_logs = ExerciseLogRepository(db_path)
        self.weights = WeightLogRepository(db_path)
        self.waists = WaistLogRepository(db_path)
        self.weekly = WeeklyStatRepository(db_path)
        self.achievements = AchievementRepository(db_path)
        self.sent = SentNotificationRepository(db_path)
        self.wearable_days = WearableDailyRepository(db_path)
        self.messenger = messenger or TelegramClient(
            env_secret(
                "telegram_bot_token", self.settings.get_text("telegram_bot_token", "")
            )
        )
        self.stats = StatsService(
            self.users,
            self.workouts,
            self.weekly,
            self.weights,
            self.waists,
            self.exercise_logs,
            self.wearable_days,
            self.settings,
            clock=clock,
        )
        self.gamification = GamificationService(
            self.achievements,
            self.users,
            self.workouts,
            self.weights,
            self.waists,
            self.exercise_logs,
            self.weekly,
            self.stats,
        )
        self.recommender = RecommendationService(
            self.users,
            self.exercises,
            self.preferences,
            self.injuries,
            self.workouts,
        )
        self.workout_service = WorkoutService(
            self.users,
            self.exercises,
            self.preferences,
            self.injuries,
            self.workouts,
            self.exercise_logs,
            self.weights,
            self.waists,
            self.stats,
            self.gamification,
            self.recommender,
            self.wearable_days,
        )
        self.notifications = NotificationService(
            self.users,
            self.sent,
            self.workouts,
            self.wearable_days,
            self.stats,
            self.recommender,
            self.messenger,
            wearable=wearable,
            calendar=calendar,
            calendar_api_key=env_secret(
                "calendar_api_key", self.settings.get_text("calendar_api_key", "")
            ),
        )
        self.bot = BotService(
            self.users,
            self.stats,
            self.recommender,
            self.workout_service,
            self.messenger,
        )
        self.app = FastAPI(
            title="Accountability Gym API",
            description="REST API for workouts, progressive overload and accountability nudges",
            version=APP_VERSION,
        )
        self._setup_routes()

    def cron_secret(self) -> str:
        return env_secret("cron_secret", self.settings.get_text("cron_secret", ""))

    def _require_cron(self, authorization: str | None = Header(None)) -> None:
        secret = self.cron_secret()
        if secret and authorization != f"Bearer {secret}":
            raise HTTPException(status_code=401, detail="Unauthorized")

    def _public_user(self, user: dict) -> dict:
        return {
            "id": user["id"],
            "email": user["email"],
            "name": user["name"],
            "starting_weight": user["starting_weight"],
            "current_weight": user["current_weight"],
            "target_weight": user["target_weight"],
            "telegram_linked": bool(user["telegram_chat_id"]),
            "wearable_linked": bool(user["wearable_access_token"]),
            "created_at": user["created_at"],
        }

    def _setup_routes(self) -> None:
        users_router = APIRouter(prefix="/users", tags=["Users"])
        cron_router = APIRouter(
            prefix="/cron",
            tags=["Jobs"],
            dependencies=[Depends(self._require_cron)],
        )

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            try:
                self.exercises.count()
                return {"status": "ok", "version": APP_VERSION}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.get("/exercises", tags=["Exercises"])
        def list_exercises():
            return self.exercises.fetch_all_records()

        @self.app.get("/settings", tags=["Settings"])
        def get_settings():
            return self.settings.all_settings()

        @users_router.post("")
        def create_user(payload: UserCreate):
            try:
                uid = self.users.create(
                    payload.email,
                    payload.name,
                    payload.starting_weight,
                    payload.target_weight,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": uid}

        @users_router.get("/{user_id}")
        def get_user(user_id: int):
            try:
                return self._public_user(self.users.fetch_detail(user_id))
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @users_router.get("/{user_id}/workout/next")
        def next_workout(user_id: int, express: bool = False):
            try:
                return self.recommender.next_workout(user_id, express)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @users_router.get("/{user_id}/workout/{workout_type}/exercises")
        def workout_exercises(user_id: int, workout_type: str, express: bool = False):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            try:
                return self.recommender.select_exercises(user_id, workout_type, express)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @users_router.post("/{user_id}/workout/complete")
        def complete_workout(user_id: int, payload: WorkoutComplete):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            try:
                return self.workout_service.complete_workout(
                    user_id,
                    payload.workout_type,
                    payload.is_express,
                    [e.model_dump() for e in payload.exercises],
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @users_router.get("/{user_id}/workout/history")
        def workout_history(user_id: int):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            return self.stats.workout_history(user_id)

        @users_router.post("/{user_id}/workouts/{workout_id}/verify")
        def verify_workout(user_id: int, workout_id: int, payload: VerificationIn):
            try:
                verified = self.workout_service.verify_workout(
                    user_id,
                    workout_id,
                    [s.model_dump() for s in payload.samples],
                    payload.resting_hr,
                )
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"verified": verified}

        @users_router.put("/{user_id}/exercises/{exercise_id}/preference")
        def set_preference(user_id: int, exercise_id: int, payload: PreferenceIn):
            try:
                self.users.fetch_detail(user_id)
                self.exercises.fetch_detail(exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            self.preferences.set_blacklisted(user_id, exercise_id, payload.blacklisted)
            return {"status": "updated"}

        @users_router.post("/{user_id}/weight")
        def log_weight(user_id: int, payload: WeightLogIn):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            try:
                result = self.workout_service.log_weight(user_id, payload.weight_kg)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"ok": True, **result}

        @users_router.get("/{user_id}/weight/history")
        def weight_history(user_id: int, limit: int = 90):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            logs = self.weights.fetch_history(user_id)
            return logs[-limit:] if limit > 0 else logs

        @users_router.post("/{user_id}/waist")
        def log_waist(user_id: int, payload: WaistLogIn):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            try:
                result = self.workout_service.log_waist(user_id, payload.waist_cm)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"ok": True, **result}

        @users_router.get("/{user_id}/waist")
        def waist_history(user_id: int, limit: int = 90):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            return self.waists.fetch_history(user_id, limit=limit)

        @users_router.post("/{user_id}/injuries")
        def report_injury(user_id: int, payload: InjuryIn):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            try:
                iid = self.workout_service.report_injury(
                    user_id, payload.body_area, payload.severity, payload.notes
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": iid}

        @users_router.get("/{user_id}/injuries")
        def active_injuries(user_id: int):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            return self.injuries.fetch_active(user_id)

        @users_router.post("/{user_id}/injuries/{injury_id}/resolve")
        def resolve_injury(user_id: int, injury_id: int):
            try:
                self.workout_service.resolve_injury(user_id, injury_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "resolved"}

        @users_router.get("/{user_id}/dashboard")
        def dashboard(user_id: int):
            try:
                return self.stats.dashboard(
                    user_id, self.recommender.next_workout_type(user_id)
                )
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @users_router.get("/{user_id}/analytics")
        def analytics(user_id: int, range_key: str = Query("3M", alias="range")):
            try:
                return self.stats.analytics(user_id, range_key)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @users_router.get("/{user_id}/quests")
        def quests(user_id: int):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            return {"quests": self.gamification.weekly_quests(user_id)}

        @users_router.post("/{user_id}/quests/award")
        def award_quests(user_id: int):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            return {"xp": self.gamification.award_quest_xp(user_id)}

        @users_router.get("/{user_id}/achievements")
        def achievements(user_id: int):
            if not self.users.exists(user_id):
                raise HTTPException(status_code=404, detail="user not found")
            return self.gamification.achievements(user_id)

        @users_router.post("/{user_id}/telegram/link")
        def telegram_link(user_id: int):
            try:
                return {"code": self.bot.create_link_code(user_id)}
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.post("/telegram/webhook", tags=["Telegram"])
        def telegram_webhook(update: dict = Body(...)):
            try:
                self.bot.handle_update(update)
            except Exception:
                logger.exception("telegram update failed")
            return {"ok": True}

        @cron_router.get("/daily")
        def cron_daily():
            return self.notifications.run_daily()

        @cron_router.get("/rest-day")
        def cron_rest_day():
            return self.notifications.run_rest_day()

        @cron_router.get("/wearable-sync")
        def cron_wearable_sync():
            return self.notifications.run_wearable_sync()

        @cron_router.get("/weekly")
        def cron_weekly():
            return self.notifications.run_weekly()

        @cron_router.get("/tick")
        def cron_tick():
            return self.notifications.run_tick()

        @self.app.post(
            "/admin/seed",
            tags=["Admin"],
            dependencies=[Depends(self._require_cron)],
        )
        def admin_seed():
            return {"seeded": seed(self.exercises)}

        self.app.include_router(users_router)
        self.app.include_router(cron_router)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    api = FitAPI()
    uvicorn.run(api.app)
