from __future__ import annotations
import logging
import secrets

from db import UserRepository
from notification_service import Messenger
from recommendation_service import RecommendationService
from stats_service import StatsService
from workout_service import WorkoutService

logger = logging.getLogger(__name__)


class BotService:
    """Handle inbound Telegram updates and link chats to users."""

    LINK_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    LINK_CODE_LENGTH = 6
    HELP = "Commands: /status, /done, /weight 81.5, /punishment, /skip"

    def __init__(
        self,
        user_repo: UserRepository,
        stats: StatsService,
        recommender: RecommendationService,
        workouts: WorkoutService,
        messenger: Messenger,
    ) -> None:
        self.users = user_repo
        self.stats = stats
        self.recommender = recommender
        self.workouts = workouts
        self.messenger = messenger

    def create_link_code(self, user_id: int) -> str:
        self.users.fetch_detail(user_id)
        code = "".join(
            secrets.choice(self.LINK_ALPHABET) for _ in range(self.LINK_CODE_LENGTH)
        )
        self.users.set_link_code(user_id, code)
        return code

    def _reply(self, chat_id: str, text: str) -> str:
        self.messenger.send_message(chat_id, text)
        return text

    def handle_update(self, update: dict) -> str | None:
        """Process one webhook update and return the reply text, if any."""
        message = update.get("message") or update.get("edited_message")
        if not message or not (message.get("from") or {}).get("id") or not message.get("text"):
            return None
        chat_id = str(message["chat"]["id"])
        text = message["text"].strip()

        user = self.users.fetch_by_chat(chat_id)
        if user is None and text.startswith("/link "):
            code = text[len("/link"):].strip().upper()
            match = self.users.fetch_by_link_code(code)
            if match is not None:
                self.users.link_chat(match["id"], chat_id)
                logger.info("linked chat %s to user %s", chat_id, match["id"])
                return self._reply(
                    chat_id,
                    "Telegram linked! You can use /status, /done, /weight, /punishment.",
                )
        if user is None:
            if text == "/start":
                return self._reply(
                    chat_id,
                    "To link: open the app settings, create a Telegram link code, "
                    "then send /link YOUR_CODE here.",
                )
            return None
        return self._command(user, chat_id, text)

    def _command(self, user: dict, chat_id: str, text: str) -> str:
        uid = user["id"]
        minimum = self.stats.min_workouts()
        planned = self.stats.planned_workouts()

        if text == "/status":
            dash = self.stats.dashboard(uid, self.recommender.next_workout_type(uid))
            week = self.stats.week_key(self.stats.now())
            lines = [
                f"<b>This week</b> (started {week})",
                f"Workouts: {dash['workouts_this_week']}/{planned} planned (min {minimum})",
                "Alcohol ban active this weekend." if dash["punishment_active"] else "No punishment.",
                f"Level {dash['level']} - {dash['xp']} XP - {dash['streak']} week streak",
                f"Weight: {dash['current_weight']}kg -> goal {dash['target_weight']}kg",
            ]
            return self._reply(chat_id, "\n".join(lines))

        if text == "/punishment":
            if self.stats.week_progress(uid)["punishment_active"]:
                msg = (
                    f"Yes: you did fewer than {minimum} workouts this week. "
                    "Alcohol ban is active for the weekend."
                )
            else:
                msg = f"No punishment. You hit your {minimum} workouts."
            return self._reply(chat_id, msg)

        if text.startswith("/weight"):
            part = text[len("/weight"):].strip()
            try:
                weight = float(part)
                self.workouts.log_weight(uid, weight)
            except ValueError:
                return self._reply(chat_id, "Usage: /weight 81.5 (kg)")
            return self._reply(chat_id, f"Weight logged: {weight:g}kg")

        if text == "/done":
            result = self.workouts.quick_complete(uid)
            return self._reply(
                chat_id,
                f"Workout {result['workout_type']} logged! "
                f"{result['workouts_this_week']}/{planned} this week (need {minimum} for goal).",
            )

        if text == "/skip":
            return self._reply(
                chat_id,
                f"Intentional rest noted. Max {planned - minimum} skip days per week to still hit your goal.",
            )

        return self._reply(chat_id, self.HELP)
