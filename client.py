import logging
import requests

logger = logging.getLogger(__name__)


class TelegramClient:
    """Minimal client for the Telegram bot API."""

    def __init__(
        self, token: str = "", base_url: str = "https://api.telegram.org", timeout: float = 10.0
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def _url(self, method: str) -> str:
        return f"{self.base_url}/bot{self.token}/{method}"

    def send_message(self, chat_id: str, text: str) -> bool:
        """Send ``text`` as HTML to ``chat_id``; return whether Telegram accepted it."""
        if not self.enabled:
            logger.info("no bot token, would send to %s: %s", chat_id, text[:80])
            return False
        resp = requests.post(
            self._url("sendMessage"),
            json={"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
            timeout=self.timeout,
        )
        if not resp.ok:
            logger.warning("sendMessage to %s failed with %s", chat_id, resp.status_code)
        return resp.ok

    def set_webhook(self, url: str) -> None:
        if not self.enabled:
            return
        resp = requests.post(self._url("setWebhook"), json={"url": url}, timeout=self.timeout)
        resp.raise_for_status()
