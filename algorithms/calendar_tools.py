import datetime
import pytz


class CalendarTools:
    """Date helpers for the schedule timezone and Monday-start weeks."""

    @staticmethod
    def local_now(timezone: str = "Australia/Sydney") -> datetime.datetime:
        """Current wall-clock time in ``timezone`` as a naive datetime."""
        tz = pytz.timezone(timezone)
        return datetime.datetime.now(pytz.utc).astimezone(tz).replace(tzinfo=None)

    @staticmethod
    def week_start(day: datetime.date | datetime.datetime) -> datetime.date:
        if isinstance(day, datetime.datetime):
            day = day.date()
        return day - datetime.timedelta(days=day.weekday())

    @classmethod
    def week_bounds(
        cls, day: datetime.date | datetime.datetime
    ) -> tuple[str, str]:
        """Return ISO strings ``(start, end)`` spanning the week of ``day``."""
        start = cls.week_start(day)
        end = start + datetime.timedelta(days=7)
        return (
            datetime.datetime.combine(start, datetime.time()).isoformat(),
            datetime.datetime.combine(end, datetime.time()).isoformat(),
        )

    @staticmethod
    def day_bounds(day: datetime.date | datetime.datetime) -> tuple[str, str]:
        if isinstance(day, datetime.datetime):
            day = day.date()
        start = datetime.datetime.combine(day, datetime.time())
        end = start + datetime.timedelta(days=1)
        return start.isoformat(), end.isoformat()

    @staticmethod
    def to_timestamp(moment: datetime.datetime) -> str:
        return moment.replace(microsecond=0).isoformat()
