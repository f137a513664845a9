from .math_tools import MathTools


class ProgressionRules:
    """Progressive overload rules for recommended training weights."""

    DEFAULT_BODY_WEIGHT: float = 82.0
    SESSIONS_BEFORE_INCREASE: int = 3

    @classmethod
    def body_weight(
        cls, current: float | None, starting: float | None
    ) -> float:
        if current is not None:
            return float(current)
        if starting is not None:
            return float(starting)
        return cls.DEFAULT_BODY_WEIGHT

    @staticmethod
    def initial_weight(
        body_weight: float, base_weight_percent: float, increment: float
    ) -> float:
        """First-time weight: body weight times percent, snapped and floored at one increment."""
        if increment <= 0:
            return 0.0
        raw = body_weight * base_weight_percent
        return max(increment, MathTools.snap_to_increment(raw, increment))

    @classmethod
    def next_weight(
        cls,
        weight: float,
        feedback: str,
        increment: float,
        stored_weight: float | None = None,
        sessions_at_weight: int = 0,
    ) -> tuple[float, int]:
        """Return ``(weight, sessions_at_weight)`` after a logged session.

        ``weight`` is the weight just used and is snapped to the increment
        grid first. ``stored_weight`` and ``sessions_at_weight`` come from the
        preference record, if any.
        """
        if feedback not in ("too_light", "just_right", "too_heavy"):
            raise ValueError("invalid difficulty feedback")
        if increment <= 0:
            used = 0.0
        else:
            used = MathTools.snap_to_increment(max(weight, 0.0), increment)

        if feedback == "too_heavy":
            if increment <= 0:
                return used, 0
            return max(increment, round(used - increment, 4)), 0
        if feedback == "too_light":
            return round(used + increment, 4), 0

        if stored_weight is not None and used == stored_weight:
            sessions = sessions_at_weight + 1
            if sessions >= cls.SESSIONS_BEFORE_INCREASE:
                return round(used + increment, 4), 0
            return used, sessions
        return used, 1
