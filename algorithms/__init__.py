from .math_tools import MathTools
from .progression import ProgressionRules
from .calendar_tools import CalendarTools
from .recovery import RecoveryTools

__all__ = ["MathTools", "ProgressionRules", "CalendarTools", "RecoveryTools"]
