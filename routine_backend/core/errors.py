"""
Error types raised by the routine engine
"""


class RoutineError(Exception):
    """Base class for all routine engine errors"""


class ConfigError(RoutineError):
    """Configuration value is missing or malformed"""


class TemplateError(RoutineError):
    """Activity template definition is invalid"""


class InvalidDateError(RoutineError, ValueError):
    """Date key is not a valid YYYY-MM-DD calendar date"""


class ActivityIndexError(RoutineError, IndexError):
    """Toggle or comment addressed an activity index outside the schedule"""

    def __init__(self, index: int, size: int):
        super().__init__(f"Activity index {index} out of range (schedule has {size} entries)")
        self.index = index
        self.size = size


class IdentityResolutionError(RoutineError):
    """Identity provider was unreachable or rejected the credentials"""


class IdentityRequiredError(RoutineError):
    """Sync operation attempted before an identity was resolved"""


class SubscriptionError(RoutineError):
    """Live feed failed after a successful subscribe"""


class PersistError(RoutineError):
    """Overwrite of a date record failed"""
