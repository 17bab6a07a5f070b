# demo_scheduling/constants/signup.py
"""
Constants for demo signup status values.

Provides type-safe constants to replace hardcoded strings throughout the codebase.
"""


class SignupStatus:
    """Demo signup status values."""
    SIGNED_UP = "signed_up"
    PRESENTED = "presented"
    NO_SHOW = "no_show"
    WITHDRAWN = "withdrawn"

    @classmethod
    def all_values(cls) -> list[str]:
        """Return all valid status values."""
        return [cls.SIGNED_UP, cls.PRESENTED, cls.NO_SHOW, cls.WITHDRAWN]

    @classmethod
    def live_values(cls) -> list[str]:
        """Statuses that occupy a presentation slot."""
        return [cls.SIGNED_UP, cls.PRESENTED, cls.NO_SHOW]

    @classmethod
    def terminal_values(cls) -> list[str]:
        """Statuses with no further transitions."""
        return [cls.PRESENTED, cls.NO_SHOW, cls.WITHDRAWN]

    @classmethod
    def is_valid(cls, status: str) -> bool:
        """Check if a status value is valid."""
        return status in cls.all_values()

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.terminal_values()


MIN_RATING = 1
MAX_RATING = 5

# Signup fields a student may change while the signup is still signed_up
EDITABLE_FIELDS = {"notes", "demo_ref"}
