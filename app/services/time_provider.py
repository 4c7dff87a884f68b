"""Time provider abstraction for testable dates and timestamps.

Transaction dates default to "today" and redemptions are stamped with the
current time. Both come from a TimeProvider so tests can freeze the clock.
All values are UTC.
"""
from datetime import date, datetime, timezone
from typing import Optional


class TimeProvider:
    """Provides the current date and time, allowing tests to freeze them.

    Usage:
        # Production: real UTC clock
        provider = TimeProvider()
        provider.now()

        # Testing: freeze to a fixed instant
        provider = TimeProvider(frozen_at=datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc))
        provider.today()  # always 2026-01-15
    """

    _instance: Optional['TimeProvider'] = None

    def __init__(self, frozen_at: Optional[datetime] = None):
        """Initialize TimeProvider.

        Args:
            frozen_at: If provided, now() always returns this instant.
                       Naive datetimes are treated as UTC.
        """
        if frozen_at is not None and frozen_at.tzinfo is None:
            frozen_at = frozen_at.replace(tzinfo=timezone.utc)
        self._frozen_at = frozen_at

    def now(self) -> datetime:
        """Get the current UTC datetime, or the frozen instant if set."""
        if self._frozen_at is not None:
            return self._frozen_at
        return datetime.now(timezone.utc)

    def today(self) -> date:
        """Get the current UTC date."""
        return self.now().date()

    @classmethod
    def get_default(cls) -> 'TimeProvider':
        """Get the default TimeProvider instance (singleton for production)."""
        if cls._instance is None:
            cls._instance = TimeProvider()
        return cls._instance

    @classmethod
    def set_default(cls, provider: 'TimeProvider') -> None:
        """Set the default TimeProvider (for testing)."""
        cls._instance = provider

    @classmethod
    def reset_default(cls) -> None:
        """Reset to production TimeProvider."""
        cls._instance = None


def get_today(time_provider: Optional[TimeProvider] = None) -> date:
    """Get today's UTC date from the given or default provider."""
    if time_provider is None:
        time_provider = TimeProvider.get_default()
    return time_provider.today()


def get_now(time_provider: Optional[TimeProvider] = None) -> datetime:
    """Get the current UTC datetime from the given or default provider."""
    if time_provider is None:
        time_provider = TimeProvider.get_default()
    return time_provider.now()
