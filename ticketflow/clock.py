"""
Injectable time source.

Every engine component reads "now" from a clock object so that SLA
deadlines, duplicate windows and the sweep are testable.
"""

from datetime import datetime

from .models.ticket import utcnow


class SystemClock:
    """Wall clock, timezone-aware UTC."""

    def now(self) -> datetime:
        return utcnow()
