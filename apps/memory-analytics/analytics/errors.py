class AnalyticsError(Exception):
    """Base class for errors raised by the aggregation engine."""


class NoDataYet(AnalyticsError):
    """Derived state was requested before any sample was ingested."""

    def __init__(self, message: str = "no data yet") -> None:
        super().__init__(message)
