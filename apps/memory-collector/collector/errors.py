class UpstreamUnavailable(Exception):
    """The kernel counters could not be read for this tick."""
