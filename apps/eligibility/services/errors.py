"""Error taxonomy for the eligibility engine.

Only DataAccessError crosses the engine boundary. Cache tier failures are
recovered locally; budget exhaustion is reported as data (complete=False).
"""


class EligibilityError(Exception):
    """Base class for engine errors."""

    pass


class TransientCacheError(EligibilityError):
    """A cache tier is unreachable or returned garbage. Treated as a miss / no-op."""

    pass


class DataAccessError(EligibilityError):
    """The corpus store failed. Fatal for the current resolution; never retried here."""

    pass


__all__ = ["DataAccessError", "EligibilityError", "TransientCacheError"]
