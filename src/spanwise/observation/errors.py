"""Exceptions raised by the observation layer."""


class ObservationUsageError(RuntimeError):
    """Raised when the Observation API is driven out of order.

    Examples: ``stop()`` before ``start()``, starting twice, recording an
    error on an observation that is not running.
    """
