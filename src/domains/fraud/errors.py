"""Error taxonomy for the payee risk engine."""


class FraudEngineError(Exception):
    """Base class for all engine errors."""


class InvalidInput(FraudEngineError, ValueError):
    """Malformed identifier, amount or hour. Raised before any lookup or write."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ServiceUnavailable(FraudEngineError):
    """The registry/store backend as a whole cannot be reached."""


class SignalAbsent(FraudEngineError):
    """An individual lookup timed out or found nothing.

    Never surfaced to callers; the aggregator folds it into an absent signal.
    """

    def __init__(self, signal: str, cause: str = "not_found") -> None:
        super().__init__(f"{signal}: {cause}")
        self.signal = signal
        self.cause = cause


class ClassifierFailure(FraudEngineError):
    """The anomaly classifier call failed. Retried, then degraded."""


class InvalidTransition(FraudEngineError, ValueError):
    """Alert status change that would move backwards."""


class DuplicateAlert(FraudEngineError):
    """An open alert already exists for the same dedup key."""
