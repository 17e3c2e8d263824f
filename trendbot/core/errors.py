"""Exception hierarchy for trend updates."""
from typing import Dict, Optional


class TrendbotError(Exception):
    """Base class for all trendbot errors."""


class PersistenceError(TrendbotError):
    """Record store read or write failed."""


class ProviderError(TrendbotError):
    """A news or tweet provider failed or timed out."""

    def __init__(self, provider: str, trend_name: str, message: str):
        self.provider = provider
        self.trend_name = trend_name
        super().__init__(f"{provider} failed for '{trend_name}': {message}")


class ComputationError(TrendbotError):
    """Observation data cannot be merged (negative weights, non-finite scores)."""


class BatchUpdateError(TrendbotError):
    """One or more trends failed to update in a batch."""

    def __init__(self, failures: Dict[str, str], errors: Optional[list] = None):
        self.failures = dict(failures)
        self.errors = list(errors or [])
        parts = [f"{name}: {msg}" for name, msg in self.failures.items()] + self.errors
        super().__init__(f"{len(parts)} failure(s) in trend batch: " + "; ".join(parts))
