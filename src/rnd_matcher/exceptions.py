"""
Custom exceptions for the matcher.
"""
from typing import Optional


class MatcherError(Exception):
    """Base exception for the R&D matcher."""
    pass


class ConfigError(MatcherError):
    """Raised when a configuration file cannot be loaded or validated."""
    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(self.message)


class ScoringInvariantError(MatcherError):
    """Raised when a score breakdown does not add up to its score.

    This is a programming error and is never coerced.
    """
    def __init__(self, score: int, breakdown_total: int):
        self.score = score
        self.breakdown_total = breakdown_total
        super().__init__(
            f"Score breakdown sums to {breakdown_total} but score is {score}"
        )


class RepositoryError(MatcherError):
    """Raised by repository implementations when the backing store fails."""
    pass


class NotFoundError(RepositoryError):
    """Raised when a requested organization, program or match does not exist."""
    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class QuotaExceededError(MatcherError):
    """Raised when a caller asks for work its quota does not allow."""
    def __init__(self, operation: str, subject_id: Optional[str] = None):
        self.operation = operation
        self.subject_id = subject_id
        detail = f" for {subject_id}" if subject_id else ""
        super().__init__(f"Quota does not allow {operation}{detail}")


class ExplainerError(MatcherError):
    """Base class for failures of the external explanation generator."""
    pass


class RateLimitedError(ExplainerError):
    """The explanation provider rejected the call due to rate limiting."""
    def __init__(self, message: str = "Explainer rate limited", retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message)


class BudgetExceededError(ExplainerError):
    """The explanation provider's spending budget is exhausted."""
    pass


class ExplainerTimeoutError(ExplainerError):
    """The explanation provider did not answer within the allowed time."""
    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Explainer did not respond within {timeout_seconds:.1f}s")
