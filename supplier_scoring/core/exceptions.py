"""Error taxonomy for the supplier scoring engine."""

from typing import Optional


class SupplierScoringError(Exception):
    """Base class for every error raised by the scoring engine."""

    retryable = False


class MetricsProviderUnavailableError(SupplierScoringError):
    """Raised when the metrics provider cannot serve a request. Safe to retry."""

    retryable = True

    def __init__(self, operation: str, reason: Optional[str] = None):
        self.operation = operation
        self.reason = reason
        message = f"Metrics provider unavailable during {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidWeightProfileError(SupplierScoringError, ValueError):
    """Raised when a custom weight map cannot be turned into a valid profile."""
    def __init__(self, message: str, weights: Optional[dict] = None):
        self.weights = weights
        super().__init__(message)


class SupplierNotFoundError(SupplierScoringError, LookupError):
    """Raised when a supplier id is unknown to the metrics provider."""
    def __init__(self, supplier_id: int):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier {supplier_id} not found")
