"""Base exception for flowdelta."""

from typing import Any, Mapping, Optional


class FlowDeltaError(Exception):
    """Base exception for all flowdelta errors.

    ``details`` values are stored as strings so ids, offsets and paths can be
    passed as-is.
    """

    def __init__(self, message: str, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = {key: str(value) for key, value in (details or {}).items()}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({details_str})"
