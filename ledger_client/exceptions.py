"""
Ledger Client Exceptions - Transport-level error hierarchy.

These never leave the pipeline as-is: the submitter and the
metrics store translate them into core.exceptions kinds.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class LedgerClientError(Exception):
    """Base exception for all ledger transport errors."""

    def __init__(
        self,
        message: str,
        request_url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.request_url = request_url
        self.status_code = status_code
        self.response_body = response_body
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_url": self.request_url,
            "status_code": self.status_code,
            "response_body": self.response_body,
            "original_error": str(self.original_error) if self.original_error else None,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.status_code is not None:
            parts.append(f"[status={self.status_code}]")
        if self.request_url:
            parts.append(f"[url={self.request_url}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class LedgerRpcError(LedgerClientError):
    """Non-success HTTP status or connection failure."""


class LedgerNotFoundError(LedgerRpcError):
    """Resource does not exist (HTTP 404)."""


class LedgerTimeoutError(LedgerClientError):
    """Request exceeded its deadline."""


class LedgerResponseError(LedgerClientError):
    """Response body could not be interpreted."""
