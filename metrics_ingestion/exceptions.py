"""
Metrics Ingestion Exceptions - Error taxonomy for listing, detail and extraction.

Walker errors are fatal to a gather cycle. Errors raised while
processing one item carry its id in ``item_id``.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class MetricsIngestionError(Exception):
    """Base exception for all metrics ingestion errors."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
        item_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.original_error = original_error
        self.context = context or {}
        self.item_id = item_id
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "item_id": self.item_id,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.item_id:
            parts.append(f"[item={self.item_id}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class TransportError(MetricsIngestionError):
    """Network or connection failure, including request timeouts."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        request_url: Optional[str] = None,
        timeout: bool = False,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.request_url = request_url
        self.timeout = timeout

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "request_url": self.request_url,
            "timeout": self.timeout,
        })
        return data


class UpstreamStatusError(MetricsIngestionError):
    """Upstream answered with a non-200 status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        request_url: str,
        source_name: Optional[str] = None,
        response_body: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, None, context)
        self.status_code = status_code
        self.request_url = request_url
        self.response_body = response_body

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "request_url": self.request_url,
            "response_body": self.response_body,
        })
        return data

    def is_server_error(self) -> bool:
        """Check if error is server-side."""
        return 500 <= self.status_code < 600

    def is_client_error(self) -> bool:
        """Check if error is client-side."""
        return 400 <= self.status_code < 500


class MalformedResponseError(MetricsIngestionError):
    """Response body is empty or not valid JSON, or has an unexpected shape."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        request_url: Optional[str] = None,
        body_excerpt: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.request_url = request_url
        self.body_excerpt = body_excerpt[:200] if body_excerpt else body_excerpt

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "request_url": self.request_url,
            "body_excerpt": self.body_excerpt,
        })
        return data


class MalformedNumericFieldError(MetricsIngestionError):
    """A field is present but cannot be read as a number."""

    def __init__(
        self,
        message: str,
        field_path: str,
        raw_value: Any = None,
        source_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.field_path = field_path
        self.raw_value = raw_value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "field_path": self.field_path,
            "raw_value": str(self.raw_value)[:200],  # Truncate
        })
        return data


class PaginationLimitError(MetricsIngestionError):
    """Listing still had a continuation token after the page limit."""

    def __init__(
        self,
        message: str,
        max_pages: int,
        source_name: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, None, context)
        self.max_pages = max_pages


class PaginationLoopError(MetricsIngestionError):
    """Upstream returned a continuation token that was already followed."""

    def __init__(
        self,
        message: str,
        token: str,
        source_name: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, None, context)
        self.token = token


class ConfigurationError(MetricsIngestionError):
    """Configuration error for a collector."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data
