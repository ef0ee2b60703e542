"""
Metrics Ingestion - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the metrics ingestion layer.

- Configuration dataclasses
- Page, field and metric record types
- Gather result types

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable data structures where possible
- Clear typing for all fields
- No network or parsing logic
- Serializable for monitoring

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import UUID, uuid4


# =============================================================
# ENUMS
# =============================================================

class HttpMethod(str, Enum):
    """HTTP methods supported for listing and detail requests."""
    GET = "GET"
    POST = "POST"


class IdentifierOrder(str, Enum):
    """Order in which the walker returns identifiers across pages."""
    PAGE_SEQUENCE = "page_sequence"
    LAST_PAGE_FIRST = "last_page_first"


class GatherStatus(str, Enum):
    """Status of a gather cycle."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


class NumericKind(str, Enum):
    """Kind of a numeric field value."""
    INTEGER = "integer"
    FLOAT = "float"


# =============================================================
# CONFIGURATION TYPES
# =============================================================

@dataclass(frozen=True)
class FieldSpec:
    """A metric field name and the JSON path it is read from."""
    name: str
    path: str

    @classmethod
    def parse(cls, entry: str) -> "FieldSpec":
        """
        Parse a ``name=path`` entry. A bare name is its own path.

        Raises:
            ValueError: If the entry has an empty name or path
        """
        name, sep, path = entry.strip().partition("=")
        name = name.strip()
        path = path.strip() if sep else name
        if not name or not path:
            raise ValueError(f"Invalid field entry: {entry!r}")
        return cls(name=name, path=path)


@dataclass(frozen=True)
class ListingConfig:
    """Paginated listing endpoint parameters."""
    url: str
    items_path: str
    method: HttpMethod = HttpMethod.GET
    params: Tuple[Tuple[str, str], ...] = ()
    collection_param: Optional[str] = None
    collection_id: Optional[str] = None
    page_size_param: Optional[str] = None
    page_size: Optional[int] = None
    token_param: str = "pageToken"
    token_path: str = "nextPageToken"
    max_pages: int = 1000
    identifier_order: IdentifierOrder = IdentifierOrder.PAGE_SEQUENCE


@dataclass(frozen=True)
class DetailConfig:
    """Per-item detail endpoint parameters."""
    url: str
    method: HttpMethod = HttpMethod.GET
    params: Tuple[Tuple[str, str], ...] = ()
    id_param: str = "id"

    @property
    def has_placeholder(self) -> bool:
        return "{item_id}" in self.url


@dataclass(frozen=True)
class CollectorConfig:
    """Static configuration for one metrics collector."""
    listing: ListingConfig
    detail: DetailConfig
    fields: Tuple[FieldSpec, ...]
    name: str = "api_metrics"
    enabled: bool = True
    api_key: str = ""
    api_key_param: str = "key"
    headers: Tuple[Tuple[str, str], ...] = ()
    tag_key: str = "item_id"
    timeout_seconds: float = 5.0
    cycle_timeout_seconds: Optional[float] = None
    max_concurrency: int = 1
    fail_fast: bool = False
    interval_seconds: int = 900


# =============================================================
# PAGE AND RECORD TYPES
# =============================================================

@dataclass
class CollectionPage:
    """One listing response: decoded body plus optional continuation token."""
    body: Any
    next_token: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return self.next_token is None


@dataclass(frozen=True)
class NumericValue:
    """An extracted number, tagged with whether it is integral."""
    value: Union[int, float]
    kind: NumericKind

    @classmethod
    def of(cls, value: Union[int, float]) -> "NumericValue":
        if isinstance(value, int):
            return cls(value=value, kind=NumericKind.INTEGER)
        return cls(value=float(value), kind=NumericKind.FLOAT)

    @property
    def is_integer(self) -> bool:
        return self.kind == NumericKind.INTEGER


@dataclass(frozen=True)
class MetricRecord:
    """One tagged set of numeric fields for a single item."""
    name: str
    tag_key: str
    tag: str
    fields: Dict[str, NumericValue]
    timestamp: datetime

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError("MetricRecord requires at least one field")

    @property
    def tags(self) -> Dict[str, str]:
        return {self.tag_key: self.tag}

    def field_values(self) -> Dict[str, Union[int, float]]:
        """Plain field name to number mapping, as handed to the sink."""
        return {name: v.value for name, v in self.fields.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "tags": self.tags,
            "fields": self.field_values(),
            "timestamp": self.timestamp.isoformat(),
        }


# =============================================================
# GATHER RESULT TYPES
# =============================================================

@dataclass
class ItemError:
    """A failure confined to one item."""
    item_id: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.item_id}: {self.error}"


@dataclass
class GatherResult:
    """Result of a single gather cycle."""
    cycle_id: UUID = field(default_factory=uuid4)
    source: str = ""
    status: GatherStatus = GatherStatus.SUCCESS

    # Counts
    pages_fetched: int = 0
    items_found: int = 0
    records_emitted: int = 0
    items_empty: int = 0

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    # Errors
    error: Optional[Exception] = None
    item_errors: List[ItemError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status in (GatherStatus.SUCCESS, GatherStatus.PARTIAL)

    def add_item_error(self, item_id: str, error: Exception) -> None:
        """Record an item-level failure."""
        self.item_errors.append(ItemError(item_id=item_id, error=error))
        if self.status == GatherStatus.SUCCESS:
            self.status = GatherStatus.PARTIAL

    def mark_failed(self, error: Exception) -> None:
        """Mark the whole cycle as failed."""
        self.status = GatherStatus.FAILED
        self.error = error

    def mark_complete(self, completed_at: datetime) -> None:
        """Mark the cycle as complete and calculate duration."""
        self.completed_at = completed_at
        if self.started_at:
            delta = completed_at - self.started_at
            self.duration_seconds = delta.total_seconds()

    def summary(self) -> str:
        if self.status == GatherStatus.FAILED:
            return f"failed: {self.error}"
        if self.status == GatherStatus.PARTIAL:
            return f"succeeded with {len(self.item_errors)} item errors"
        return self.status.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/monitoring."""
        return {
            "cycle_id": str(self.cycle_id),
            "source": self.source,
            "status": self.status.value,
            "pages_fetched": self.pages_fetched,
            "items_found": self.items_found,
            "records_emitted": self.records_emitted,
            "items_empty": self.items_empty,
            "duration_seconds": self.duration_seconds,
            "error": str(self.error) if self.error else None,
            "item_error_count": len(self.item_errors),
            "item_errors": [str(e) for e in self.item_errors[:5]],  # Limit for logging
        }
