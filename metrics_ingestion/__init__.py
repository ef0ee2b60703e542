"""
Metrics Ingestion Package.

Recurring collection of per-item numeric metrics from paginated
REST APIs: walk every listing page, fetch each item's detail
document, flatten its numeric fields and emit one record per item.

Components:
- walker: paginated identifier collection
- fetchers: listing page and item detail requests
- extractor: tolerant numeric field extraction
- assembler: per-item metric records
- collector: one gather cycle end to end
"""

from metrics_ingestion.assembler import MetricAssembler
from metrics_ingestion.clock import ClockProtocol, FixedClock, SystemClock
from metrics_ingestion.collector import MetricsCollector, create_collector
from metrics_ingestion.config import (
    load_config_from_env,
    require_valid,
    validate_config,
    youtube_playlist_config,
)
from metrics_ingestion.exceptions import (
    ConfigurationError,
    MalformedNumericFieldError,
    MalformedResponseError,
    MetricsIngestionError,
    PaginationLimitError,
    PaginationLoopError,
    TransportError,
    UpstreamStatusError,
)
from metrics_ingestion.extractor import NumericFieldExtractor
from metrics_ingestion.fetchers import DetailFetcher, PageFetcher
from metrics_ingestion.sink import CallbackSink, InMemorySink, LoggingSink, MetricSink
from metrics_ingestion.transport import AiohttpTransport, Transport, TransportResponse
from metrics_ingestion.types import (
    CollectionPage,
    CollectorConfig,
    DetailConfig,
    FieldSpec,
    GatherResult,
    GatherStatus,
    HttpMethod,
    IdentifierOrder,
    ItemError,
    ListingConfig,
    MetricRecord,
    NumericKind,
    NumericValue,
)
from metrics_ingestion.walker import CollectionWalker, WalkResult


__all__ = [
    # Collector
    "MetricsCollector",
    "create_collector",
    # Components
    "CollectionWalker",
    "WalkResult",
    "PageFetcher",
    "DetailFetcher",
    "NumericFieldExtractor",
    "MetricAssembler",
    # Transport
    "Transport",
    "TransportResponse",
    "AiohttpTransport",
    # Sinks
    "MetricSink",
    "InMemorySink",
    "LoggingSink",
    "CallbackSink",
    # Clock
    "ClockProtocol",
    "SystemClock",
    "FixedClock",
    # Config
    "load_config_from_env",
    "validate_config",
    "require_valid",
    "youtube_playlist_config",
    # Types
    "CollectorConfig",
    "ListingConfig",
    "DetailConfig",
    "FieldSpec",
    "HttpMethod",
    "IdentifierOrder",
    "CollectionPage",
    "NumericKind",
    "NumericValue",
    "MetricRecord",
    "ItemError",
    "GatherResult",
    "GatherStatus",
    # Errors
    "MetricsIngestionError",
    "TransportError",
    "UpstreamStatusError",
    "MalformedResponseError",
    "MalformedNumericFieldError",
    "PaginationLimitError",
    "PaginationLoopError",
    "ConfigurationError",
]
