"""
Metrics Ingestion - Sinks.

A sink receives one call per emitted record. Sinks must accept
concurrent calls from item tasks and must never raise into the
collector; failures stay inside the sink.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Union

from metrics_ingestion.types import MetricRecord


Number = Union[int, float]


class MetricSink(ABC):
    """Downstream accumulator for metric records."""

    @abstractmethod
    def emit(self, record: MetricRecord) -> None:
        """Accept one record. Must not raise."""
        pass


class CallbackSink(MetricSink):
    """
    Adapts a plain ``emit(tag, fields)`` callable to the sink contract.

    Exceptions from the callable are logged and kept from the collector.
    """

    def __init__(
        self,
        callback: Callable[[str, Dict[str, Number]], None],
        logger_name: str = "metrics_ingestion.sink",
    ) -> None:
        self._callback = callback
        self._logger = logging.getLogger(logger_name)

    def emit(self, record: MetricRecord) -> None:
        try:
            self._callback(record.tag, record.field_values())
        except Exception:
            self._logger.exception(f"Sink callback failed for {record.tag}")


class InMemorySink(MetricSink):
    """
    Keeps every record in a list.

    Used by tests and by callers that post-process a cycle.
    """

    def __init__(self) -> None:
        self._records: List[MetricRecord] = []
        self._lock = threading.Lock()

    def emit(self, record: MetricRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> List[MetricRecord]:
        with self._lock:
            return list(self._records)

    def get(self, tag: str) -> Optional[MetricRecord]:
        """First record with the given tag value, if any."""
        for record in self.records:
            if record.tag == tag:
                return record
        return None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class LoggingSink(MetricSink):
    """Writes each record as one JSON log line."""

    def __init__(self, logger_name: str = "metrics_ingestion.records") -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, record: MetricRecord) -> None:
        try:
            self._logger.info(json.dumps(record.to_dict(), sort_keys=True))
        except (TypeError, ValueError) as e:
            self._logger.error(f"Could not serialize record for {record.tag}: {e}")
