"""
Sink Tests.
"""

import json
import logging
from datetime import datetime, timezone

import pytest

from metrics_ingestion.sink import CallbackSink, InMemorySink, LoggingSink
from metrics_ingestion.types import MetricRecord, NumericValue


def make_record(tag: str = "abc123", **fields) -> MetricRecord:
    fields = fields or {"viewCount": 42}
    return MetricRecord(
        name="test_api",
        tag_key="item_id",
        tag=tag,
        fields={name: NumericValue.of(value) for name, value in fields.items()},
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


class TestMetricRecord:
    """Tests for MetricRecord."""

    def test_requires_fields(self):
        """Test a record without fields cannot exist."""
        with pytest.raises(ValueError):
            MetricRecord(
                name="test_api",
                tag_key="item_id",
                tag="x",
                fields={},
                timestamp=datetime.now(timezone.utc),
            )

    def test_to_dict(self):
        """Test the serialized shape."""
        record = make_record(viewCount=42, ratio=0.5)

        assert record.to_dict() == {
            "name": "test_api",
            "tags": {"item_id": "abc123"},
            "fields": {"viewCount": 42, "ratio": 0.5},
            "timestamp": "2024-05-01T12:00:00+00:00",
        }


class TestCallbackSink:
    """Tests for CallbackSink."""

    def test_forwards_tag_and_fields(self):
        """Test the callback gets the tag and plain numbers."""
        calls = []
        sink = CallbackSink(lambda tag, fields: calls.append((tag, fields)))

        sink.emit(make_record(viewCount=1, likeCount=2))

        assert calls == [("abc123", {"viewCount": 1, "likeCount": 2})]

    def test_callback_errors_are_contained(self, caplog):
        """Test a failing callback is logged, not raised."""
        def broken(tag, fields):
            raise RuntimeError("downstream full")

        sink = CallbackSink(broken)

        with caplog.at_level(logging.ERROR, logger="metrics_ingestion.sink"):
            sink.emit(make_record())

        assert "Sink callback failed for abc123" in caplog.text


class TestInMemorySink:
    """Tests for InMemorySink."""

    def test_collects_and_clears(self):
        """Test records are kept in emit order until cleared."""
        sink = InMemorySink()
        sink.emit(make_record("a"))
        sink.emit(make_record("b"))

        assert len(sink) == 2
        assert sink.get("b").tag == "b"
        assert sink.get("z") is None

        sink.clear()

        assert len(sink) == 0


class TestLoggingSink:
    """Tests for LoggingSink."""

    def test_logs_json_line(self, caplog):
        """Test each record becomes one JSON log message."""
        sink = LoggingSink()

        with caplog.at_level(logging.INFO, logger="metrics_ingestion.records"):
            sink.emit(make_record())

        assert len(caplog.records) == 1
        payload = json.loads(caplog.records[0].getMessage())
        assert payload["tags"] == {"item_id": "abc123"}
        assert payload["fields"] == {"viewCount": 42}
