"""
Metrics Ingestion - Metric Assembler.

============================================================
RESPONSIBILITY
============================================================
Turns one item identifier into at most one MetricRecord.

1. Fetch the item's detail document
2. Extract every configured field
3. Emit a record if at least one field was found

An absent field is skipped. A malformed field fails the item:
the error is reported, never silently dropped.

Transport and status failures on a detail fetch abort the
remaining items. An undecodable detail body aborts a sequential
run and fails only its item when items run concurrently.

============================================================
FAN-OUT
============================================================
Items are independent. ``max_concurrency=1`` processes them one
after another; larger values run up to that many items at once.
Record order is not guaranteed in either mode.

============================================================
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional

from metrics_ingestion.clock import ClockProtocol, SystemClock
from metrics_ingestion.exceptions import (
    MalformedResponseError,
    MetricsIngestionError,
    TransportError,
    UpstreamStatusError,
)
from metrics_ingestion.extractor import NumericFieldExtractor
from metrics_ingestion.fetchers import DetailFetcher
from metrics_ingestion.sink import MetricSink
from metrics_ingestion.transport import decode_json_body
from metrics_ingestion.types import (
    CollectorConfig,
    GatherResult,
    MetricRecord,
    NumericValue,
)


logger = logging.getLogger("metrics_ingestion.assembler")


class MetricAssembler:
    """Builds and emits metric records for a list of items."""

    def __init__(
        self,
        detail_fetcher: DetailFetcher,
        config: CollectorConfig,
        extractor: Optional[NumericFieldExtractor] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._detail_fetcher = detail_fetcher
        self._config = config
        self._extractor = extractor or NumericFieldExtractor(source_name=config.name)
        self._clock = clock or SystemClock()

    # =========================================================
    # SINGLE ITEM
    # =========================================================

    async def assemble(self, item_id: str) -> Optional[MetricRecord]:
        """
        Fetch and flatten one item.

        Returns:
            MetricRecord, or None if no configured field was present

        Raises:
            TransportError, UpstreamStatusError: From the detail fetch
            MalformedResponseError: If the detail body is not JSON
            MalformedNumericFieldError: If a field is present but not numeric
        """
        body = await self._detail_fetcher.fetch_detail(item_id)
        document = decode_json_body(body, source_name=self._config.name)
        return self.build_record(item_id, document)

    def build_record(self, item_id: str, document) -> Optional[MetricRecord]:
        """Extract configured fields from a decoded detail document."""
        fields: Dict[str, NumericValue] = {}
        for spec in self._config.fields:
            value = self._extractor.extract(document, spec.path)
            if value is not None:
                fields[spec.name] = value

        if not fields:
            return None

        return MetricRecord(
            name=self._config.name,
            tag_key=self._config.tag_key,
            tag=item_id,
            fields=fields,
            timestamp=self._clock.now(),
        )

    # =========================================================
    # ALL ITEMS
    # =========================================================

    async def assemble_all(
        self,
        item_ids: Iterable[str],
        sink: MetricSink,
        result: GatherResult,
    ) -> None:
        """
        Process every item, emitting records and recording item errors.

        Item errors are added to ``result``. Fatal errors, or any item error
        with ``fail_fast``, are raised instead and remaining items are not
        started; in-flight items are cancelled.
        """
        item_ids = list(item_ids)

        if self._config.max_concurrency <= 1:
            for item_id in item_ids:
                await self._process(item_id, sink, result)
            return

        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def bounded(item_id: str) -> None:
            async with semaphore:
                await self._process(item_id, sink, result)

        tasks = [asyncio.ensure_future(bounded(item_id)) for item_id in item_ids]
        try:
            await asyncio.gather(*tasks)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _process(
        self,
        item_id: str,
        sink: MetricSink,
        result: GatherResult,
    ) -> None:
        try:
            record = await self.assemble(item_id)
        except MetricsIngestionError as e:
            if e.item_id is None:
                e.item_id = item_id
            if self._config.fail_fast or self._is_fatal(e):
                raise
            result.add_item_error(item_id, e)
            logger.warning(f"[{self._config.name}] item {item_id} failed: {e}")
            return

        if record is None:
            result.items_empty += 1
            logger.debug(f"[{self._config.name}] item {item_id} had no numeric fields")
            return

        sink.emit(record)
        result.records_emitted += 1

    def _is_fatal(self, error: MetricsIngestionError) -> bool:
        """Whether an item failure must abort the rest of the cycle."""
        if isinstance(error, (TransportError, UpstreamStatusError)):
            return True
        if isinstance(error, MalformedResponseError):
            return self._config.max_concurrency <= 1
        return False
