"""
Metrics Ingestion - Metrics Collector.

============================================================
RESPONSIBILITY
============================================================
Runs one gather cycle for a configured collection.

1. Walk every listing page and collect item identifiers
2. Assemble and emit one metric record per item
3. Report the cycle as a GatherResult

============================================================
FAILURE POLICY
============================================================
- Walk failures fail the cycle: no identifiers, no work
- Detail transport and status failures fail the cycle and stop
  further detail requests
- Malformed item data is collected; other items still emit
  ("succeeded with N item errors")
- ``fail_fast`` turns the first item failure into a cycle failure
- ``cycle_timeout_seconds`` bounds the whole cycle; on expiry
  in-flight requests are cancelled and the cycle fails
- gather() never raises for ingestion errors; caller
  cancellation propagates as usual

No state survives between cycles.

============================================================
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from metrics_ingestion.assembler import MetricAssembler
from metrics_ingestion.clock import ClockProtocol, SystemClock
from metrics_ingestion.exceptions import MetricsIngestionError, TransportError
from metrics_ingestion.fetchers import DetailFetcher, PageFetcher
from metrics_ingestion.sink import MetricSink
from metrics_ingestion.transport import AiohttpTransport, Transport
from metrics_ingestion.types import CollectorConfig, GatherResult, GatherStatus
from metrics_ingestion.walker import CollectionWalker


class MetricsCollector:
    """
    Gathers metrics for one paginated collection.

    ============================================================
    USAGE
    ============================================================
    ```python
    config = youtube_playlist_config("PL...", api_key="...")
    async with create_collector(config) as collector:
        result = await collector.gather(LoggingSink())
    ```

    ============================================================
    """

    def __init__(
        self,
        config: CollectorConfig,
        transport: Transport,
        clock: Optional[ClockProtocol] = None,
        owns_transport: bool = False,
    ) -> None:
        """
        Initialize the collector.

        Args:
            config: Collector configuration
            transport: HTTP transport shared by all requests of a cycle
            clock: Clock for record and cycle timestamps
            owns_transport: Close the transport on close()
        """
        self._config = config
        self._transport = transport
        self._clock = clock or SystemClock()
        self._owns_transport = owns_transport
        self._logger = logging.getLogger(f"metrics_ingestion.collector.{config.name}")

        page_fetcher = PageFetcher(transport, config)
        self._walker = CollectionWalker(page_fetcher, config.listing, source_name=config.name)
        self._assembler = MetricAssembler(
            DetailFetcher(transport, config),
            config,
            clock=self._clock,
        )

    @property
    def source_name(self) -> str:
        return self._config.name

    @property
    def config(self) -> CollectorConfig:
        return self._config

    # =========================================================
    # GATHER CYCLE
    # =========================================================

    async def gather(self, sink: MetricSink) -> GatherResult:
        """
        Run one complete gather cycle.

        Args:
            sink: Receives every emitted record

        Returns:
            GatherResult with counts, status and errors
        """
        result = GatherResult(source=self.source_name, started_at=self._clock.now())

        if not self._config.enabled:
            result.status = GatherStatus.SKIPPED
            result.mark_complete(self._clock.now())
            self._logger.info(f"Collector {self.source_name} is disabled, skipping")
            return result

        self._logger.info(f"Starting gather for {self.source_name}")

        try:
            if self._config.cycle_timeout_seconds:
                await asyncio.wait_for(
                    self._run(sink, result),
                    timeout=self._config.cycle_timeout_seconds,
                )
            else:
                await self._run(sink, result)

        except asyncio.TimeoutError as e:
            result.mark_failed(TransportError(
                message=f"Gather cycle exceeded {self._config.cycle_timeout_seconds}s",
                source_name=self.source_name,
                timeout=True,
                original_error=e,
            ))

        except MetricsIngestionError as e:
            result.mark_failed(e)

        except Exception as e:
            self._logger.exception(f"Unexpected error in {self.source_name}")
            result.mark_failed(MetricsIngestionError(
                message=f"Unexpected error: {e}",
                source_name=self.source_name,
                original_error=e,
            ))

        result.mark_complete(self._clock.now())
        self._log_result(result)
        return result

    async def _run(self, sink: MetricSink, result: GatherResult) -> None:
        walk = await self._walker.walk()
        result.pages_fetched = walk.pages_fetched
        result.items_found = len(walk.identifiers)
        self._logger.info(
            f"Walked {walk.pages_fetched} pages, {result.items_found} items for {self.source_name}"
        )

        await self._assembler.assemble_all(walk.identifiers, sink, result)

    def _log_result(self, result: GatherResult) -> None:
        log_data = result.to_dict()

        if result.status == GatherStatus.SUCCESS:
            self._logger.info(f"Gather complete: {log_data}")
        elif result.status == GatherStatus.PARTIAL:
            self._logger.warning(f"Gather {result.summary()}: {log_data}")
        else:
            self._logger.error(f"Gather failed: {log_data}")

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def close(self) -> None:
        if self._owns_transport:
            await self._transport.close()

    async def __aenter__(self) -> "MetricsCollector":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.source_name})>"


def create_collector(
    config: CollectorConfig,
    session: Optional[aiohttp.ClientSession] = None,
    clock: Optional[ClockProtocol] = None,
) -> MetricsCollector:
    """
    Create a collector with an aiohttp transport.

    Args:
        config: Collector configuration
        session: Optional existing session to borrow
        clock: Optional clock override

    Returns:
        MetricsCollector that closes its transport on exit
    """
    transport = AiohttpTransport(
        timeout=config.timeout_seconds,
        session=session,
        source_name=config.name,
    )
    return MetricsCollector(config, transport, clock=clock, owns_transport=True)
