"""
Metrics Ingestion - Page and Detail Fetchers.

============================================================
RESPONSIBILITY
============================================================
Build and send the two request kinds of a collector:

- PageFetcher: one listing page, optionally continued by token
- DetailFetcher: one per-item detail document

Each call is exactly one round trip through the injected
transport. Non-200 answers raise UpstreamStatusError; nothing
is retried here.

============================================================
REQUEST SHAPE
============================================================
GET  - static params, credentials and paging params are merged
       into the URL query string
POST - the same parameters, including any already present in
       the URL query, are sent as a form body

============================================================
"""

import logging
from typing import List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from metrics_ingestion.exceptions import UpstreamStatusError
from metrics_ingestion.paths import MISSING, resolve
from metrics_ingestion.transport import Transport, decode_json_body, mask_url
from metrics_ingestion.types import (
    CollectionPage,
    CollectorConfig,
    HttpMethod,
)


Params = List[Tuple[str, str]]


class _EndpointFetcher:
    """Shared request building and status handling."""

    def __init__(
        self,
        transport: Transport,
        config: CollectorConfig,
        logger_name: str,
    ) -> None:
        self._transport = transport
        self._config = config
        self._logger = logging.getLogger(logger_name)

    @property
    def source_name(self) -> str:
        return self._config.name

    def _credential_params(self) -> Params:
        if self._config.api_key:
            return [(self._config.api_key_param, self._config.api_key)]
        return []

    def _mask(self, url: str) -> str:
        return mask_url(url, extra_params=[self._config.api_key_param])

    def build_request(
        self,
        url: str,
        method: HttpMethod,
        params: Sequence[Tuple[str, str]],
    ) -> Tuple[str, dict, Optional[bytes]]:
        """
        Build the final URL, headers and body for a request.

        Returns:
            (url, headers, body) tuple
        """
        headers = dict(self._config.headers)
        scheme, netloc, path, query, fragment = urlsplit(url)
        merged = parse_qsl(query, keep_blank_values=True) + list(params)

        if method == HttpMethod.POST:
            headers.setdefault("Content-Type", "application/x-www-form-urlencoded")
            body = urlencode(merged).encode("utf-8")
            return urlunsplit((scheme, netloc, path, "", fragment)), headers, body

        return urlunsplit((scheme, netloc, path, urlencode(merged), fragment)), headers, None

    async def _send(
        self,
        url: str,
        method: HttpMethod,
        params: Sequence[Tuple[str, str]],
    ) -> bytes:
        request_url, headers, body = self.build_request(url, method, params)
        response = await self._transport.request(
            method.value,
            request_url,
            headers=headers,
            body=body,
        )

        if not response.ok:
            raise UpstreamStatusError(
                message=(
                    f"Response from url \"{self._mask(request_url)}\" has status code "
                    f"{response.status_code}, expected 200"
                ),
                status_code=response.status_code,
                request_url=self._mask(request_url),
                source_name=self.source_name,
                response_body=response.text(limit=500),
            )

        self._logger.debug(
            f"[{self.source_name}] {method.value} {self._mask(request_url)} "
            f"ok in {response.elapsed_seconds * 1000:.1f}ms"
        )
        return response.body


# =============================================================
# PAGE FETCHER
# =============================================================

class PageFetcher(_EndpointFetcher):
    """Fetches one page of the paginated listing endpoint."""

    def __init__(self, transport: Transport, config: CollectorConfig) -> None:
        super().__init__(transport, config, "metrics_ingestion.fetchers.page")
        self._listing = config.listing

    def listing_params(self, token: Optional[str] = None) -> Params:
        """Parameters for one listing request."""
        listing = self._listing
        params: Params = list(listing.params)
        if listing.collection_param and listing.collection_id:
            params.append((listing.collection_param, listing.collection_id))
        if listing.page_size_param and listing.page_size:
            params.append((listing.page_size_param, str(listing.page_size)))
        params.extend(self._credential_params())
        if token:
            params.append((listing.token_param, token))
        return params

    async def fetch_page(self, token: Optional[str] = None) -> CollectionPage:
        """
        Fetch one listing page.

        Args:
            token: Continuation token from the previous page, if any

        Returns:
            CollectionPage with decoded body and next token

        Raises:
            TransportError: On network failure
            UpstreamStatusError: On a non-200 status
            MalformedResponseError: If the body is not JSON
        """
        body = await self._send(
            self._listing.url,
            self._listing.method,
            self.listing_params(token),
        )
        document = decode_json_body(body, self._mask(self._listing.url), self.source_name)
        return CollectionPage(body=document, next_token=self.next_token(document))

    def next_token(self, document) -> Optional[str]:
        """Continuation token of a decoded page; None on the last page."""
        value = resolve(document, self._listing.token_path)
        if value is MISSING or value is None or value == "":
            return None
        return str(value)


# =============================================================
# DETAIL FETCHER
# =============================================================

class DetailFetcher(_EndpointFetcher):
    """Fetches the detail document for one item."""

    def __init__(self, transport: Transport, config: CollectorConfig) -> None:
        super().__init__(transport, config, "metrics_ingestion.fetchers.detail")
        self._detail = config.detail

    def detail_url(self, item_id: str) -> str:
        if self._detail.has_placeholder:
            return self._detail.url.replace("{item_id}", quote(item_id, safe=""))
        return self._detail.url

    def detail_params(self, item_id: str) -> Params:
        params: Params = list(self._detail.params)
        if not self._detail.has_placeholder:
            params.append((self._detail.id_param, item_id))
        params.extend(self._credential_params())
        return params

    async def fetch_detail(self, item_id: str) -> bytes:
        """
        Fetch the raw detail body for one item.

        Raises:
            TransportError: On network failure
            UpstreamStatusError: On a non-200 status
        """
        return await self._send(
            self.detail_url(item_id),
            self._detail.method,
            self.detail_params(item_id),
        )
