"""
Metrics Ingestion - Collection Walker.

============================================================
RESPONSIBILITY
============================================================
Produces the complete identifier list of a paginated collection.

- Follows continuation tokens until a page carries none
- Pages are fetched strictly one after another
- Any page failure aborts the walk; no partial list is returned

============================================================
ORDERING POLICY
============================================================
PAGE_SEQUENCE    identifiers of page 1, then page 2, ...
LAST_PAGE_FIRST  identifiers of page n first, then n-1, ... as a
                 recurse-then-append traversal would produce them

Within a page the upstream order is kept. Because the whole walk
either succeeds or fails, the choice only changes output order,
never which identifiers are returned. Duplicates keep their
first position.

============================================================
SAFETY
============================================================
The walk is an explicit loop bounded by ``max_pages``; a token
seen twice is treated as an upstream loop.

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Set

from metrics_ingestion.exceptions import (
    MalformedResponseError,
    PaginationLimitError,
    PaginationLoopError,
)
from metrics_ingestion.fetchers import PageFetcher
from metrics_ingestion.paths import MISSING, resolve
from metrics_ingestion.types import IdentifierOrder, ListingConfig


logger = logging.getLogger("metrics_ingestion.walker")


@dataclass
class WalkResult:
    """Identifiers of a full walk plus the number of pages it took."""
    identifiers: List[str] = field(default_factory=list)
    pages_fetched: int = 0


class CollectionWalker:
    """Walks every page of a listing and collects item identifiers."""

    def __init__(
        self,
        page_fetcher: PageFetcher,
        listing: ListingConfig,
        source_name: Optional[str] = None,
    ) -> None:
        self._page_fetcher = page_fetcher
        self._listing = listing
        self._source_name = source_name

    async def walk(self) -> WalkResult:
        """
        Fetch all pages and return their identifiers.

        Raises:
            TransportError, UpstreamStatusError, MalformedResponseError:
                From any page fetch
            PaginationLimitError: If ``max_pages`` pages still end in a token
            PaginationLoopError: If a continuation token repeats
        """
        page_identifiers: List[List[str]] = []
        followed: Set[str] = set()
        token: Optional[str] = None

        while True:
            page = await self._page_fetcher.fetch_page(token)
            identifiers = self.extract_identifiers(page.body)
            page_identifiers.append(identifiers)
            logger.debug(
                f"[{self._source_name}] page {len(page_identifiers)}: "
                f"{len(identifiers)} items, next_token={'yes' if page.next_token else 'no'}"
            )

            if page.is_last:
                break

            if len(page_identifiers) >= self._listing.max_pages:
                raise PaginationLimitError(
                    message=f"Listing exceeded {self._listing.max_pages} pages",
                    max_pages=self._listing.max_pages,
                    source_name=self._source_name,
                )

            if token is not None:
                followed.add(token)
            if page.next_token in followed:
                raise PaginationLoopError(
                    message=f"Continuation token {page.next_token!r} was already followed",
                    token=page.next_token,
                    source_name=self._source_name,
                )
            token = page.next_token

        return WalkResult(
            identifiers=self._ordered(page_identifiers),
            pages_fetched=len(page_identifiers),
        )

    def extract_identifiers(self, document: Any) -> List[str]:
        """
        Read the item identifier list of one decoded page.

        Raises:
            MalformedResponseError: If the items path holds something
                other than identifiers
        """
        value = resolve(document, self._listing.items_path)
        if value is MISSING or value is None:
            return []
        if not isinstance(value, list):
            value = [value]

        identifiers = []
        for element in value:
            if element is None:
                continue
            if isinstance(element, bool) or not isinstance(element, (str, int)):
                raise MalformedResponseError(
                    message=(
                        f"Item identifier at {self._listing.items_path!r} is a "
                        f"{type(element).__name__}, expected a string"
                    ),
                    source_name=self._source_name,
                    body_excerpt=str(element),
                )
            identifiers.append(str(element))
        return identifiers

    def _ordered(self, page_identifiers: List[List[str]]) -> List[str]:
        if self._listing.identifier_order == IdentifierOrder.LAST_PAGE_FIRST:
            page_identifiers = list(reversed(page_identifiers))

        seen: Set[str] = set()
        ordered = []
        for identifiers in page_identifiers:
            for identifier in identifiers:
                if identifier not in seen:
                    seen.add(identifier)
                    ordered.append(identifier)
        return ordered
