"""
Collection Walker Tests.

============================================================
PURPOSE
============================================================
Pagination must terminate correctly, fetch each page exactly
once and return every identifier exactly once.

TEST CATEGORIES:
- Termination: single page, token chains
- Ordering: page sequence vs last page first
- Failures: status errors at any depth, malformed pages
- Guards: page limit, token loops

============================================================
"""

import pytest

from metrics_ingestion.exceptions import (
    MalformedResponseError,
    PaginationLimitError,
    PaginationLoopError,
    TransportError,
    UpstreamStatusError,
)
from metrics_ingestion.fetchers import PageFetcher
from metrics_ingestion.types import IdentifierOrder
from metrics_ingestion.walker import CollectionWalker

from tests.metrics_ingestion.fakes import FakeApi, FakeTransport, make_config, page


def make_walker(pages, **listing_overrides):
    config = make_config(listing=listing_overrides)
    transport = FakeTransport(FakeApi(pages))
    walker = CollectionWalker(PageFetcher(transport, config), config.listing, source_name="test")
    return walker, transport


# ============================================================
# TERMINATION TESTS
# ============================================================

class TestTermination:
    """Walks stop exactly at the last page."""

    @pytest.mark.asyncio
    async def test_single_page(self):
        """Test a page without token is the whole collection."""
        walker, transport = make_walker({None: page(["a", "b", "c"])})

        result = await walker.walk()

        assert result.identifiers == ["a", "b", "c"]
        assert result.pages_fetched == 1
        assert len(transport.requests) == 1
        assert "pageToken" not in transport.requests[0].params

    @pytest.mark.asyncio
    async def test_chain_fetches_each_page_once(self):
        """Test n chained pages cost exactly n fetches."""
        pages = {
            None: page(["a"], next_token="t1"),
            "t1": page(["b"], next_token="t2"),
            "t2": page(["c"], next_token="t3"),
            "t3": page(["d"]),
        }
        walker, transport = make_walker(pages)

        result = await walker.walk()

        assert sorted(result.identifiers) == ["a", "b", "c", "d"]
        assert result.pages_fetched == 4
        tokens = [r.params.get("pageToken") for r in transport.requests]
        assert tokens == [None, "t1", "t2", "t3"]

    @pytest.mark.asyncio
    async def test_two_page_listing(self):
        """Test two pages yield three unique identifiers."""
        pages = {
            None: page(["a", "b"], next_token="page2"),
            "page2": page(["c"]),
        }
        walker, _ = make_walker(pages)

        result = await walker.walk()

        assert len(result.identifiers) == 3
        assert set(result.identifiers) == {"a", "b", "c"}

    @pytest.mark.asyncio
    async def test_empty_token_is_last_page(self):
        """Test an empty-string token ends the walk."""
        body = page(["a"])
        body["nextPageToken"] = ""
        walker, transport = make_walker({None: body})

        result = await walker.walk()

        assert result.identifiers == ["a"]
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_page_without_items(self):
        """Test a page without an items list contributes nothing."""
        walker, _ = make_walker({
            None: {"nextPageToken": "t1"},
            "t1": page(["z"]),
        })

        result = await walker.walk()

        assert result.identifiers == ["z"]


# ============================================================
# ORDERING TESTS
# ============================================================

class TestOrdering:
    """Identifier order across pages."""

    PAGES = {
        None: page(["a", "b"], next_token="t1"),
        "t1": page(["c", "d"], next_token="t2"),
        "t2": page(["e"]),
    }

    @pytest.mark.asyncio
    async def test_page_sequence(self):
        """Test default order follows page order."""
        walker, _ = make_walker(self.PAGES)

        result = await walker.walk()

        assert result.identifiers == ["a", "b", "c", "d", "e"]

    @pytest.mark.asyncio
    async def test_last_page_first(self):
        """Test reversed page order keeps in-page order."""
        walker, _ = make_walker(self.PAGES, identifier_order=IdentifierOrder.LAST_PAGE_FIRST)

        result = await walker.walk()

        assert result.identifiers == ["e", "c", "d", "a", "b"]

    @pytest.mark.asyncio
    async def test_duplicates_removed(self):
        """Test an item listed on two pages appears once."""
        walker, _ = make_walker({
            None: page(["a", "b"], next_token="t1"),
            "t1": page(["b", "c"]),
        })

        result = await walker.walk()

        assert result.identifiers == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_numeric_identifiers_become_strings(self):
        """Test integer ids are returned as strings."""
        walker, _ = make_walker({None: {"items": [{"id": 101}, {"id": 102}]}})

        result = await walker.walk()

        assert result.identifiers == ["101", "102"]


# ============================================================
# FAILURE TESTS
# ============================================================

class TestFailures:
    """Any page failure aborts the walk."""

    @pytest.mark.asyncio
    async def test_status_error_on_later_page(self):
        """Test a failing second page discards the first page."""
        walker, _ = make_walker({
            None: page(["a"], next_token="t1"),
            "t1": (503, {"error": "unavailable"}),
        })

        with pytest.raises(UpstreamStatusError) as exc_info:
            await walker.walk()

        assert exc_info.value.status_code == 503
        assert exc_info.value.is_server_error()

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        """Test connection failures are not swallowed."""
        walker, _ = make_walker({None: TransportError("connection refused")})

        with pytest.raises(TransportError):
            await walker.walk()

    @pytest.mark.asyncio
    async def test_invalid_json_page(self):
        """Test a non-JSON page is a malformed response."""
        walker, _ = make_walker({None: "not json"})

        with pytest.raises(MalformedResponseError):
            await walker.walk()

    @pytest.mark.asyncio
    async def test_object_identifier_rejected(self):
        """Test identifiers must be scalars."""
        walker, _ = make_walker({None: {"items": [{"id": {"nested": "x"}}]}})

        with pytest.raises(MalformedResponseError, match="expected a string"):
            await walker.walk()


# ============================================================
# GUARD TESTS
# ============================================================

class TestGuards:
    """Runaway pagination is stopped."""

    @pytest.mark.asyncio
    async def test_page_limit(self):
        """Test a chain longer than max_pages fails after max_pages fetches."""
        pages = {None: page(["p0"], next_token="t1")}
        for n in range(1, 10):
            pages[f"t{n}"] = page([f"p{n}"], next_token=f"t{n + 1}")
        walker, transport = make_walker(pages, max_pages=3)

        with pytest.raises(PaginationLimitError) as exc_info:
            await walker.walk()

        assert exc_info.value.max_pages == 3
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_chain_of_exactly_max_pages(self):
        """Test a chain ending on the last allowed page succeeds."""
        walker, _ = make_walker({
            None: page(["a"], next_token="t1"),
            "t1": page(["b"]),
        }, max_pages=2)

        result = await walker.walk()

        assert result.pages_fetched == 2

    @pytest.mark.asyncio
    async def test_token_loop(self):
        """Test a token pointing back to an earlier page is detected."""
        walker, transport = make_walker({
            None: page(["a"], next_token="t1"),
            "t1": page(["b"], next_token="t2"),
            "t2": page(["c"], next_token="t1"),
        })

        with pytest.raises(PaginationLoopError) as exc_info:
            await walker.walk()

        assert exc_info.value.token == "t1"
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_self_referencing_token(self):
        """Test a page returning its own token is detected."""
        walker, transport = make_walker({
            None: page(["a"], next_token="t1"),
            "t1": page(["b"], next_token="t1"),
        })

        with pytest.raises(PaginationLoopError):
            await walker.walk()

        assert len(transport.requests) == 2
