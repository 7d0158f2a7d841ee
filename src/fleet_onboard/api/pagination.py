#!/usr/bin/env python3
"""Cursor pagination for listing calls that cap their result size.

Some platform listings (MyAdmin's GetCurrentDeviceDatabases in particular)
return at most a fixed number of records per call. To read the whole set,
the caller passes the identifier of the last record it received as the
cursor for the next call, and keeps going while pages come back full.

Design Philosophy:
    The collector knows HOW to page, not WHAT it is paging. The caller binds
    the listing call and its fixed filter parameters into a single
    ``fetch_page(cursor)`` callable, and supplies ``cursor_of(record)`` to
    derive the next cursor.

Usage:
    collector = PagedCollector(
        lambda cursor: admin.get_current_device_databases("ACME01", next_id=cursor),
        cursor_of=lambda record: record["id"],
        source="GetCurrentDeviceDatabases",
    )
    records = await collector.collect()
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

from .exceptions import CollectionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ============================================
# Configuration
# ============================================

@dataclass
class PaginationConfig:
    """Configuration for cursor-paginated listings.

    Attributes:
        page_size: Server-side result set limit. A page of exactly this size
            means more records may follow.
        delay_between_pages: Seconds to wait between calls
        max_pages: Safety limit; exceeding it fails the collection
            (None = no limit)
    """
    page_size: int = 1000
    delay_between_pages: float = 0.0
    max_pages: Optional[int] = None


# MyAdmin GetCurrentDeviceDatabases returns at most 1000 records per call
DEVICE_DATABASES_PAGINATION = PaginationConfig(page_size=1000)


class PagedCollector(Generic[T]):
    """Fetch every page of a cursor-paginated listing.

    Attributes:
        config: Pagination settings
        calls: Number of page fetches made by the last run
    """

    def __init__(
        self,
        fetch_page: Callable[[Any], Awaitable[list[T]]],
        cursor_of: Callable[[T], Any],
        config: Optional[PaginationConfig] = None,
        initial_cursor: Any = 0,
        source: str = "listing",
    ):
        """Initialize the collector.

        Args:
            fetch_page: Listing call bound to its filter parameters,
                taking the continuation cursor
            cursor_of: Derives the next cursor from the last record of a page
            config: Pagination settings (defaults to 1000-record pages)
            initial_cursor: Cursor for the first call
            source: Listing name used in logs and errors
        """
        self.fetch_page = fetch_page
        self.cursor_of = cursor_of
        self.config = config or PaginationConfig()
        self.initial_cursor = initial_cursor
        self.source = source
        self.calls = 0

    async def pages(self) -> AsyncIterator[list[T]]:
        """Yield pages in server order until a short page arrives.

        Raises:
            CollectionError: If any page fetch fails or max_pages is exceeded
        """
        self.calls = 0
        cursor = self.initial_cursor
        fetched = 0

        while True:
            if self.config.max_pages and self.calls >= self.config.max_pages:
                raise CollectionError(
                    f"{self.source} exceeded {self.config.max_pages} pages",
                    source=self.source,
                    records_before_failure=fetched,
                )

            try:
                page = await self.fetch_page(cursor)
            except Exception as e:
                logger.error(f"Paging {self.source} failed after {fetched:,} records: {e}")
                raise CollectionError(
                    f"Failed to fetch page {self.calls + 1} of {self.source}: {e}",
                    source=self.source,
                    records_before_failure=fetched,
                    cause=e,
                )

            self.calls += 1
            page = list(page or [])
            fetched += len(page)
            logger.debug(f"{self.source}: page {self.calls} returned {len(page)} records")

            if page:
                yield page

            if len(page) < self.config.page_size:
                break

            try:
                cursor = self.cursor_of(page[-1])
            except Exception as e:
                logger.error(f"Paging {self.source} failed after {fetched:,} records: {e!r}")
                raise CollectionError(
                    f"Page {self.calls} of {self.source} has no usable cursor: {e!r}",
                    source=self.source,
                    records_before_failure=fetched,
                    cause=e,
                )

            if self.config.delay_between_pages > 0:
                await asyncio.sleep(self.config.delay_between_pages)

        logger.info(f"Paging {self.source} complete: {fetched:,} records in {self.calls} calls")

    async def collect(self) -> list[T]:
        """Return the order-preserving concatenation of every page."""
        records: list[T] = []
        async for page in self.pages():
            records.extend(page)
        return records
