"""
Paginated retrieval from sorted GitHub listings.

GitHub listings can be arbitrarily long, so callers walk pages in order and
stop as soon as a predicate says everything they need has been seen.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

PageSource = Callable[[int], Awaitable[Sequence[T]]]
StopPredicate = Callable[[Sequence[T]], bool]


class PaginatedFetcher(Generic[T]):
    """
    Walks the pages of a listing until a stopping predicate fires.

    Pages are requested one at a time, in order, and accumulated into a
    single flat list. An empty page means the listing is exhausted.
    """

    def __init__(self, max_pages: int | None = None) -> None:
        self.max_pages = max_pages
        self.pages_requested = 0

    async def fetch_until(
        self, page_source: PageSource[T], stop: StopPredicate[T]
    ) -> list[T]:
        """
        Fetch pages until ``stop`` is true for the latest page.

        Args:
            page_source: Coroutine returning the items of a zero-based page
            stop: Predicate evaluated on each page just fetched

        Returns:
            Items of every fetched page, in listing order
        """
        items: list[T] = []
        page = 0
        self.pages_requested = 0

        while self.max_pages is None or page < self.max_pages:
            page_items = await page_source(page)
            self.pages_requested += 1

            if not page_items:
                logger.debug("Listing exhausted", pages=self.pages_requested)
                break

            items.extend(page_items)

            if stop(page_items):
                logger.debug("Stop condition reached", pages=self.pages_requested)
                break

            page += 1

        return items
