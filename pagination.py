"""
Cursor pagination for QRZ Logbook FETCH calls.
"""

import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from fetch_filter import FetchFilter
from logbook_results import FetchResult, PagedResult
from qrz_errors import InvalidParamsError, QRZAPIError

logger = logging.getLogger(__name__)

# Records per FETCH when the filter doesn't set MAX
DEFAULT_PAGE_SIZE = 250

# FAIL reasons the service uses to say "nothing (more) to fetch"
END_OF_DATA_REASONS = ("no result", "no log entries found")

FetchPage = Callable[[FetchFilter], Awaitable[FetchResult]]


def is_end_of_data(error: QRZAPIError) -> bool:
    reason = (error.reason or "").lower()
    return any(marker in reason for marker in END_OF_DATA_REASONS)


class CursorPaginator:
    """
    Walks a remote logbook with AFTER_LOGID until it is exhausted.

    Each page is requested with the cursor set one past the highest logid
    seen so far. Pages are fetched strictly one after another, since every
    cursor depends on the page before it.
    """

    def __init__(self, fetch_page: FetchPage, page_size: Optional[int] = None):
        """
        Initialize paginator.

        Args:
            fetch_page: Coroutine function running one FETCH for a filter
            page_size: Records per page when the filter sets no MAX
                (defaults to DEFAULT_PAGE_SIZE)
        """
        if page_size is not None and (isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0):
            raise InvalidParamsError(f"page_size must be a positive integer, got {page_size!r}")
        self.fetch_page = fetch_page
        self.page_size = page_size or DEFAULT_PAGE_SIZE

    def get_page_size(self, base_filter: FetchFilter) -> int:
        """
        The filter's MAX if it has one, otherwise the paginator default
        """
        return base_filter.page_size or self.page_size

    async def pages(self, base_filter: Optional[FetchFilter] = None) -> AsyncIterator[FetchResult]:
        """
        Yield each non-empty page in order.

        Args:
            base_filter: Criteria to page through (defaults to FetchFilter.all())

        Raises:
            InvalidParamsError: If the base filter is invalid (before any call)
            QRZAPIError: If a page has no logids, or returns a logid not
                above the AFTER_LOGID it was requested with
        """
        base = (base_filter or FetchFilter.all()).copy()
        problems = base.validate()
        if problems:
            raise InvalidParamsError(problems)

        page_size = self.get_page_size(base)
        cursor = base.cursor
        page_num = 0

        while True:
            page_filter = base.copy().max(page_size)
            if cursor is not None:
                page_filter.after_logid(cursor)

            try:
                page = await self.fetch_page(page_filter)
            except QRZAPIError as e:
                if is_end_of_data(e):
                    logger.debug(f"End of data after {page_num} pages: {e.reason}")
                    return
                raise

            if not page.qsos:
                return
            page_num += 1

            ids = page.logids or [qso.logid for qso in page.qsos if qso.logid is not None]
            if not ids:
                raise QRZAPIError(
                    f"missing identifiers: page {page_num} returned "
                    f"{len(page.qsos)} records without logids"
                )
            # AFTER_LOGID is exclusive
            if cursor is not None:
                stale = [logid for logid in ids if logid <= cursor]
                if stale:
                    raise QRZAPIError(
                        f"cursor violation: page {page_num} returned logid "
                        f"{min(stale)} but cursor was {cursor}"
                    )

            logger.debug(
                f"Page {page_num}: {len(page.qsos)} records, "
                f"logids {min(ids)}..{max(ids)}, cursor was {cursor}"
            )
            if page.count is not None and page.count != len(page.qsos):
                logger.warning(
                    f"Page {page_num}: COUNT={page.count} but decoded {len(page.qsos)} records"
                )

            yield FetchResult(count=page.count, logids=ids, qsos=page.qsos)

            cursor = max(ids) + 1
            if len(page.qsos) < page_size:
                return

    async def collect(self, base_filter: Optional[FetchFilter] = None) -> PagedResult:
        """
        Fetch every page and gather the records and logids in arrival order.
        """
        result = PagedResult()
        async for page in self.pages(base_filter):
            result.qsos.extend(page.qsos)
            result.logids.extend(page.logids)
            result.pages += 1

        logger.info(f"Fetched {len(result.qsos)} QSOs in {result.pages} pages")
        return result
