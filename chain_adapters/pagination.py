"""
Pagination & Deduplication - the accumulation pattern every adapter follows.

A provider describes one query angle as ``fetch_page(token) -> Page``.
``paginate`` drives it until the upstream signals the end; ``accumulate``
merges several angles and drops records already reached through an
earlier angle (keyed by tx hash or equivalent).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Hashable, Optional, Sequence


logger = logging.getLogger(__name__)

PageFetcher = Callable[[Optional[Any]], Awaitable["Page"]]
KeyFunc = Callable[[Any], Optional[Hashable]]


@dataclass
class Page:
    """
    One page of raw upstream records.

    ``next_token`` is the continuation (opaque cursor or numeric offset).
    ``has_more`` is an explicit upstream flag when the API provides one.
    """
    items: list[Any] = field(default_factory=list)
    next_token: Optional[Any] = None
    has_more: Optional[bool] = None


def is_last_page(page: Page, page_size: Optional[int]) -> bool:
    """Check whether a page ends the sequence."""
    if not page.items:
        return True
    if page.has_more is False:
        return True
    if page.next_token is None or page.next_token == "":
        return True
    if page_size is not None and len(page.items) < page_size:
        return True
    return False


async def paginate(
    fetch_page: PageFetcher,
    page_size: Optional[int] = None,
    start_token: Optional[Any] = None,
    max_pages: Optional[int] = None,
) -> AsyncIterator[Page]:
    """
    Yield pages until the upstream has no more data.

    Stops on an empty page, an explicit ``has_more=False``, a missing
    continuation token, or a page shorter than ``page_size``.

    Args:
        fetch_page: Coroutine taking the continuation token
        page_size: Requested page size (short page means last page)
        start_token: Initial continuation token
        max_pages: Optional hard stop
    """
    token = start_token
    count = 0
    while True:
        page = await fetch_page(token)
        count += 1
        if page.items:
            yield page
        if is_last_page(page, page_size):
            return
        if page.next_token == token:
            logger.warning("Pagination token did not advance, stopping")
            return
        if max_pages is not None and count >= max_pages:
            logger.warning(f"Pagination stopped at max_pages={max_pages}")
            return
        token = page.next_token


def offset_start(cursor: Optional[str]) -> Optional[int]:
    """
    Starting offset from a caller-supplied cursor, for offset-paged APIs.

    Raises:
        ValueError: Cursor is not a non-negative integer
    """
    if cursor is None or cursor == "":
        return None
    try:
        offset = int(cursor)
    except (TypeError, ValueError):
        raise ValueError(f"Cursor must be a numeric offset for this chain, got {cursor!r}")
    if offset < 0:
        raise ValueError("Cursor offset must not be negative")
    return offset


class DedupAccumulator:
    """
    Merge records from several query angles, keeping the first occurrence
    of each natural key. Records whose key is None are always kept.
    """

    def __init__(self, key_fn: KeyFunc) -> None:
        self._key_fn = key_fn
        self._seen: set[Hashable] = set()
        self._items: list[Any] = []
        self.duplicates = 0

    def add_page(self, records: Sequence[Any]) -> list[Any]:
        """
        Add a page of records.

        Returns:
            The records not seen before, in page order
        """
        fresh = []
        for record in records:
            key = self._key_fn(record)
            if key is not None:
                if key in self._seen:
                    self.duplicates += 1
                    continue
                self._seen.add(key)
            fresh.append(record)
        self._items.extend(fresh)
        return fresh

    @property
    def items(self) -> list[Any]:
        """All unique records in arrival order."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


async def accumulate(
    angles: Sequence[PageFetcher],
    key_fn: KeyFunc,
    page_size: Optional[int] = None,
    on_page: Optional[Callable[[list[Any]], None]] = None,
    start_token: Optional[Any] = None,
) -> list[Any]:
    """
    Drive every query angle to completion and merge their pages.

    Args:
        angles: One page fetcher per query angle (e.g. sender, recipient)
        key_fn: Natural identifier of a raw record
        page_size: Requested page size
        on_page: Called with each page's newly seen records
        start_token: Continuation every angle resumes from

    Returns:
        Unique raw records in arrival order
    """
    accumulator = DedupAccumulator(key_fn)
    for fetch_page in angles:
        async for page in paginate(fetch_page, page_size, start_token=start_token):
            fresh = accumulator.add_page(page.items)
            if fresh and on_page is not None:
                on_page(fresh)
    if accumulator.duplicates:
        logger.debug(f"Dropped {accumulator.duplicates} duplicate records across query angles")
    return accumulator.items
