"""Offset pagination over Spotify-style paging objects"""

import logging
from typing import Callable, Iterator, TypeVar

from core.models import Page

logger = logging.getLogger(__name__)

PAGE_SIZE = 50

T = TypeVar("T")


def iter_pages(fetch_page: Callable[[int, int], Page[T]], limit: int = PAGE_SIZE) -> Iterator[Page[T]]:
    """
    Yield pages from fetch_page(limit, offset) until offset >= total.

    The offset advances by the page's own offset + limit, and the total is
    re-read from every page, so a listing that grows or shrinks mid-scan
    still terminates.
    """
    offset = 0
    while True:
        page = fetch_page(limit, offset)
        yield page
        offset = page.next_offset
        if offset >= page.total:
            break
        logger.debug(f"Next page at offset {offset} of {page.total}")
