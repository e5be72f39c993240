"""
utils/pagination.py
--------------------

Helpers for iterating through paginated catalog responses.

The catalog store pages with row offsets. ``paginate`` abstracts the
control flow and enforces limits to avoid runaway loops. It stops when:

* A page returns an empty list of items.
* The next token is missing from the response.
* The next token is identical to the previous token.
* The configured maximum number of pages or items is reached.

Reaching a limit truncates the result without an error; callers that
must have every row compare the count against the total the store
reports (see ``parse_content_range``).

``page_bounds`` translates the wizard's zero-based page number and
page size into the inclusive row range the store expects.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple
from app.core.config import get_settings


def paginate(
    fetch_page: Callable[[Any], Any],
    extract: Callable[[Any], Tuple[List[Any], Optional[Any]]],
    initial_token: Any = 0,
) -> List[Any]:
    """Iterate through pages of an API until termination criteria are met.

    :param fetch_page: function accepting a page token (an offset for the
        catalog) and returning the raw page
    :param extract: function taking the raw page and returning
        ``(items, next_token)``; ``None`` signals the last page
    :param initial_token: starting token (defaults to offset ``0``)
    :return: a list containing all collected items across pages
    """
    settings = get_settings()
    items: List[Any] = []
    token = initial_token
    previous_token = None
    page_count = 0

    while True:
        page_count += 1
        if page_count > settings.max_pages:
            break
        raw = fetch_page(token)
        page_items, next_token = extract(raw)
        if not page_items:
            break
        items.extend(page_items)
        if len(items) >= settings.max_items:
            break
        if next_token is None or next_token == previous_token:
            break
        previous_token = token
        token = next_token
    return items


def page_bounds(page: int, page_size: int) -> Tuple[int, int]:
    """Return the inclusive ``(first, last)`` row indexes of a page."""
    first = page * page_size
    return first, first + page_size - 1


def parse_content_range(value: Optional[str]) -> Optional[int]:
    """Extract the total row count from a ``Content-Range`` header.

    ``"0-9/42"`` gives ``42``; ``"*/0"`` gives ``0``; an unknown total
    (``"0-9/*"``) or a missing header gives ``None``.
    """
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        return None
    return int(total)
