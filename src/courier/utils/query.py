"""Paging helper for repository queries.

Protean querysets return a bounded page by default; ``fetch_all`` walks
the pages so callers can reason about the full result.
"""

_PAGE_SIZE = 500


def fetch_all(queryset, page_size: int = _PAGE_SIZE) -> list:
    items = []
    offset = 0
    while True:
        page = queryset.offset(offset).limit(page_size).all()
        items.extend(page.items)
        if len(page.items) < page_size:
            return items
        offset += page_size
