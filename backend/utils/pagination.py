import math

from config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


def clamp_page(page) -> int:
    try:
        page = int(page)
    except (TypeError, ValueError):
        return 1
    return max(page, 1)


def clamp_limit(limit, default: int = DEFAULT_PAGE_SIZE) -> int:
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        return default
    return min(max(limit, 1), MAX_PAGE_SIZE)


def skip_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def build_pagination(page: int, limit: int, total_items: int) -> dict:
    total_pages = math.ceil(total_items / limit) if total_items else 0
    has_next = page < total_pages
    has_prev = page > 1

    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total_items,
        "itemsPerPage": limit,
        "hasNextPage": has_next,
        "hasPrevPage": has_prev,
        "nextPage": page + 1 if has_next else None,
        "prevPage": page - 1 if has_prev else None,
    }
