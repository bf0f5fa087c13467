DEFAULT_PAGE = 1
MAX_LIMIT = 100


def paginate(query, page=DEFAULT_PAGE, limit=50):
    """Paginate a Flask-SQLAlchemy query and return ``(items, pagination_dict)``."""
    page = max(int(page or DEFAULT_PAGE), 1)
    limit = min(max(int(limit or 1), 1), MAX_LIMIT)
    result = query.paginate(page=page, per_page=limit, error_out=False)
    return result.items, {
        "current_page": page,
        "total_pages": result.pages,
        "total_count": result.total,
        "limit": limit,
        "has_next_page": result.has_next,
        "has_prev_page": result.has_prev,
    }
