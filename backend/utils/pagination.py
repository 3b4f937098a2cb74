from sqlalchemy import or_

DEFAULT_PER_PAGE = 50
MAX_PER_PAGE = 500


def apply_search(query, model, search_term, search_columns):
    """Case-insensitive substring match over the given column names."""
    if not search_term:
        return query
    pattern = f"%{search_term.strip()}%"
    return query.filter(or_(*[getattr(model, col).ilike(pattern) for col in search_columns]))


def paginate(query, page=1, per_page=DEFAULT_PER_PAGE, serialize=None):
    """
    Paginate a Flask-SQLAlchemy query and return the JSON envelope the list
    endpoints share: ``{items, total, page, pages}``.
    """
    page = page if page and page > 0 else 1
    per_page = min(per_page if per_page and per_page > 0 else DEFAULT_PER_PAGE, MAX_PER_PAGE)

    result = query.paginate(page=page, per_page=per_page, error_out=False)
    serialize = serialize or (lambda item: item.to_dict())
    return {
        "items": [serialize(item) for item in result.items],
        "total": result.total,
        "page": result.page,
        "pages": result.pages,
    }
