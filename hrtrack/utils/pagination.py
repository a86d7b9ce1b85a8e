"""
Offset pagination for SQLAlchemy list queries
"""
import math
from typing import Any, Dict

from sqlalchemy.orm import Query


def paginate(query: Query, page: int, limit: int) -> Dict[str, Any]:
    """
    Run `query` for one page.

    Returns:
        dict with items, total, page, pages
    """
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit else 0,
    }
