import math
from dataclasses import dataclass
from typing import Any, Dict, List

from fastapi import Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# keeps OFFSET well inside a signed 64-bit bind
MAX_PAGE = 1_000_000


@dataclass(frozen=True)
class PageParams:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(DEFAULT_PAGE, ge=1, le=MAX_PAGE, description="1-based page number"),
    limit: int = Query(DEFAULT_LIMIT, gt=0, le=MAX_LIMIT, description="Items per page"),
) -> PageParams:
    return PageParams(page=page, limit=limit)


def total_pages(total_items: int, limit: int) -> int:
    return math.ceil(total_items / limit)


def page_envelope(items: List[Any], total_items: int, params: PageParams) -> Dict[str, Any]:
    return {
        "items": items,
        "totalItems": total_items,
        "totalPages": total_pages(total_items, params.limit),
        "currentPage": params.page,
        "itemsPerPage": params.limit,
    }


def paginate(db: Session, query: Select, params: PageParams) -> Dict[str, Any]:
    """
    Run a count and a windowed fetch for `query`.
    The query must already carry its ORDER BY so that pages line up.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total_items = db.execute(count_query).scalar_one()

    rows = db.execute(query.offset(params.offset).limit(params.limit)).scalars().unique().all()

    return page_envelope(list(rows), total_items, params)
