from typing import Any, List, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub.core.schemas import Pagination


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: int,
    limit: int,
    max_page_size: int,
) -> Tuple[List[Any], Pagination]:
    """Run stmt for one page. limit is capped at max_page_size whatever the client asked for."""
    limit = max(1, min(limit, max_page_size))
    page = max(1, page)

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total_result = await db.execute(count_stmt)
    total = total_result.scalar() or 0

    offset = (page - 1) * limit
    result = await db.execute(stmt.offset(offset).limit(limit))
    rows = list(result.scalars().all())

    total_pages = (total + limit - 1) // limit if limit else 0
    return rows, Pagination(page=page, limit=limit, total=total, total_pages=total_pages)
