"""
Materialized view refresh with bookkeeping in directory_mv_refresh_log
"""

import time
from typing import Iterable, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import structlog

from retail_api.models import DirectoryRefreshLog
from retail_api.models.base import utcnow

logger = structlog.get_logger(__name__)

# Refresh order matters: the category and featured views read listing data
MATERIALIZED_VIEWS = (
    "directory_listings_list",
    "directory_category_listings",
    "directory_featured_products",
)


def refresh_materialized_views(session: Session, views: Optional[Iterable[str]] = None) -> List[DirectoryRefreshLog]:
    """Refresh each view concurrently on Postgres; other dialects log a skipped run"""
    names = list(views) if views is not None else list(MATERIALIZED_VIEWS)
    unknown = [name for name in names if name not in MATERIALIZED_VIEWS]
    if unknown:
        raise ValueError(f"Unknown materialized views: {', '.join(unknown)}")

    is_postgres = session.get_bind().dialect.name == "postgresql"
    results = []
    for view_name in names:
        entry = DirectoryRefreshLog(view_name=view_name, started_at=utcnow())
        started = time.perf_counter()

        if not is_postgres:
            entry.status = "skipped"
        else:
            try:
                session.execute(text(f"REFRESH MATERIALIZED VIEW CONCURRENTLY {view_name}"))
                session.commit()
                entry.status = "success"
            except SQLAlchemyError as e:
                session.rollback()
                entry.status = "failed"
                entry.error = str(e)[:2000]
                logger.error(f"Failed to refresh {view_name}: {e}")

        entry.finished_at = utcnow()
        entry.duration_ms = int((time.perf_counter() - started) * 1000)
        session.add(entry)
        session.commit()
        session.refresh(entry)
        logger.info(f"Refreshed {view_name}", status=entry.status, duration_ms=entry.duration_ms)
        results.append(entry)

    return results
