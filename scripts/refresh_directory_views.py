"""
Background job to refresh the directory materialized views

Run periodically (e.g. via cron every few minutes) so listing, category and
featured product reads stay current. Each run is recorded in
directory_mv_refresh_log.

Usage:
    python scripts/refresh_directory_views.py [view_name ...]
"""

import os
import sys

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, project_root)

from retail_api.core.config import get_settings
from retail_api.core.database import DatabaseProvider
from retail_api.services.directory_views import MATERIALIZED_VIEWS, refresh_materialized_views
import structlog

logger = structlog.get_logger(__name__)


def main(argv=None) -> int:
    """Main entry point for the refresh job"""
    views = list(argv if argv is not None else sys.argv[1:]) or list(MATERIALIZED_VIEWS)
    logger.info("Starting directory view refresh", views=views)

    provider = DatabaseProvider(get_settings())
    try:
        with provider.session() as session:
            results = refresh_materialized_views(session, views)
    except ValueError as e:
        logger.error(str(e))
        return 2
    except Exception as e:
        logger.error(f"Fatal error in refresh job: {e}")
        return 1
    finally:
        provider.dispose()

    failed = [r.view_name for r in results if r.status == "failed"]
    logger.info(
        "Directory view refresh complete",
        refreshed=[r.view_name for r in results if r.status == "success"],
        failed=failed,
    )
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
