"""
Directory search over the listing materialized views

Builds the filtered page query and its matching COUNT query, and shapes
listing rows into API responses.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional, Sequence, Tuple
import re
import uuid

from sqlalchemy import Integer, cast, distinct, func, or_
from sqlmodel import Session, select
import structlog

from retail_api.models import (
    DirectoryListing,
    DirectoryCategoryListing,
    DirectoryRefreshLog,
    PlatformCategory,
)
from retail_api.models.base import as_utc, utcnow
from retail_api.schemas.common import parse_limit, parse_positive_int
from retail_api.schemas.directory import (
    DirectoryCategory,
    DirectoryStats,
    ListingResponse,
    ViewHealth,
)

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 12
SORT_KEYS = ("relevance", "rating", "newest", "products")


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def title_from_slug(slug: str) -> str:
    return " ".join(part.capitalize() for part in slug.replace("_", "-").split("-") if part)


@dataclass
class DirectorySearchParams:
    """Normalized search inputs"""
    category: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    q: Optional[str] = None
    sort: str = "relevance"
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_query(
        cls,
        category: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        q: Optional[str] = None,
        sort: Optional[str] = None,
        page: Any = None,
        limit: Any = None,
    ) -> "DirectorySearchParams":
        def clean(value: Optional[str]) -> Optional[str]:
            value = (value or "").strip()
            return value or None

        sort_key = (sort or "relevance").strip().lower()
        return cls(
            category=clean(category),
            city=clean(city),
            state=clean(state),
            q=clean(q),
            sort=sort_key if sort_key in SORT_KEYS else "relevance",
            page=parse_positive_int(page, 1),
            limit=parse_limit(limit, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def resolve_category(session: Session, category: str) -> Tuple[str, str]:
    """Map a slug or display name to (name, slug); unknown slugs are title-cased"""
    slug = slugify(category)
    platform_category = session.exec(
        select(PlatformCategory).where(
            or_(PlatformCategory.slug == slug, func.lower(PlatformCategory.name) == category.lower())
        )
    ).first()
    if platform_category:
        return platform_category.name, platform_category.slug
    if "-" in category or category.islower():
        return title_from_slug(category), slug
    return category, slug


def _order_by(sort: str) -> list:
    L = DirectoryListing
    orderings = {
        "relevance": [L.is_featured.desc(), L.rating_avg.desc().nulls_last(), L.product_count.desc()],
        "rating": [L.rating_avg.desc().nulls_last(), L.rating_count.desc()],
        "newest": [],
        "products": [L.product_count.desc()],
    }[sort]
    return orderings + [L.created_at.desc(), L.slug]


def build_filters(params: DirectorySearchParams, category: Optional[Tuple[str, str]] = None) -> list:
    """WHERE clauses shared by the page and count statements"""
    L = DirectoryListing
    filters = [L.is_published == True]  # noqa: E712

    if category:
        name, slug = category
        in_category = select(DirectoryCategoryListing.tenant_id).where(
            or_(
                DirectoryCategoryListing.category_slug == slug,
                func.lower(DirectoryCategoryListing.category_name) == name.lower(),
            )
        )
        filters.append(or_(func.lower(L.primary_category) == name.lower(), L.tenant_id.in_(in_category)))
    if params.city:
        filters.append(func.lower(L.city) == params.city.lower())
    if params.state:
        filters.append(func.lower(L.state) == params.state.lower())
    if params.q:
        term = params.q.lower()
        filters.append(or_(
            func.lower(L.business_name).contains(term, autoescape=True),
            func.lower(L.description).contains(term, autoescape=True),
            func.lower(L.city).contains(term, autoescape=True),
            func.lower(L.primary_category).contains(term, autoescape=True),
        ))
    return filters


def build_search_statements(params: DirectorySearchParams, category: Optional[Tuple[str, str]] = None):
    """Return (page statement, count statement) over the same filters"""
    filters = build_filters(params, category)
    page_stmt = (
        select(DirectoryListing)
        .where(*filters)
        .order_by(*_order_by(params.sort))
        .offset(params.offset)
        .limit(params.limit)
    )
    count_stmt = select(func.count()).select_from(DirectoryListing).where(*filters)
    return page_stmt, count_stmt


def search_listings(session: Session, params: DirectorySearchParams) -> Tuple[Sequence[DirectoryListing], int]:
    category = resolve_category(session, params.category) if params.category else None
    page_stmt, count_stmt = build_search_statements(params, category)
    total = session.exec(count_stmt).one()
    rows = session.exec(page_stmt).all()
    logger.debug("Directory search", sort=params.sort, page=params.page, total=total)
    return rows, total


def listing_to_response(row: DirectoryListing) -> ListingResponse:
    """Shape a listing row for the API, filling defaults for nulls"""
    return ListingResponse(
        tenant_id=row.tenant_id,
        business_name=row.business_name,
        slug=row.slug,
        description=row.description,
        address=row.address,
        city=row.city,
        state=row.state,
        postal_code=row.postal_code,
        latitude=row.latitude,
        longitude=row.longitude,
        primary_category=row.primary_category,
        secondary_categories=list(row.secondary_categories or []),
        logo_url=row.logo_url,
        rating_avg=float(row.rating_avg or 0.0),
        rating_count=row.rating_count or 0,
        product_count=row.product_count or 0,
        is_featured=bool(row.is_featured),
        subscription_tier=row.subscription_tier,
        created_at=row.created_at,
    )


def get_listing_by_slug(session: Session, slug: str) -> Optional[DirectoryListing]:
    return session.exec(
        select(DirectoryListing).where(
            DirectoryListing.slug == slug,
            DirectoryListing.is_published == True,  # noqa: E712
        )
    ).first()


# ============================================================================
# Categories
# ============================================================================

def list_directory_categories(session: Session, min_stores: int = 1) -> List[DirectoryCategory]:
    """Categories that appear on published listings, with store and product counts"""
    C = DirectoryCategoryListing
    store_count = func.count(distinct(C.tenant_id))
    rows = session.exec(
        select(
            C.category_slug,
            func.max(C.category_name),
            store_count,
            func.sum(C.product_count),
            func.sum(cast(C.is_primary, Integer)),
        )
        .group_by(C.category_slug)
        .having(store_count >= min_stores)
        .order_by(store_count.desc(), C.category_slug)
    ).all()

    platform = {
        c.slug: c for c in session.exec(
            select(PlatformCategory).where(PlatformCategory.slug.in_([r[0] for r in rows]))
        ).all()
    } if rows else {}

    categories = []
    for slug, name, stores, products, primary in rows:
        meta = platform.get(slug)
        categories.append(DirectoryCategory(
            id=meta.id if meta else None,
            name=meta.name if meta else name,
            slug=slug,
            icon_emoji=meta.icon_emoji if meta else None,
            google_category_id=meta.google_category_id if meta else None,
            store_count=stores or 0,
            primary_store_count=primary or 0,
            product_count=products or 0,
        ))
    return categories


def find_directory_category(session: Session, id_or_slug: str) -> Optional[DirectoryCategory]:
    """Look a category up by platform id or slug"""
    platform_category = None
    try:
        platform_category = session.get(PlatformCategory, uuid.UUID(id_or_slug))
    except ValueError:
        platform_category = session.exec(
            select(PlatformCategory).where(PlatformCategory.slug == id_or_slug)
        ).first()

    slug = platform_category.slug if platform_category else id_or_slug
    C = DirectoryCategoryListing
    stats = session.exec(
        select(func.max(C.category_name), func.count(distinct(C.tenant_id)), func.sum(C.product_count))
        .where(C.category_slug == slug)
    ).one()
    name, stores, products = stats
    if platform_category is None and not stores:
        return None

    return DirectoryCategory(
        id=platform_category.id if platform_category else None,
        name=platform_category.name if platform_category else name,
        slug=slug,
        icon_emoji=platform_category.icon_emoji if platform_category else None,
        google_category_id=platform_category.google_category_id if platform_category else None,
        store_count=stores or 0,
        product_count=products or 0,
    )


def directory_stats(session: Session) -> DirectoryStats:
    L = DirectoryListing
    published = L.is_published == True  # noqa: E712
    total, featured, products, cities = session.exec(
        select(
            func.count(),
            func.coalesce(func.sum(cast(L.is_featured, Integer)), 0),
            func.coalesce(func.sum(L.product_count), 0),
            func.count(distinct(func.lower(L.city))),
        ).select_from(L).where(published)
    ).one()
    categories = session.exec(
        select(func.count(distinct(DirectoryCategoryListing.category_slug)))
    ).one()
    return DirectoryStats(
        total_listings=total,
        featured_listings=featured,
        total_products=products,
        total_categories=categories,
        total_cities=cities,
    )


# ============================================================================
# Category activity
# ============================================================================

def category_activity_score(newest: Optional[datetime], oldest: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Recency of the newest listing plus establishment of the oldest, capped at 100"""
    if newest is None:
        return 0
    now = as_utc(now) or utcnow()
    newest, oldest = as_utc(newest), as_utc(oldest)
    score = 0
    newest_age = now - newest
    if newest_age <= timedelta(days=7):
        score += 50
    elif newest_age <= timedelta(days=30):
        score += 30
    elif newest_age <= timedelta(days=90):
        score += 15
    elif newest_age <= timedelta(days=365):
        score += 5

    if oldest is not None:
        established = now - oldest
        if established >= timedelta(days=365):
            score += 10
        elif established >= timedelta(days=180):
            score += 5
    return min(score, 100)


def category_activity(session: Session, slug: str) -> dict:
    L = DirectoryListing
    newest, oldest, stores = session.exec(
        select(func.max(L.created_at), func.min(L.created_at), func.count())
        .select_from(L)
        .where(
            L.is_published == True,  # noqa: E712
            L.tenant_id.in_(
                select(DirectoryCategoryListing.tenant_id).where(DirectoryCategoryListing.category_slug == slug)
            ),
        )
    ).one()
    return {
        "slug": slug,
        "storeCount": stores,
        "activityScore": category_activity_score(newest, oldest),
        "newestListingAt": newest,
    }


# ============================================================================
# Materialized view health
# ============================================================================

def view_health(session: Session, view_names: Sequence[str], stale_minutes: int, now: Optional[datetime] = None) -> List[ViewHealth]:
    now = as_utc(now) or utcnow()
    report = []
    for view_name in view_names:
        last = session.exec(
            select(DirectoryRefreshLog)
            .where(DirectoryRefreshLog.view_name == view_name)
            .order_by(DirectoryRefreshLog.started_at.desc())
        ).first()
        if last is None:
            report.append(ViewHealth(view_name=view_name, status="unknown"))
            continue

        refreshed_at = as_utc(last.finished_at or last.started_at)
        minutes = round((now - refreshed_at).total_seconds() / 60.0, 1)
        if last.status == "failed":
            state = "failed"
        elif last.status == "running":
            state = "refreshing"
        elif minutes > stale_minutes:
            state = "stale"
        else:
            state = "healthy"
        report.append(ViewHealth(
            view_name=view_name,
            status=state,
            last_refreshed_at=refreshed_at,
            last_duration_ms=last.duration_ms,
            minutes_since_refresh=minutes,
            error=last.error,
        ))
    return report
