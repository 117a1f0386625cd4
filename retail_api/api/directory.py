"""
Public directory API endpoints
Reads the listing materialized views; no authentication
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import structlog

from retail_api.core.config import Settings
from retail_api.core.database import get_session
from retail_api.core.dependencies import get_app_settings, get_featured_sampler
from retail_api.core.errors import not_found, server_error
from retail_api.schemas.common import Pagination, parse_limit, parse_positive_int
from retail_api.schemas.directory import (
    CategoryDetailResponse,
    DirectoryCategoriesResponse,
    DirectoryHealthResponse,
    DirectoryStats,
    FeaturedProductsResponse,
    ListingResponse,
    RelatedStoresResponse,
    ScoredListingResponse,
    SearchResponse,
)
from retail_api.services.directory import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    DirectorySearchParams,
    directory_stats,
    find_directory_category,
    get_listing_by_slug,
    list_directory_categories,
    listing_to_response,
    search_listings,
    view_health,
)
from retail_api.services.directory_views import MATERIALIZED_VIEWS
from retail_api.services.featured import FeaturedProductSampler, FeaturedQuery
from retail_api.services.related_stores import MAX_RELATED, RelatedStoreFinder

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/directory", tags=["directory"])


def scored_response(entry) -> ScoredListingResponse:
    base = listing_to_response(entry.listing)
    return ScoredListingResponse(
        **base.model_dump(),
        score=entry.score,
        category_overlap=entry.category_overlap,
        same_location=entry.same_location,
    )


@router.get("/search", response_model=SearchResponse)
def search_directory(
    category: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    q: Optional[str] = None,
    sort: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Search published storefronts with filters, sort and pagination"""
    params = DirectorySearchParams.from_query(
        category=category, city=city, state=state, q=q, sort=sort, page=page, limit=limit,
    )
    try:
        rows, total = search_listings(session, params)
    except SQLAlchemyError as e:
        logger.error(f"Directory search failed: {e}")
        raise server_error("search_failed")

    return SearchResponse(
        listings=[listing_to_response(row) for row in rows],
        pagination=Pagination.build(params.page, params.limit, total),
    )


@router.get("/categories", response_model=DirectoryCategoriesResponse)
def get_directory_categories(
    min_stores: Optional[str] = Query(None, alias="minStores"),
    session: Session = Depends(get_session),
):
    """Categories present in the directory with store and product counts"""
    try:
        categories = list_directory_categories(session, parse_positive_int(min_stores, 1))
    except SQLAlchemyError as e:
        logger.error(f"Directory categories failed: {e}")
        raise server_error("categories_failed")
    return DirectoryCategoriesResponse(categories=categories, total=len(categories))


@router.get("/categories/{id_or_slug}", response_model=CategoryDetailResponse)
def get_directory_category(
    id_or_slug: str,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Category detail with its stores, paginated like search"""
    category = find_directory_category(session, id_or_slug)
    if category is None:
        raise not_found("category_not_found")

    params = DirectorySearchParams.from_query(category=category.slug, sort=sort, page=page, limit=limit)
    try:
        rows, total = search_listings(session, params)
    except SQLAlchemyError as e:
        logger.error(f"Category listing failed: {e}")
        raise server_error("search_failed")

    return CategoryDetailResponse(
        category=category,
        listings=[listing_to_response(row) for row in rows],
        pagination=Pagination.build(params.page, params.limit, total),
    )


@router.get("/featured-products", response_model=FeaturedProductsResponse)
def get_featured_products(
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    max_distance: Optional[float] = Query(None, alias="maxDistance", gt=0),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    session: Session = Depends(get_session),
    sampler: FeaturedProductSampler = Depends(get_featured_sampler),
):
    """Featured in-stock products, nearer stores weighted toward the top"""
    query = FeaturedQuery(
        lat=lat,
        lng=lng,
        max_distance_km=max_distance,
        page=parse_positive_int(page, 1),
        limit=parse_limit(limit, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE),
    )
    try:
        return sampler.sample(session, query)
    except SQLAlchemyError as e:
        logger.error(f"Featured products failed: {e}")
        raise server_error("featured_products_failed")


@router.get("/stats", response_model=DirectoryStats)
def get_directory_stats(session: Session = Depends(get_session)):
    try:
        return directory_stats(session)
    except SQLAlchemyError as e:
        logger.error(f"Directory stats failed: {e}")
        raise server_error("stats_failed")


@router.get("/health", response_model=DirectoryHealthResponse)
def get_directory_health(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """Last refresh of each materialized view and whether it is stale"""
    views = view_health(session, MATERIALIZED_VIEWS, settings.DIRECTORY_MV_STALE_MINUTES)
    return DirectoryHealthResponse(
        healthy=all(v.status == "healthy" for v in views),
        views=views,
    )


@router.get("/{slug}/related", response_model=RelatedStoresResponse)
def get_related_stores(
    slug: str,
    limit: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Stores similar to this one by category and location"""
    source = get_listing_by_slug(session, slug)
    if source is None:
        raise not_found("listing_not_found")

    result = RelatedStoreFinder(session).find(source, parse_limit(limit, MAX_RELATED, MAX_RELATED))
    return RelatedStoresResponse(
        source_slug=source.slug,
        method=result.method,
        listings=[scored_response(entry) for entry in result.listings],
    )


@router.get("/{slug}", response_model=ListingResponse)
def get_listing(slug: str, session: Session = Depends(get_session)):
    listing = get_listing_by_slug(session, slug)
    if listing is None:
        raise not_found("listing_not_found")
    return listing_to_response(listing)
