"""
Store recommendation endpoints
"""

from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from retail_api.core.database import get_session
from retail_api.core.errors import not_found
from retail_api.models import DirectoryCategoryListing, DirectoryListing
from retail_api.schemas.common import CamelModel, parse_limit
from retail_api.schemas.directory import ListingResponse, RelatedStoresResponse
from retail_api.api.directory import scored_response
from retail_api.services.directory import listing_to_response
from retail_api.services.related_stores import MAX_RELATED, RelatedStoreFinder

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

POPULAR_LIMIT = 10


class PopularInCategoryResponse(CamelModel):
    category_slug: str
    listings: List[ListingResponse]


@router.get("/stores-like-this/{tenant_id}", response_model=RelatedStoresResponse)
def stores_like_this(
    tenant_id: uuid.UUID,
    limit: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Related stores keyed by tenant instead of slug"""
    source = session.exec(
        select(DirectoryListing).where(
            DirectoryListing.tenant_id == tenant_id,
            DirectoryListing.is_published == True,  # noqa: E712
        )
    ).first()
    if source is None:
        raise not_found("listing_not_found")

    result = RelatedStoreFinder(session).find(source, parse_limit(limit, MAX_RELATED, MAX_RELATED))
    return RelatedStoresResponse(
        source_slug=source.slug,
        method=result.method,
        listings=[scored_response(entry) for entry in result.listings],
    )


@router.get("/popular-in-category/{category_slug}", response_model=PopularInCategoryResponse)
def popular_in_category(category_slug: str, session: Session = Depends(get_session)):
    in_category = select(DirectoryCategoryListing.tenant_id).where(
        DirectoryCategoryListing.category_slug == category_slug
    )
    rows = session.exec(
        select(DirectoryListing)
        .where(
            DirectoryListing.is_published == True,  # noqa: E712
            DirectoryListing.tenant_id.in_(in_category),
        )
        .order_by(
            DirectoryListing.rating_avg.desc().nulls_last(),
            DirectoryListing.product_count.desc(),
            DirectoryListing.slug,
        )
        .limit(POPULAR_LIMIT)
    ).all()
    return PopularInCategoryResponse(
        category_slug=category_slug,
        listings=[listing_to_response(row) for row in rows],
    )
