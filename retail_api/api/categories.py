"""
Platform categories and Google product taxonomy (public)
"""

from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from retail_api.core.database import get_session
from retail_api.core.errors import not_found
from retail_api.models import PlatformCategory
from retail_api.schemas.common import parse_limit
from retail_api.schemas.taxonomy import (
    CategoryActivityResponse,
    PlatformCategoryListResponse,
    PlatformCategoryRead,
    TaxonomyBrowseResponse,
    TaxonomyChild,
    TaxonomyNode,
    TaxonomySearchResponse,
)
from retail_api.services.directory import category_activity
from retail_api.services.taxonomy import (
    DEFAULT_SEARCH_LIMIT,
    MAX_SEARCH_LIMIT,
    browse_taxonomy,
    search_taxonomy,
)

router = APIRouter(tags=["categories"])


def _find_category(session: Session, id_or_slug: str) -> Optional[PlatformCategory]:
    try:
        return session.get(PlatformCategory, uuid.UUID(id_or_slug))
    except ValueError:
        return session.exec(select(PlatformCategory).where(PlatformCategory.slug == id_or_slug)).first()


@router.get("/categories", response_model=PlatformCategoryListResponse)
def list_categories(session: Session = Depends(get_session)):
    """Active platform categories"""
    categories = session.exec(
        select(PlatformCategory)
        .where(PlatformCategory.is_active == True)  # noqa: E712
        .order_by(PlatformCategory.sort_order, PlatformCategory.name)
    ).all()
    return PlatformCategoryListResponse(
        categories=[PlatformCategoryRead.model_validate(c) for c in categories],
        total=len(categories),
    )


@router.get("/categories/{id_or_slug}/activity", response_model=CategoryActivityResponse)
def get_category_activity(id_or_slug: str, session: Session = Depends(get_session)):
    """Activity score from the age of the newest and oldest listing in the category"""
    category = _find_category(session, id_or_slug)
    slug = category.slug if category else id_or_slug
    return category_activity(session, slug)


@router.get("/categories/{id_or_slug}", response_model=PlatformCategoryRead)
def get_category(id_or_slug: str, session: Session = Depends(get_session)):
    category = _find_category(session, id_or_slug)
    if category is None:
        raise not_found("category_not_found")
    return category


@router.get("/taxonomy/search", response_model=TaxonomySearchResponse)
def taxonomy_search(
    q: str = Query(..., min_length=1),
    branch: Optional[str] = None,
    limit: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Search the Google product taxonomy by name or path"""
    results = search_taxonomy(session, q, branch, parse_limit(limit, DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT))
    return TaxonomySearchResponse(
        query=q,
        results=[TaxonomyNode.model_validate(r) for r in results],
        total=len(results),
    )


@router.get("/taxonomy/browse", response_model=TaxonomyBrowseResponse)
def taxonomy_browse(path: Optional[str] = None, session: Session = Depends(get_session)):
    children = browse_taxonomy(session, path)
    return TaxonomyBrowseResponse(
        path=(path or "").strip() or None,
        children=[TaxonomyChild(**child) for child in children],
    )
