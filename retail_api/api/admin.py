"""
Platform admin endpoints: directory refresh and platform categories
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog
import uuid

from retail_api.core.database import get_session
from retail_api.core.dependencies import CurrentUser, require_platform_admin
from retail_api.core.errors import bad_request, conflict, not_found
from retail_api.models import PlatformCategory
from retail_api.models.base import utcnow
from retail_api.schemas.directory import RefreshResult
from retail_api.schemas.taxonomy import (
    PlatformCategoryCreate,
    PlatformCategoryRead,
    PlatformCategoryUpdate,
)
from retail_api.services.directory import slugify
from retail_api.services.directory_views import refresh_materialized_views

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/directory/refresh", response_model=List[RefreshResult])
def refresh_directory(
    view: Optional[str] = None,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    """Refresh the directory materialized views, or a single one"""
    try:
        entries = refresh_materialized_views(session, [view] if view else None)
    except ValueError as e:
        raise bad_request("unknown_view", str(e))
    logger.info("Directory refresh triggered", user_id=str(admin.id), views=[e.view_name for e in entries])
    return [
        RefreshResult(view_name=e.view_name, status=e.status, duration_ms=e.duration_ms, error=e.error)
        for e in entries
    ]


@router.post(
    "/platform-categories",
    response_model=PlatformCategoryRead,
    status_code=status.HTTP_201_CREATED,
)
def create_platform_category(
    data: PlatformCategoryCreate,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    slug = slugify(data.slug or data.name)
    if not slug:
        raise bad_request("invalid_slug")
    if session.exec(select(PlatformCategory).where(PlatformCategory.slug == slug)).first():
        raise conflict("category_exists")

    category = PlatformCategory(**data.model_dump(exclude={"slug"}), slug=slug)
    try:
        session.add(category)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise conflict("category_exists")
    session.refresh(category)
    logger.info(f"Platform category created: {category.slug}", user_id=str(admin.id))
    return category


@router.patch("/platform-categories/{category_id}", response_model=PlatformCategoryRead)
def update_platform_category(
    category_id: uuid.UUID,
    data: PlatformCategoryUpdate,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    category = session.get(PlatformCategory, category_id)
    if category is None:
        raise not_found("category_not_found")

    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(category, key, value)
    category.updated_at = utcnow()
    session.add(category)
    session.commit()
    session.refresh(category)
    logger.info(f"Platform category updated: {category.slug}", user_id=str(admin.id))
    return category
