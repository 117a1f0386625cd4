"""
Inventory API endpoints
Tenant catalog items, stock adjustments and product images
"""

from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import Integer, cast, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select
import structlog

from retail_api.core.config import Settings
from retail_api.core.database import get_session
from retail_api.core.dependencies import (
    CurrentUser,
    check_tenant_access,
    get_app_settings,
    get_current_user,
    get_image_fetcher,
)
from retail_api.core.errors import conflict, not_found, server_error
from retail_api.core.permissions import Permission
from retail_api.models import InventoryItem, ItemStatus, ItemVisibility, Tenant
from retail_api.models.base import utcnow
from retail_api.schemas.common import Pagination, parse_limit, parse_positive_int
from retail_api.schemas.inventory import (
    ImageUrlRequest,
    InventoryItemCreate,
    InventoryItemRead,
    InventoryItemUpdate,
    InventoryListResponse,
    InventoryStats,
    LowStockResponse,
    StockAdjustment,
    StockOperation,
)
from retail_api.services.images import ImageFetcher

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/inventory", tags=["inventory"])

DEFAULT_INVENTORY_PAGE_SIZE = 50
MAX_INVENTORY_PAGE_SIZE = 100


def _get_item(session: Session, user: CurrentUser, item_id: uuid.UUID, permission: Permission) -> InventoryItem:
    item = session.get(InventoryItem, item_id)
    if item is None:
        raise not_found("item_not_found")
    check_tenant_access(session, user, item.tenant_id, permission)
    return item


def _save(session: Session, item: InventoryItem) -> InventoryItem:
    """Commit an item; the (tenant_id, sku) constraint decides duplicates"""
    try:
        session.add(item)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise conflict("duplicate_sku")
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error saving inventory item: {e}")
        raise server_error("inventory_save_failed")
    session.refresh(item)
    return item


@router.post("", response_model=InventoryItemRead, status_code=status.HTTP_201_CREATED)
def create_item(
    data: InventoryItemCreate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
):
    check_tenant_access(session, user, data.tenant_id, Permission.INVENTORY_EDIT)
    if session.get(Tenant, data.tenant_id) is None:
        raise not_found("tenant_not_found")

    existing = session.exec(
        select(InventoryItem.id).where(InventoryItem.tenant_id == data.tenant_id, InventoryItem.sku == data.sku)
    ).first()
    if existing is not None:
        raise conflict("duplicate_sku")

    item = InventoryItem(
        **data.model_dump(exclude={"currency"}),
        currency=(data.currency or settings.DEFAULT_CURRENCY).lower(),
    )
    item = _save(session, item)
    logger.info(f"Inventory item created: {item.sku}", item_id=str(item.id), tenant_id=str(item.tenant_id))
    return item


@router.get("", response_model=InventoryListResponse)
def list_items(
    tenant_id: uuid.UUID,
    item_status: Optional[ItemStatus] = None,
    visibility: Optional[ItemVisibility] = None,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    check_tenant_access(session, user, tenant_id, Permission.INVENTORY_VIEW)
    page_number = parse_positive_int(page, 1)
    page_size = parse_limit(limit, DEFAULT_INVENTORY_PAGE_SIZE, MAX_INVENTORY_PAGE_SIZE)

    filters = [InventoryItem.tenant_id == tenant_id]
    if item_status is not None:
        filters.append(InventoryItem.item_status == item_status)
    if visibility is not None:
        filters.append(InventoryItem.visibility == visibility)
    if search:
        term = search.strip().lower()
        filters.append(or_(
            func.lower(InventoryItem.name).contains(term, autoescape=True),
            func.lower(InventoryItem.sku).contains(term, autoescape=True),
            func.lower(InventoryItem.brand).contains(term, autoescape=True),
        ))

    total = session.exec(select(func.count()).select_from(InventoryItem).where(*filters)).one()
    items = session.exec(
        select(InventoryItem)
        .where(*filters)
        .order_by(InventoryItem.name, InventoryItem.sku)
        .offset((page_number - 1) * page_size)
        .limit(page_size)
    ).all()
    return InventoryListResponse(
        items=[InventoryItemRead.model_validate(i) for i in items],
        pagination=Pagination.build(page_number, page_size, total),
    )


@router.get("/stats", response_model=InventoryStats)
def inventory_stats(
    tenant_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Counts per status, stock on hand, stock value and low-stock count"""
    check_tenant_access(session, user, tenant_id, Permission.INVENTORY_VIEW)
    by_status = {s.value: 0 for s in ItemStatus}
    for item_status, count in session.exec(
        select(InventoryItem.item_status, func.count())
        .where(InventoryItem.tenant_id == tenant_id)
        .group_by(InventoryItem.item_status)
    ).all():
        by_status[getattr(item_status, "value", item_status)] = count

    total_stock, total_value, low_stock = session.exec(
        select(
            func.coalesce(func.sum(InventoryItem.stock), 0),
            func.coalesce(func.sum(InventoryItem.stock * InventoryItem.price_cents), 0),
            func.coalesce(func.sum(cast(InventoryItem.stock <= InventoryItem.reorder_level, Integer)), 0),
        ).where(InventoryItem.tenant_id == tenant_id)
    ).one()
    return InventoryStats(
        total_items=sum(by_status.values()),
        by_status=by_status,
        total_stock=total_stock,
        total_value_cents=total_value,
        low_stock_count=low_stock,
    )


@router.get("/alerts/low-stock", response_model=LowStockResponse)
def low_stock_alerts(
    tenant_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    check_tenant_access(session, user, tenant_id, Permission.INVENTORY_VIEW)
    items = session.exec(
        select(InventoryItem)
        .where(
            InventoryItem.tenant_id == tenant_id,
            InventoryItem.stock <= InventoryItem.reorder_level,
        )
        .order_by(InventoryItem.stock, InventoryItem.name)
    ).all()
    return LowStockResponse(items=[InventoryItemRead.model_validate(i) for i in items], total=len(items))


@router.get("/sku/{tenant_id}/{sku}", response_model=InventoryItemRead)
def get_item_by_sku(
    tenant_id: uuid.UUID,
    sku: str,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    check_tenant_access(session, user, tenant_id, Permission.INVENTORY_VIEW)
    item = session.exec(
        select(InventoryItem).where(InventoryItem.tenant_id == tenant_id, InventoryItem.sku == sku)
    ).first()
    if item is None:
        raise not_found("item_not_found")
    return item


@router.get("/{item_id}", response_model=InventoryItemRead)
def get_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    return _get_item(session, user, item_id, Permission.INVENTORY_VIEW)


@router.put("/{item_id}", response_model=InventoryItemRead)
def update_item(
    item_id: uuid.UUID,
    data: InventoryItemUpdate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    item = _get_item(session, user, item_id, Permission.INVENTORY_EDIT)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(item, key, value)
    item.updated_at = utcnow()
    item = _save(session, item)
    logger.info(f"Inventory item updated: {item.sku}", item_id=str(item.id))
    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    item = _get_item(session, user, item_id, Permission.INVENTORY_EDIT)
    sku, tenant_id = item.sku, item.tenant_id
    session.delete(item)
    session.commit()
    logger.info(f"Inventory item deleted: {sku}", item_id=str(item_id), tenant_id=str(tenant_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{item_id}/stock", response_model=InventoryItemRead)
def adjust_stock(
    item_id: uuid.UUID,
    data: StockAdjustment,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Set, add or subtract stock; subtracting never drops below zero"""
    item = _get_item(session, user, item_id, Permission.INVENTORY_EDIT)
    previous = item.stock
    if data.operation == StockOperation.SET:
        item.stock = data.quantity
    elif data.operation == StockOperation.ADD:
        item.stock = previous + data.quantity
    else:
        item.stock = max(previous - data.quantity, 0)
    item.updated_at = utcnow()
    item = _save(session, item)
    logger.info(
        f"Stock {data.operation.value} on {item.sku}",
        item_id=str(item.id),
        previous=previous,
        stock=item.stock,
    )
    return item


@router.post("/{item_id}/image", response_model=InventoryItemRead)
def set_item_image(
    item_id: uuid.UUID,
    data: ImageUrlRequest,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    fetcher: ImageFetcher = Depends(get_image_fetcher),
):
    """Verify the URL serves an image, then store it on the item"""
    item = _get_item(session, user, item_id, Permission.INVENTORY_EDIT)
    image = fetcher.fetch(data.url)
    item.image_url = image.url
    item.updated_at = utcnow()
    item = _save(session, item)
    logger.info(f"Image set on {item.sku}", content_type=image.content_type)
    return item
