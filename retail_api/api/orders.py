"""
Order management API endpoints
Handles creation, listing, retrieval and status updates of orders
"""

from typing import Optional
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select
import structlog

from retail_api.core.config import Settings
from retail_api.core.database import get_session
from retail_api.core.dependencies import CurrentUser, check_tenant_access, get_app_settings, get_current_user
from retail_api.core.errors import bad_request, not_found, server_error
from retail_api.core.permissions import Permission
from retail_api.models import Order, OrderStatus, PaymentStatus
from retail_api.schemas.common import Pagination, parse_limit, parse_positive_int
from retail_api.schemas.orders import OrderCreate, OrderDetail, OrderListResponse, OrderRead, OrderUpdate
from retail_api.services.orders import OrderService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])

DEFAULT_ORDER_PAGE_SIZE = 20
MAX_ORDER_PAGE_SIZE = 100


def get_order_for_user(session: Session, user: CurrentUser, order_id: uuid.UUID, permission: Permission) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise not_found("order_not_found")
    check_tenant_access(session, user, order.tenant_id, permission)
    return order


@router.post("", response_model=OrderDetail, status_code=status.HTTP_201_CREATED)
def create_order(
    data: OrderCreate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
):
    """Create an order with its items; totals are computed server side"""
    if data.tenant_id is not None:
        check_tenant_access(session, user, data.tenant_id, Permission.ORDER_MANAGE)
    return OrderService(session, settings).create_order(data, actor=str(user.id))


@router.get("", response_model=OrderListResponse)
def list_orders(
    tenant_id: Optional[uuid.UUID] = None,
    order_status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """List orders for a tenant, newest first"""
    if tenant_id is None:
        if not user.is_platform_admin:
            raise bad_request("tenant_id_required")
    else:
        check_tenant_access(session, user, tenant_id, Permission.ORDER_VIEW)

    page_number = parse_positive_int(page, 1)
    page_size = parse_limit(limit, DEFAULT_ORDER_PAGE_SIZE, MAX_ORDER_PAGE_SIZE)

    filters = []
    if tenant_id is not None:
        filters.append(Order.tenant_id == tenant_id)
    if order_status is not None:
        filters.append(Order.order_status == order_status)
    if payment_status is not None:
        filters.append(Order.payment_status == payment_status)
    if search:
        term = search.strip().lower()
        filters.append(or_(
            func.lower(Order.order_number).contains(term, autoescape=True),
            func.lower(Order.customer_email).contains(term, autoescape=True),
            func.lower(Order.customer_name).contains(term, autoescape=True),
        ))

    try:
        total = session.exec(select(func.count()).select_from(Order).where(*filters)).one()
        orders = session.exec(
            select(Order)
            .where(*filters)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset((page_number - 1) * page_size)
            .limit(page_size)
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Error listing orders: {e}")
        raise server_error("order_list_failed")

    return OrderListResponse(
        orders=[OrderRead.model_validate(o) for o in orders],
        pagination=Pagination.build(page_number, page_size, total),
    )


@router.get("/{order_id}", response_model=OrderDetail)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Order with items, payments and status history"""
    return get_order_for_user(session, user, order_id, Permission.ORDER_VIEW)


@router.patch("/{order_id}", response_model=OrderDetail)
def update_order(
    order_id: uuid.UUID,
    data: OrderUpdate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
):
    order = get_order_for_user(session, user, order_id, Permission.ORDER_MANAGE)
    return OrderService(session, settings).update_order(order, data, actor=str(user.id))
