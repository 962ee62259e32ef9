"""
Order management endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging
import math

from app.database import get_db
from app.models.order import OrderStatus, OrderStatusHistory
from app.models.user import ROLE_ADMIN
from app.schemas.order import (
    CheckoutRequest, OrderStatusUpdate, OrderResponse, OrderListResponse, StatusHistoryResponse
)
from app.services.notification_dispatcher import NotificationDispatcher, get_dispatcher
from app.services.order_lifecycle import OrderLifecycleManager
from app.services.order_service import OrderService
from app.auth.auth_handler import admin_required, user_required
from app.utils.error_handler import DatabaseError, InvalidTransition, WorkflowError
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

# Customers may cancel until the sample has been collected
CUSTOMER_CANCELLABLE = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.SAMPLE_COLLECTION_SCHEDULED,
)

def _order_list(orders, total: int, page: int, page_size: int) -> OrderListResponse:
    return OrderListResponse(
        orders=[OrderResponse.from_orm(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size)
    )

@router.post("/", response_model=OrderResponse, status_code=201)
@limiter.limit("10/minute")
async def create_order(
    request: Request,
    checkout: CheckoutRequest,
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db)
):
    """Place an order for one or more lab tests with a home sample collection"""
    try:
        order = OrderService(db).create_order(current_user["user_id"], checkout)
        return OrderResponse.from_orm(order)

    except (HTTPException, WorkflowError, DatabaseError):
        raise
    except Exception as e:
        logger.error(f"Failed to create order: {e}")
        raise HTTPException(status_code=500, detail="Failed to create order")

@router.get("/", response_model=OrderListResponse)
@limiter.limit("30/minute")
async def get_my_orders(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db)
):
    """Get the current user's orders"""
    try:
        orders, total = OrderService(db).list_orders(
            page=page, page_size=page_size, status=status, user_id=current_user["user_id"]
        )
        return _order_list(orders, total, page, page_size)

    except Exception as e:
        logger.error(f"Failed to get orders: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve orders")

@router.get("/admin/all", response_model=OrderListResponse)
@limiter.limit("30/minute")
async def get_all_orders(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Get all orders (admin)"""
    try:
        orders, total = OrderService(db).list_orders(page=page, page_size=page_size, status=status)
        return _order_list(orders, total, page, page_size)

    except Exception as e:
        logger.error(f"Failed to get orders: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve orders")

@router.get("/{order_id}", response_model=OrderResponse)
@limiter.limit("30/minute")
async def get_order(
    request: Request,
    order_id: int,
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db)
):
    """Get a specific order by ID"""
    owner_id = None if current_user["role"] == ROLE_ADMIN else current_user["user_id"]
    order = OrderService(db).get_order(order_id, user_id=owner_id)
    return OrderResponse.from_orm(order)

@router.post("/{order_id}/cancel", response_model=OrderResponse)
@limiter.limit("10/minute")
async def cancel_order(
    request: Request,
    order_id: int,
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Cancel one of the current user's orders before its sample is collected"""
    order = OrderService(db).get_order(order_id, user_id=current_user["user_id"])

    current = OrderStatus(order.status)
    if current not in CUSTOMER_CANCELLABLE and current != OrderStatus.CANCELLED:
        raise InvalidTransition(
            current.value, OrderStatus.CANCELLED.value,
            "Orders can only be cancelled before the sample is collected"
        )

    lifecycle = OrderLifecycleManager(db, dispatcher)
    order = lifecycle.transition(
        order, OrderStatus.CANCELLED, actor_id=current_user["user_id"], notes="Cancelled by customer"
    )
    return OrderResponse.from_orm(order)

@router.put("/{order_id}/status", response_model=OrderResponse)
@limiter.limit("30/minute")
async def update_order_status(
    request: Request,
    order_id: int,
    status_update: OrderStatusUpdate,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Move an order to a new status (admin)"""
    lifecycle = OrderLifecycleManager(db, dispatcher)
    order = lifecycle.transition(
        order_id, status_update.status, actor_id=current_user["user_id"], notes=status_update.notes
    )
    return OrderResponse.from_orm(order)

@router.get("/{order_id}/history", response_model=list[StatusHistoryResponse])
@limiter.limit("30/minute")
async def get_order_history(
    request: Request,
    order_id: int,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Status changes of an order, oldest first (admin)"""
    order = OrderService(db).get_order(order_id)
    history = db.query(OrderStatusHistory).filter(
        OrderStatusHistory.order_id == order.id
    ).order_by(OrderStatusHistory.created_at, OrderStatusHistory.id).all()
    return [StatusHistoryResponse.from_orm(entry) for entry in history]
