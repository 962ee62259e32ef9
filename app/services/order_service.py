"""
Checkout and order queries
"""

import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.home_visit import HomeVisit, HomeVisitStatus
from app.models.lab_test import LabTest
from app.models.order import Order, OrderItem, OrderStatus
from app.schemas.order import CheckoutRequest
from app.utils.error_handler import DatabaseError, NotFound, WorkflowError

logger = logging.getLogger(__name__)

ORDER_NUMBER_MAX_RETRIES = 5


def calculate_totals(lines: list[tuple[LabTest, int]]) -> tuple[float, float, float]:
    """
    Totals for (test, quantity) lines as (total, discount, final).

    total is charged at list price, discount is what the tests' discount
    prices take off it; final never drops below zero.
    """
    total = 0.0
    discount = 0.0
    for test, quantity in lines:
        total += test.price * quantity
        discount += (test.price - test.effective_price) * quantity
    total = round(total, 2)
    discount = round(min(discount, total), 2)
    return total, discount, round(total - discount, 2)


def generate_order_number(prefix: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Sequential-looking order token: prefix, year, 6 timestamp digits, 2 random digits"""
    now = now or datetime.utcnow()
    stamp = int(now.timestamp() * 1000) % 1_000_000
    return f"{prefix or settings.order_number_prefix}{now.year}{stamp:06d}{secrets.randbelow(100):02d}"


class OrderService:
    """Creates orders at checkout and reads them back"""

    def __init__(self, db: Session):
        self.db = db

    def _unique_order_number(self) -> str:
        for _ in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = generate_order_number()
            exists = self.db.query(Order.id).filter(Order.order_number == candidate).first()
            if not exists:
                return candidate
        raise DatabaseError("Could not allocate a unique order number")

    def create_order(self, user_id: int, checkout: CheckoutRequest) -> Order:
        """Create the order, its items and its scheduled home visit in one transaction"""
        test_ids = [item.test_id for item in checkout.items]
        tests = {
            test.id: test
            for test in self.db.query(LabTest).filter(LabTest.id.in_(test_ids), LabTest.is_active == True)  # noqa: E712
        }
        missing = [test_id for test_id in test_ids if test_id not in tests]
        if missing:
            raise WorkflowError(f"Some tests are not available: {', '.join(str(m) for m in missing)}")

        lines = [(tests[item.test_id], item.quantity) for item in checkout.items]
        total, discount, final = calculate_totals(lines)

        try:
            order = Order(
                order_number=self._unique_order_number(),
                user_id=user_id,
                status=OrderStatus.PENDING.value,
                total_amount=total,
                discount_amount=discount,
                final_amount=final,
                payment_method=checkout.payment_method.value,
                notes=checkout.notes,
            )
            order.items = [
                OrderItem(test_id=test.id, quantity=quantity, unit_price=test.effective_price)
                for test, quantity in lines
            ]
            order.home_visit = HomeVisit(
                scheduled_date=checkout.scheduled_date,
                scheduled_time=checkout.scheduled_time,
                address=checkout.address.formatted(),
                status=HomeVisitStatus.SCHEDULED.value,
            )
            self.db.add(order)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create order for user {user_id}: {e}")
            raise DatabaseError(f"Failed to create order: {str(e)}", e)

        self.db.refresh(order)
        logger.info(f"Created order {order.order_number} for user {user_id}: final amount {final:.2f}")
        return order

    def get_order(self, order_id: int, user_id: Optional[int] = None) -> Order:
        """Fetch an order; with user_id, only that user's order is visible"""
        query = self.db.query(Order).filter(Order.id == order_id)
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        order = query.first()
        if not order:
            raise NotFound("Order not found")
        return order

    def list_orders(
        self,
        page: int = 1,
        page_size: int = 10,
        status: Optional[OrderStatus] = None,
        user_id: Optional[int] = None,
    ) -> tuple[list[Order], int]:
        query = self.db.query(Order)
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        if status:
            query = query.filter(Order.status == status.value)

        total = query.count()
        offset = (page - 1) * page_size
        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(page_size).all()
        return orders, total
