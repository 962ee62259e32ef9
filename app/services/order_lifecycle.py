"""
Order lifecycle: legal status transitions, conditional writes and post-commit notifications
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional, Union

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.config import settings
from app.models.order import Order, OrderStatus, OrderStatusHistory
from app.services.notification_context import order_context
from app.services.notification_dispatcher import NotificationDispatcher, Recipient
from app.services.templates import NotificationEvent
from app.utils.error_handler import Conflict, InvalidTransition, NotFound

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS: Mapping[OrderStatus, frozenset] = MappingProxyType({
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SAMPLE_COLLECTION_SCHEDULED, OrderStatus.CANCELLED}),
    OrderStatus.SAMPLE_COLLECTION_SCHEDULED: frozenset({OrderStatus.SAMPLE_COLLECTED, OrderStatus.CANCELLED}),
    OrderStatus.SAMPLE_COLLECTED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.REPORT_READY, OrderStatus.CANCELLED}),
    OrderStatus.REPORT_READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
})

TERMINAL_STATUSES = frozenset(status for status, targets in ORDER_TRANSITIONS.items() if not targets)

# Every reachable status announces itself with exactly one event
STATUS_EVENTS: Mapping[OrderStatus, NotificationEvent] = MappingProxyType({
    OrderStatus.CONFIRMED: NotificationEvent.ORDER_CONFIRMED,
    OrderStatus.SAMPLE_COLLECTION_SCHEDULED: NotificationEvent.SAMPLE_COLLECTION_SCHEDULED,
    OrderStatus.SAMPLE_COLLECTED: NotificationEvent.SAMPLE_COLLECTED,
    OrderStatus.PROCESSING: NotificationEvent.ORDER_PROCESSING,
    OrderStatus.REPORT_READY: NotificationEvent.REPORT_READY,
    OrderStatus.COMPLETED: NotificationEvent.ORDER_COMPLETED,
    OrderStatus.CANCELLED: NotificationEvent.ORDER_CANCELLED,
})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


@dataclass(frozen=True)
class PendingNotification:
    """An event staged by a status write, sent only once the write commits"""
    event: NotificationEvent
    order_id: int


class OrderLifecycleManager:
    """Moves orders through their status lifecycle"""

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher,
        base_url: Optional[str] = None,
        support_phone: Optional[str] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.base_url = base_url or settings.base_url
        self.support_phone = support_phone or settings.support_phone

    def get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound(f"Order {order_id} not found")
        return order

    def transition(
        self,
        order: Union[Order, int],
        target_status: Union[OrderStatus, str],
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Move an order to target_status.

        Re-requesting the current status is a no-op (nothing written, nothing
        sent). Illegal edges raise InvalidTransition; a concurrent writer that
        changed the status first raises Conflict. The notification is sent
        after the commit and its failure never affects the result.
        """
        if not isinstance(order, Order):
            order = self.get_order(order)

        try:
            pending = self.stage_transition(order, target_status, actor_id=actor_id, notes=notes)
            if pending is None:
                return order
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        self.notify(pending)
        return order

    def stage_transition(
        self,
        order: Order,
        target_status: Union[OrderStatus, str],
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[PendingNotification]:
        """
        Validate and write a transition inside the caller's transaction.

        Returns the notification to send after commit, or None when the order
        already has target_status. Nothing is committed here.
        """
        current = OrderStatus(order.status)
        try:
            target = OrderStatus(target_status)
        except ValueError:
            raise InvalidTransition(current.value, str(target_status), f"Unknown order status: {target_status}")

        if target == current:
            stored = self.db.query(Order.status).filter(Order.id == order.id).scalar()
            if stored != current.value:
                raise Conflict(f"Order {order.order_number} was modified concurrently; expected status {current.value}")
            return None
        if not can_transition(current, target):
            raise InvalidTransition(current.value, target.value)

        now = datetime.utcnow()
        updated = (
            self.db.query(Order)
            .filter(Order.id == order.id, Order.status == current.value)
            .update({Order.status: target.value, Order.updated_at: now}, synchronize_session=False)
        )
        if updated != 1:
            raise Conflict(f"Order {order.order_number} was modified concurrently; expected status {current.value}")

        set_committed_value(order, "status", target.value)
        set_committed_value(order, "updated_at", now)

        self.db.add(OrderStatusHistory(
            order_id=order.id,
            from_status=current.value,
            status=target.value,
            notes=notes,
            created_by=actor_id,
            created_at=now,
        ))

        logger.info(f"Order {order.order_number}: {current.value} -> {target.value}")
        return PendingNotification(event=STATUS_EVENTS[target], order_id=order.id)

    def notify(self, pending: PendingNotification) -> bool:
        """Send a staged notification; failures are logged and reported as False"""
        try:
            order = self.get_order(pending.order_id)
            recipient = Recipient.from_user(order.user)
            data = order_context(order, self.base_url, self.support_phone)
            return self.dispatcher.dispatch(pending.event, recipient, data)
        except Exception as e:
            logger.error(
                f"Notification {pending.event.value} for order {pending.order_id} failed: {e}",
                exc_info=True,
            )
            return False
