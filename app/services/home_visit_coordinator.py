"""
Home-visit coordination: agent assignment and visit status changes

Visit changes that imply an order status change stage it through the
OrderLifecycleManager within the same transaction, so both commit together.
"""

import logging
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional, Union

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.models.home_visit import HomeVisit, HomeVisitStatus
from app.models.order import OrderStatus
from app.models.user import User, ROLE_AGENT
from app.services.notification_context import order_context
from app.services.notification_dispatcher import NotificationDispatcher, Recipient
from app.services.order_lifecycle import TERMINAL_STATUSES, OrderLifecycleManager
from app.services.templates import NotificationEvent
from app.utils.error_handler import AgentRequired, AlreadyAssigned, Conflict, InvalidTransition, NotFound

logger = logging.getLogger(__name__)

VISIT_TRANSITIONS: Mapping[HomeVisitStatus, frozenset] = MappingProxyType({
    HomeVisitStatus.SCHEDULED: frozenset({HomeVisitStatus.IN_PROGRESS, HomeVisitStatus.CANCELLED}),
    HomeVisitStatus.IN_PROGRESS: frozenset({HomeVisitStatus.COMPLETED, HomeVisitStatus.CANCELLED}),
    HomeVisitStatus.COMPLETED: frozenset(),
    HomeVisitStatus.CANCELLED: frozenset(),
})

# Order status a visit status pulls the linked order to
ORDER_STATUS_FOR_VISIT: Mapping[HomeVisitStatus, OrderStatus] = MappingProxyType({
    HomeVisitStatus.IN_PROGRESS: OrderStatus.SAMPLE_COLLECTION_SCHEDULED,
    HomeVisitStatus.COMPLETED: OrderStatus.SAMPLE_COLLECTED,
    HomeVisitStatus.CANCELLED: OrderStatus.CANCELLED,
})


class HomeVisitCoordinator:
    """Assigns collection agents and moves home visits through their statuses"""

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher,
        lifecycle: Optional[OrderLifecycleManager] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.lifecycle = lifecycle or OrderLifecycleManager(db, dispatcher)

    def get_visit(self, visit_id: int) -> HomeVisit:
        visit = self.db.query(HomeVisit).filter(HomeVisit.id == visit_id).first()
        if not visit:
            raise NotFound(f"Home visit {visit_id} not found")
        return visit

    def get_agent(self, agent_id: int) -> User:
        agent = self.db.query(User).filter(
            User.id == agent_id,
            User.role == ROLE_AGENT,
            User.is_active == True,  # noqa: E712
        ).first()
        if not agent:
            raise NotFound("Agent not found or not active")
        return agent

    def assign_agent(self, visit: Union[HomeVisit, int], agent_id: int, notes: Optional[str] = None) -> HomeVisit:
        """
        Assign a collection agent to a scheduled visit.

        Only the first assignment is allowed: any later call raises
        AlreadyAssigned, whatever agent it names.
        """
        if not isinstance(visit, HomeVisit):
            visit = self.get_visit(visit)

        if visit.agent_id is not None:
            raise AlreadyAssigned(f"Home visit {visit.id} already has an agent assigned")
        current = HomeVisitStatus(visit.status)
        if current != HomeVisitStatus.SCHEDULED:
            raise InvalidTransition(
                current.value, HomeVisitStatus.SCHEDULED.value, "Agents can only be assigned to scheduled visits"
            )
        self._require_open_order(visit)
        agent = self.get_agent(agent_id)

        now = datetime.utcnow()
        values = {"agent_id": agent.id, "notes": notes, "updated_at": now}
        try:
            updated = (
                self.db.query(HomeVisit)
                .filter(
                    HomeVisit.id == visit.id,
                    HomeVisit.agent_id.is_(None),
                    HomeVisit.status == HomeVisitStatus.SCHEDULED.value,
                )
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                raise self._assignment_conflict(visit.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(visit)
        logger.info(f"Home visit {visit.id}: agent {agent.username} assigned")
        self.notify(visit, NotificationEvent.HOME_VISIT_SCHEDULED)
        return visit

    def _assignment_conflict(self, visit_id: int) -> Exception:
        agent_id = self.db.query(HomeVisit.agent_id).filter(HomeVisit.id == visit_id).scalar()
        if agent_id is not None:
            return AlreadyAssigned(f"Home visit {visit_id} already has an agent assigned")
        return Conflict(f"Home visit {visit_id} was modified concurrently")

    def _require_open_order(self, visit: HomeVisit):
        order_status = OrderStatus(visit.order.status)
        if order_status in TERMINAL_STATUSES:
            raise InvalidTransition(
                visit.status,
                HomeVisitStatus.SCHEDULED.value,
                f"Order {visit.order.order_number} is {order_status.value}",
            )

    def update_status(
        self,
        visit: Union[HomeVisit, int],
        target_status: Union[HomeVisitStatus, str],
        notes: Optional[str] = None,
        otp: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> HomeVisit:
        """
        Move a visit to target_status.

        Starting a visit needs an assigned agent. Completing it stamps the
        collection time and moves the order to SAMPLE_COLLECTED; cancelling
        it cancels the order. Both writes share one transaction and the order
        notification goes out after commit.
        """
        if not isinstance(visit, HomeVisit):
            visit = self.get_visit(visit)

        current = HomeVisitStatus(visit.status)
        try:
            target = HomeVisitStatus(target_status)
        except ValueError:
            raise InvalidTransition(current.value, str(target_status), f"Unknown home visit status: {target_status}")

        if target == HomeVisitStatus.IN_PROGRESS and visit.agent_id is None:
            raise AgentRequired(f"Home visit {visit.id} has no agent assigned")
        if target == current:
            stored = self.db.query(HomeVisit.status).filter(HomeVisit.id == visit.id).scalar()
            if stored != current.value:
                raise Conflict(f"Home visit {visit.id} was modified concurrently; expected status {current.value}")
            return visit
        if target not in VISIT_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        now = datetime.utcnow()
        values = {"status": target.value, "updated_at": now}
        if notes:
            values["notes"] = notes
        if otp:
            values["otp"] = otp
        if target == HomeVisitStatus.COMPLETED:
            values["collected_at"] = now

        try:
            updated = (
                self.db.query(HomeVisit)
                .filter(HomeVisit.id == visit.id, HomeVisit.status == current.value)
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                raise Conflict(f"Home visit {visit.id} was modified concurrently; expected status {current.value}")
            for field, value in values.items():
                set_committed_value(visit, field, value)

            pending = None
            order_target = ORDER_STATUS_FOR_VISIT.get(target)
            if order_target is not None:
                pending = self.lifecycle.stage_transition(
                    visit.order,
                    order_target,
                    actor_id=actor_id,
                    notes=f"Home visit status changed to {target.value}",
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(visit)
        logger.info(f"Home visit {visit.id}: {current.value} -> {target.value}")

        if pending is not None:
            self.lifecycle.notify(pending)
        return visit

    def send_reminder(self, visit_id: int) -> bool:
        """Remind the customer of an upcoming visit that already has an agent"""
        visit = self.get_visit(visit_id)
        current = HomeVisitStatus(visit.status)
        if current != HomeVisitStatus.SCHEDULED:
            raise InvalidTransition(
                current.value, HomeVisitStatus.SCHEDULED.value, "Reminders are only sent for scheduled visits"
            )
        if visit.agent_id is None:
            raise AgentRequired(f"Home visit {visit.id} has no agent assigned")
        self._require_open_order(visit)
        return self.notify(visit, NotificationEvent.HOME_VISIT_REMINDER)

    def notify(self, visit: HomeVisit, event: NotificationEvent) -> bool:
        try:
            order = visit.order
            data = order_context(order, self.lifecycle.base_url, self.lifecycle.support_phone)
            return self.dispatcher.dispatch(event, Recipient.from_user(order.user), data)
        except Exception as e:
            logger.error(f"Notification {event.value} for home visit {visit.id} failed: {e}", exc_info=True)
            return False
