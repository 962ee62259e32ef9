"""
Report upload and delivery
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.order import OrderStatus
from app.models.report import Report
from app.services.order_lifecycle import OrderLifecycleManager
from app.utils.error_handler import InvalidTransition, NotFound, ReportAlreadyDelivered

logger = logging.getLogger(__name__)

UPLOADABLE_STATUSES = (OrderStatus.PROCESSING, OrderStatus.REPORT_READY)


class ReportService:
    def __init__(self, db: Session, lifecycle: OrderLifecycleManager):
        self.db = db
        self.lifecycle = lifecycle

    def get_report(self, report_id: int) -> Report:
        report = self.db.query(Report).filter(Report.id == report_id).first()
        if not report:
            raise NotFound("Report not found")
        return report

    def upload_report(
        self,
        order_id: int,
        file_name: str,
        file_url: str,
        uploaded_by: int,
        file_size: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Report:
        """
        Record an uploaded report file for an order.

        A processing order moves to REPORT_READY in the same transaction and
        the customer is notified after commit.
        """
        order = self.lifecycle.get_order(order_id)
        current = OrderStatus(order.status)
        if current not in UPLOADABLE_STATUSES:
            raise InvalidTransition(
                current.value,
                OrderStatus.REPORT_READY.value,
                f"Reports can only be uploaded for orders in {' or '.join(s.value for s in UPLOADABLE_STATUSES)}",
            )

        report = Report(
            order_id=order.id,
            file_name=file_name,
            file_url=file_url,
            file_size=file_size,
            uploaded_by=uploaded_by,
            uploaded_at=datetime.utcnow(),
            is_delivered=False,
        )
        try:
            self.db.add(report)
            pending = self.lifecycle.stage_transition(
                order, OrderStatus.REPORT_READY, actor_id=uploaded_by, notes=notes or "Report uploaded by admin"
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(report)
        logger.info(f"Report {report.id} uploaded for order {order.order_number}")
        if pending is not None:
            self.lifecycle.notify(pending)
        return report

    def deliver_report(self, report_id: int, actor_id: Optional[int] = None) -> Report:
        """Mark a report delivered and complete its order when the order is waiting on it"""
        report = self.get_report(report_id)
        if report.is_delivered:
            raise ReportAlreadyDelivered("Report is already marked as delivered")

        order = report.order
        try:
            report.is_delivered = True
            report.delivered_at = datetime.utcnow()
            pending = None
            if OrderStatus(order.status) == OrderStatus.REPORT_READY:
                pending = self.lifecycle.stage_transition(
                    order, OrderStatus.COMPLETED, actor_id=actor_id, notes="Report delivered to customer"
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(report)
        logger.info(f"Report {report.id} delivered for order {order.order_number}")
        if pending is not None:
            self.lifecycle.notify(pending)
        return report
