"""
Lab report endpoints
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.models.report import Report
from app.models.user import ROLE_ADMIN
from app.schemas.report import ReportUpload, ReportResponse
from app.services.notification_dispatcher import NotificationDispatcher, get_dispatcher
from app.services.order_lifecycle import OrderLifecycleManager
from app.services.order_service import OrderService
from app.services.report_service import ReportService
from app.auth.auth_handler import admin_required, user_required
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

def _report_service(db: Session, dispatcher: NotificationDispatcher) -> ReportService:
    return ReportService(db, OrderLifecycleManager(db, dispatcher))

@router.post("/", response_model=ReportResponse, status_code=201)
@limiter.limit("20/minute")
async def upload_report(
    request: Request,
    upload: ReportUpload,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Attach an uploaded report file to an order (admin)"""
    report = _report_service(db, dispatcher).upload_report(
        order_id=upload.order_id,
        file_name=upload.file_name,
        file_url=upload.file_url,
        uploaded_by=current_user["user_id"],
        file_size=upload.file_size,
        notes=upload.notes,
    )
    return ReportResponse.from_orm(report)

@router.get("/order/{order_id}", response_model=list[ReportResponse])
@limiter.limit("30/minute")
async def get_order_reports(
    request: Request,
    order_id: int,
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db)
):
    """Reports of an order, visible to its owner and admins"""
    owner_id = None if current_user["role"] == ROLE_ADMIN else current_user["user_id"]
    order = OrderService(db).get_order(order_id, user_id=owner_id)
    reports = db.query(Report).filter(Report.order_id == order.id).order_by(Report.uploaded_at).all()
    return [ReportResponse.from_orm(report) for report in reports]

@router.put("/{report_id}/deliver", response_model=ReportResponse)
@limiter.limit("20/minute")
async def deliver_report(
    request: Request,
    report_id: int,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Mark a report delivered; completes an order waiting on it (admin)"""
    report = _report_service(db, dispatcher).deliver_report(report_id, actor_id=current_user["user_id"])
    return ReportResponse.from_orm(report)
