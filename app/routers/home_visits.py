"""
Home sample collection endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.database import get_db
from app.models.home_visit import HomeVisit, HomeVisitStatus
from app.models.user import ROLE_AGENT
from app.schemas.home_visit import AssignAgentRequest, HomeVisitStatusUpdate, HomeVisitResponse, AgentResponse
from app.services.home_visit_coordinator import HomeVisitCoordinator
from app.services.notification_dispatcher import NotificationDispatcher, get_dispatcher
from app.services.user_service import UserService
from app.auth.auth_handler import admin_required, field_staff_required
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/", response_model=list[HomeVisitResponse])
@limiter.limit("30/minute")
async def get_home_visits(
    request: Request,
    visit_status: Optional[HomeVisitStatus] = Query(None, alias="status", description="Filter by status"),
    current_user: dict = Depends(field_staff_required),
    db: Session = Depends(get_db)
):
    """List home visits; agents only see visits assigned to them"""
    query = db.query(HomeVisit)
    if current_user["role"] == ROLE_AGENT:
        query = query.filter(HomeVisit.agent_id == current_user["user_id"])
    if visit_status:
        query = query.filter(HomeVisit.status == visit_status.value)

    visits = query.order_by(HomeVisit.scheduled_date, HomeVisit.id).all()
    return [HomeVisitResponse.from_orm(visit) for visit in visits]

@router.get("/agents", response_model=list[AgentResponse])
@limiter.limit("30/minute")
async def get_agents(
    request: Request,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Active agents that visits can be assigned to"""
    agents = await UserService(db).list_agents()
    return [AgentResponse.from_orm(agent) for agent in agents]

@router.put("/{visit_id}/assign", response_model=HomeVisitResponse)
@limiter.limit("20/minute")
async def assign_agent(
    request: Request,
    visit_id: int,
    assignment: AssignAgentRequest,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Assign a collection agent to a scheduled visit (admin)"""
    coordinator = HomeVisitCoordinator(db, dispatcher)
    visit = coordinator.assign_agent(visit_id, assignment.agent_id, notes=assignment.notes)
    return HomeVisitResponse.from_orm(visit)

@router.put("/{visit_id}/status", response_model=HomeVisitResponse)
@limiter.limit("30/minute")
async def update_home_visit_status(
    request: Request,
    visit_id: int,
    status_update: HomeVisitStatusUpdate,
    current_user: dict = Depends(field_staff_required),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Start, complete or cancel a visit; agents may only update their own visits"""
    coordinator = HomeVisitCoordinator(db, dispatcher)
    visit = coordinator.get_visit(visit_id)

    if current_user["role"] == ROLE_AGENT and visit.agent_id != current_user["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This visit is not assigned to you"
        )

    visit = coordinator.update_status(
        visit,
        status_update.status,
        notes=status_update.notes,
        otp=status_update.otp,
        actor_id=current_user["user_id"],
    )
    return HomeVisitResponse.from_orm(visit)

@router.post("/{visit_id}/remind")
@limiter.limit("10/minute")
async def send_visit_reminder(
    request: Request,
    visit_id: int,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Remind the customer about an upcoming visit (admin)"""
    sent = HomeVisitCoordinator(db, dispatcher).send_reminder(visit_id)
    logger.info(f"Reminder for home visit {visit_id}: {'sent' if sent else 'not sent'}")
    return {"visit_id": visit_id, "sent": sent}
