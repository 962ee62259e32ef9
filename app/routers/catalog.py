"""
Lab test catalog endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.models.lab_test import LabTest
from app.schemas.lab_test import LabTestCreate, LabTestResponse
from app.auth.auth_handler import admin_required
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/tests", response_model=list[LabTestResponse])
@limiter.limit("60/minute")
async def get_lab_tests(request: Request, db: Session = Depends(get_db)):
    """Active lab tests - publicly accessible"""
    tests = db.query(LabTest).filter(LabTest.is_active == True).order_by(LabTest.name).all()  # noqa: E712
    return [LabTestResponse.from_orm(test) for test in tests]

@router.post("/tests", response_model=LabTestResponse, status_code=201)
@limiter.limit("10/minute")
async def create_lab_test(
    request: Request,
    lab_test: LabTestCreate,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Add a test to the catalog (admin)"""
    try:
        existing = db.query(LabTest).filter(LabTest.slug == lab_test.slug).first()
        if existing:
            raise HTTPException(
                status_code=400,
                detail=f"Lab test with slug '{lab_test.slug}' already exists"
            )

        db_test = LabTest(**lab_test.dict())
        db.add(db_test)
        db.commit()
        db.refresh(db_test)

        logger.info(f"Created lab test {db_test.slug} with ID: {db_test.id}")
        return LabTestResponse.from_orm(db_test)

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create lab test: {e}")
        raise HTTPException(status_code=500, detail="Failed to create lab test")
