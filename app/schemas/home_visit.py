"""
Pydantic schemas for home-visit operations
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import date, datetime
import re

from app.models.home_visit import HomeVisitStatus

class AssignAgentRequest(BaseModel):
    agent_id: int = Field(..., gt=0, description="ID of a home-visit agent")
    notes: Optional[str] = Field(None, max_length=1000)

class HomeVisitStatusUpdate(BaseModel):
    status: HomeVisitStatus
    notes: Optional[str] = Field(None, max_length=1000)
    otp: Optional[str] = Field(None, description="Collection OTP given by the customer")

    @validator('otp')
    def validate_otp(cls, v):
        if v is None:
            return v
        if not re.match(r'^\d{4,6}$', v):
            raise ValueError('OTP must be 4-6 digits')
        return v

class AgentResponse(BaseModel):
    id: int
    username: str
    first_name: str
    last_name: str
    phone_number: Optional[str]

    class Config:
        from_attributes = True

class HomeVisitResponse(BaseModel):
    id: int
    order_id: int
    scheduled_date: date
    scheduled_time: str
    address: str
    status: str
    agent_id: Optional[int]
    agent: Optional[AgentResponse]
    notes: Optional[str]
    collected_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
