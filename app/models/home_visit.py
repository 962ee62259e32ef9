"""
Home visit model for sample collection appointments
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Date, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

class HomeVisitStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class HomeVisit(Base):
    __tablename__ = "home_visits"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False)
    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(String(50), nullable=False)  # slot token, e.g. "07:00-09:00"
    address = Column(Text, nullable=False)
    status = Column(String(20), default=HomeVisitStatus.SCHEDULED.value, nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    otp = Column(String(10), nullable=True)
    collected_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("Order", back_populates="home_visit")
    agent = relationship("User", foreign_keys=[agent_id])

    def __repr__(self):
        return f"<HomeVisit(id={self.id}, order_id={self.order_id}, status='{self.status}')>"
