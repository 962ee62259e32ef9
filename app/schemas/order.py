"""
Pydantic schemas for checkout and order operations
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import date, datetime
import re

from app.models.order import OrderStatus, PaymentMethod

class CheckoutItem(BaseModel):
    """One test line in a checkout request"""
    test_id: int = Field(..., gt=0, description="Lab test ID")
    quantity: int = Field(1, ge=1, le=10, description="Number of units")

class CollectionAddress(BaseModel):
    """Where the agent collects the sample"""
    line1: str = Field(..., min_length=1, max_length=200)
    line2: Optional[str] = Field(None, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., description="6-digit postal code")

    @validator('pincode')
    def validate_pincode(cls, v):
        if not re.match(r'^\d{6}$', v):
            raise ValueError('Pincode must be 6 digits')
        return v

    def formatted(self) -> str:
        street = ", ".join(part for part in [self.line1, self.line2] if part)
        return f"{street}, {self.city}, {self.state} {self.pincode}"

class CheckoutRequest(BaseModel):
    """Schema for placing an order"""
    items: list[CheckoutItem] = Field(..., min_length=1, description="Tests to book")
    address: CollectionAddress
    scheduled_date: date = Field(..., description="Sample collection date")
    scheduled_time: str = Field(..., min_length=1, max_length=50, description="Collection time slot, e.g. 07:00-09:00")
    payment_method: PaymentMethod = Field(..., description="razorpay or cod")
    notes: Optional[str] = Field(None, max_length=1000)

    @validator('items')
    def validate_unique_tests(cls, v):
        test_ids = [item.test_id for item in v]
        if len(test_ids) != len(set(test_ids)):
            raise ValueError('Each test can only appear once per order')
        return v

    @validator('scheduled_date')
    def validate_scheduled_date(cls, v):
        if v < date.today():
            raise ValueError('Collection date cannot be in the past')
        return v

class OrderStatusUpdate(BaseModel):
    """Schema for an admin status change"""
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)

class OrderItemResponse(BaseModel):
    id: int
    test_id: int
    quantity: int
    unit_price: float

    class Config:
        from_attributes = True

class HomeVisitSummary(BaseModel):
    id: int
    scheduled_date: date
    scheduled_time: str
    status: str
    agent_id: Optional[int]

    class Config:
        from_attributes = True

class OrderResponse(BaseModel):
    """Schema for order responses"""
    id: int
    order_number: str
    user_id: int
    status: str
    total_amount: float
    discount_amount: float
    final_amount: float
    payment_method: str
    notes: Optional[str]
    items: list[OrderItemResponse]
    home_visit: Optional[HomeVisitSummary]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True

class OrderListResponse(BaseModel):
    """Schema for paginated order list responses"""
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int

class StatusHistoryResponse(BaseModel):
    from_status: str
    status: str
    notes: Optional[str]
    created_by: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True
