"""
Pydantic schemas for report operations
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import datetime

ALLOWED_EXTENSIONS = ('.pdf', '.jpg', '.jpeg', '.png')
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

class ReportUpload(BaseModel):
    """Metadata for a report file already placed in storage"""
    order_id: int = Field(..., gt=0)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1, max_length=500)
    file_size: Optional[int] = Field(None, ge=0, le=MAX_FILE_SIZE)
    notes: Optional[str] = Field(None, max_length=1000)

    @validator('file_name')
    def validate_file_name(cls, v):
        if not v.lower().endswith(ALLOWED_EXTENSIONS):
            raise ValueError('Only PDF, JPG, and PNG files are allowed')
        return v

class ReportResponse(BaseModel):
    id: int
    order_id: int
    file_name: str
    file_url: str
    file_size: Optional[int]
    uploaded_by: int
    uploaded_at: datetime
    is_delivered: bool
    delivered_at: Optional[datetime]

    class Config:
        from_attributes = True
