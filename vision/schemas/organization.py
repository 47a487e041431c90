"""
Pydantic schemas for Organization entities.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class OrganizationBase(BaseModel):
    """Base schema for organization with common fields"""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_private: bool = False


class OrganizationCreate(OrganizationBase):
    """Schema for creating a new organization"""
    pass


class OrganizationOut(OrganizationBase):
    """Schema for organization output"""
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
