"""
Pydantic schemas for Board entities.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class BoardBase(BaseModel):
    """Base schema for board with common fields"""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_private: bool = False


class BoardCreate(BoardBase):
    """
    Schema for creating a board.

    Without `organization_id` the board is personal to its creator.
    """
    organization_id: Optional[int] = Field(None, gt=0)


class BoardOut(BoardBase):
    """Schema for board output"""
    id: int
    organization_id: Optional[int] = None
    created_by_id: int
    created_at: datetime

    class Config:
        from_attributes = True
