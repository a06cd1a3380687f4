from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class ColumnBase(BaseModel):
    """Base schema for column data"""
    title: str = Field(..., min_length=1)
    color: Optional[str] = None
    ai_enabled: bool = False
    

class ColumnCreate(ColumnBase):
    """Schema for column creation"""
    order: Optional[int] = None


class ColumnUpdate(BaseModel):
    """Schema for column update"""
    title: Optional[str] = None
    color: Optional[str] = None
    ai_enabled: Optional[bool] = None
    order: Optional[int] = None


class ColumnResponse(BaseModel):
    """Schema for column response"""
    id: int
    board_id: int
    title: str
    color: str
    ai_enabled: bool
    order: int
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True


class ColumnList(BaseModel):
    """Schema for list of columns"""
    columns: List[ColumnResponse]


class ColumnOrderUpdate(BaseModel):
    """Schema for updating column order"""
    column_order: List[int] = Field(..., min_length=1)
