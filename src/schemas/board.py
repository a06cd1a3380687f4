from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr

from src.schemas.column import ColumnResponse
from src.schemas.task import TaskResponse


class BoardBase(BaseModel):
    """Base schema for board data"""
    title: str
    description: Optional[str] = None


class BoardCreate(BoardBase):
    """Schema for board creation"""
    pass


class BoardUpdate(BaseModel):
    """Schema for board update"""
    title: Optional[str] = None
    description: Optional[str] = None


class BoardResponse(BoardBase):
    """Schema for board response"""
    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime
    columns: List[ColumnResponse] = []
    
    class Config:
        from_attributes = True


class BoardCompleteResponse(BoardResponse):
    """Board with its columns and all tasks (with iteration history)"""
    tasks: List[TaskResponse] = []


class BoardList(BaseModel):
    """Schema for list of boards"""
    boards: List[BoardResponse]
    total: int


class BoardMemberAdd(BaseModel):
    """Schema for adding a member by email"""
    email: EmailStr


class BoardMemberResponse(BaseModel):
    id: int
    email: str
    username: str
    
    class Config:
        from_attributes = True
