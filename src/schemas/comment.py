from datetime import datetime
from typing import List
from pydantic import BaseModel


class CommentCreate(BaseModel):
    """Schema for comment creation"""
    text: str


class CommentAuthor(BaseModel):
    id: int
    username: str
    email: str
    
    class Config:
        from_attributes = True


class CommentResponse(BaseModel):
    """Schema for comment response"""
    id: int
    task_id: int
    text: str
    created_at: datetime
    user: CommentAuthor
    
    class Config:
        from_attributes = True


class CommentList(BaseModel):
    comments: List[CommentResponse]
