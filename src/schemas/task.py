from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from src.models.ai_iteration import IterationState
from src.models.task import AiState, TaskPriority


class AiIterationResponse(BaseModel):
    """One AI attempt of a task"""
    id: int
    task_id: int
    number: int
    result: str
    log: Optional[str] = None
    feedback: Optional[str] = None
    state: IterationState
    created_at: datetime
    
    class Config:
        from_attributes = True


class AiIterationList(BaseModel):
    iterations: List[AiIterationResponse]


class TaskCreate(BaseModel):
    """Schema for task creation; the task starts in the board's first column"""
    board_id: int
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[int] = None


class TaskUpdate(BaseModel):
    """Schema for task update"""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[int] = None
    order: Optional[float] = None


class TaskMove(BaseModel):
    """Schema for moving a task; feedback steers the next AI iteration"""
    column_id: Optional[int] = None
    order: Optional[float] = None
    feedback: Optional[str] = Field(None, max_length=10000)


class TaskResponse(BaseModel):
    """Schema for task response, including the iteration history"""
    id: int
    board_id: int
    column_id: int
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    assignee_id: Optional[int] = None
    order: float
    ai_state: AiState
    ai_result: Optional[str] = None
    ai_log: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    iterations: List[AiIterationResponse] = []
    
    class Config:
        from_attributes = True


class TaskAiStatus(BaseModel):
    """Cheap polling view: AI state, column and the newest iteration"""
    task_id: int
    column_id: int
    ai_state: AiState
    latest_iteration: Optional[AiIterationResponse] = None
