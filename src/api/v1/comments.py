from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.database import get_async_session
from src.api.dependencies.auth import get_current_user
from src.api.dependencies.permissions import raise_http_error
from src.api.v1.tasks import get_visible_task
from src.core.exceptions import KanbanError
from src.models.user import User
from src.services.comment_service import CommentService
from src.schemas.comment import (
    CommentCreate,
    CommentResponse,
    CommentList
)

router = APIRouter(
    prefix="/tasks/{task_id}/comments",
    tags=["comments"],
)


@router.get("", response_model=CommentList)
async def get_comments(
    task_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get all comments of a task, oldest first"""
    await get_visible_task(task_id, db, current_user)
    
    comments = await CommentService.get_by_task_id(db=db, task_id=task_id)
    return {"comments": comments}


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    task_id: int,
    comment_data: CommentCreate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Add a comment to a task (owner and members alike)"""
    await get_visible_task(task_id, db, current_user)
    
    try:
        return await CommentService.create(
            db=db,
            text=comment_data.text,
            task_id=task_id,
            user_id=current_user.id
        )
    except KanbanError as e:
        raise_http_error(e)
