from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.database import get_async_session
from src.api.dependencies.auth import get_current_user
from src.api.dependencies.permissions import check_board_access, raise_http_error, get_transition_service
from src.core.exceptions import KanbanError
from src.models.user import User
from src.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskMove,
    TaskResponse,
    TaskAiStatus,
    AiIterationList
)
from src.services.column_service import ColumnService
from src.services.iteration_service import IterationService
from src.services.task_service import TaskService
from src.services.task_transition_service import TaskTransitionService
from src.logs import debug_logger

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)


async def get_visible_task(task_id: int, db: AsyncSession, current_user: User, load_iterations: bool = False):
    task = await TaskService.get_visible(
        db=db,
        task_id=task_id,
        user_id=current_user.id,
        load_iterations=load_iterations
    )
    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found"
        )
    return task


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_create: TaskCreate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Create a task in the first column of a board"""
    title = task_create.title.strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title and board_id are required"
        )
    
    await check_board_access(task_create.board_id, db, current_user)
    
    columns = await ColumnService.get_by_board_id(db=db, board_id=task_create.board_id)
    if not columns:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Board has no columns"
        )
    
    task = await TaskService.create(
        db=db,
        board_id=task_create.board_id,
        column_id=columns[0].id,
        title=title,
        description=(task_create.description or "").strip() or None,
        priority=task_create.priority,
        assignee_id=task_create.assignee_id
    )
    debug_logger.debug(f"Пользователь {current_user.id} создал задачу {task.id}")
    return task


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get a task with its iteration history"""
    return await get_visible_task(task_id, db, current_user, load_iterations=True)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_update: TaskUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Update task details (title, description, priority, assignee, order)"""
    await get_visible_task(task_id, db, current_user)
    
    return await TaskService.update(
        db=db,
        task_id=task_id,
        title=task_update.title.strip() if task_update.title is not None else None,
        description=task_update.description.strip() if task_update.description is not None else None,
        priority=task_update.priority,
        assignee_id=task_update.assignee_id,
        order=task_update.order
    )


@router.delete("/{task_id}", status_code=status.HTTP_200_OK)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Delete a task together with its iterations and comments"""
    await get_visible_task(task_id, db, current_user)
    
    await TaskService.delete(db=db, task_id=task_id)
    return {"success": True}


@router.put("/{task_id}/move", response_model=TaskResponse)
async def move_task(
    task_id: int,
    task_move: TaskMove,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
    transitions: TaskTransitionService = Depends(get_transition_service),
):
    """
    Move a task to a column.
    
    Entering an AI-enabled column marks the task ``running`` and queues an AI
    iteration; the response is returned before the AI call completes.
    """
    try:
        return await transitions.move(
            db=db,
            task_id=task_id,
            user_id=current_user.id,
            column_id=task_move.column_id,
            order=task_move.order,
            feedback=task_move.feedback
        )
    except KanbanError as e:
        raise_http_error(e)


@router.get("/{task_id}/iterations", response_model=AiIterationList)
async def get_task_iterations(
    task_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Full AI iteration history of a task"""
    await get_visible_task(task_id, db, current_user)
    
    iterations = await IterationService.list_iterations(db=db, task_id=task_id)
    return {"iterations": iterations}


@router.get("/{task_id}/ai-status", response_model=TaskAiStatus)
async def get_task_ai_status(
    task_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Cheap "is it done yet" read for clients polling a running task"""
    task = await get_visible_task(task_id, db, current_user)
    latest = await IterationService.get_latest(db=db, task_id=task_id)
    
    return {
        "task_id": task.id,
        "column_id": task.column_id,
        "ai_state": task.ai_state,
        "latest_iteration": latest
    }
