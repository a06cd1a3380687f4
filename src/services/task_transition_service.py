from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime

from src.core.exceptions import NotFoundError, ValidationError
from src.models.column import Column
from src.models.task import Task, AiState
from src.services.ai_runner import AiJob
from src.services.ai_worker import AiJobQueue
from src.services.column_policy import is_ai_column
from src.services.task_service import TaskService, visible_to
from src.logs import debug_logger, api_logger, log_function


class TaskTransitionService:
    """
    Entry point for every task move.
    
    State machine over ``Task.ai_state``::
    
        idle ──enter AI column──▶ running ──success──▶ succeeded
                                     │                    │
                                  failure          enter AI column
                                     ▼                    │
                                  failed ──enter AI column┘──▶ running
        failed ──move to non-AI column──▶ idle
    
    The move is committed first; the AI job is handed to the dispatcher only
    afterwards, so the worker always sees the ``running`` marker.
    """

    def __init__(self, dispatcher: AiJobQueue):
        self.dispatcher = dispatcher

    @staticmethod
    def arms_processing(from_column: Optional[Column], to_column: Column) -> bool:
        """Only a genuine entry into an AI column arms processing"""
        if not is_ai_column(to_column):
            return False
        return from_column is None or from_column.id != to_column.id

    @log_function()
    async def move(
        self,
        db: AsyncSession,
        task_id: int,
        user_id: int,
        column_id: Optional[int],
        order: Optional[float] = None,
        feedback: Optional[str] = None
    ) -> Task:
        """
        Move a task to a column and apply AI side effects.
        
        Raises:
            ValidationError: If no target column is given
            NotFoundError: If the task is not visible to the user or the
                column does not exist on the task's board
        """
        if column_id is None:
            raise ValidationError("column_id is required")
        
        # Строка задачи блокируется до коммита, параллельные перемещения идут по очереди
        result = await db.execute(
            select(Task)
            .where(Task.id == task_id, visible_to(user_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        task = result.scalars().first()
        if not task:
            raise NotFoundError("Task not found")
        
        to_column = await db.get(Column, column_id)
        if not to_column or to_column.board_id != task.board_id:
            raise NotFoundError("Column not found")
        
        from_column = await db.get(Column, task.column_id)
        feedback = feedback.strip() if feedback else None
        
        if order is None:
            order = task.order if to_column.id == task.column_id else await TaskService.next_order(db, to_column.id)
        
        task.column_id = to_column.id
        task.order = order
        task.updated_at = datetime.utcnow()
        
        job = None
        if self.arms_processing(from_column, to_column):
            task.ai_state = AiState.RUNNING
            task.ai_result = None
            task.ai_log = None
            task.ai_generation = (task.ai_generation or 0) + 1
            job = AiJob(
                task_id=task.id,
                title=task.title,
                description=task.description,
                column_id=to_column.id,
                generation=task.ai_generation,
                feedback=feedback
            )
        elif not is_ai_column(to_column) and task.ai_state == AiState.FAILED:
            task.ai_state = AiState.IDLE
        
        await db.commit()
        debug_logger.info(
            f"Задача {task_id} перемещена из колонки {from_column.id if from_column else None} "
            f"в колонку {to_column.id}, AI состояние: {task.ai_state.value}"
        )
        
        if job is not None:
            self.dispatcher.submit(job)
            api_logger.info(f"AI job submitted for task {task_id} (generation {job.generation})")
        
        return await TaskService.get_by_id(db, task_id, load_iterations=True)
