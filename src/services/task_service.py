from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_, exists
from sqlalchemy.orm import selectinload
from datetime import datetime

from src.models.board import Board, board_members
from src.models.task import Task, TaskPriority, AiState
from src.logs import debug_logger, log_function


def visible_to(user_id: int):
    """Filter: the task's board is owned by the user or the user is a member"""
    membership = exists().where(
        board_members.c.board_id == Task.board_id,
        board_members.c.user_id == user_id
    )
    owned = exists().where(Board.id == Task.board_id, Board.owner_id == user_id)
    return or_(owned, membership)


class TaskService:
    """CRUD operations service for Task model"""

    @staticmethod
    async def next_order(db: AsyncSession, column_id: int) -> float:
        """Rank that places a task at the end of the column"""
        result = await db.execute(select(func.max(Task.order)).where(Task.column_id == column_id))
        max_order = result.scalar()
        return (max_order if max_order is not None else -1) + 1

    @staticmethod
    @log_function()
    async def create(
        db: AsyncSession,
        board_id: int,
        column_id: int,
        title: str,
        description: Optional[str] = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        assignee_id: Optional[int] = None
    ) -> Task:
        """Create a new task at the end of a column with idle AI state"""
        task = Task(
            board_id=board_id,
            column_id=column_id,
            title=title,
            description=description,
            priority=priority,
            assignee_id=assignee_id,
            order=await TaskService.next_order(db, column_id),
            ai_state=AiState.IDLE,
            ai_generation=0
        )
        db.add(task)
        await db.commit()
        
        debug_logger.info(f"Создана новая задача: ID {task.id}, в колонке {column_id}")
        return await TaskService.get_by_id(db, task.id, load_iterations=True)

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        task_id: int,
        load_iterations: bool = False
    ) -> Optional[Task]:
        """Get a task by ID with optional iteration history"""
        query = select(Task).where(Task.id == task_id)
        if load_iterations:
            query = query.options(selectinload(Task.iterations))
            # Перечитываем строку, даже если она уже в identity map сессии
            query = query.execution_options(populate_existing=True)
        
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_visible(
        db: AsyncSession,
        task_id: int,
        user_id: int,
        load_iterations: bool = False
    ) -> Optional[Task]:
        """Get a task only if its board is owned by or shared with the user"""
        query = select(Task).where(Task.id == task_id, visible_to(user_id))
        if load_iterations:
            query = query.options(selectinload(Task.iterations)).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_by_board_id(db: AsyncSession, board_id: int) -> List[Task]:
        query = select(Task).where(Task.board_id == board_id).options(
            selectinload(Task.iterations)
        ).order_by(Task.column_id, Task.order)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def count_in_column(db: AsyncSession, column_id: int) -> int:
        result = await db.execute(select(func.count(Task.id)).where(Task.column_id == column_id))
        return result.scalar() or 0

    @staticmethod
    @log_function()
    async def update(
        db: AsyncSession,
        task_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[TaskPriority] = None,
        assignee_id: Optional[int] = None,
        order: Optional[float] = None
    ) -> Optional[Task]:
        """Update task details; AI fields are owned by the transition flow"""
        update_data = {}
        if title is not None:
            update_data["title"] = title
        if description is not None:
            # Пустая строка очищает описание
            update_data["description"] = description or None
        if priority is not None:
            update_data["priority"] = priority
        if assignee_id is not None:
            update_data["assignee_id"] = assignee_id or None
        if order is not None:
            update_data["order"] = order
        
        if update_data:
            update_data["updated_at"] = datetime.utcnow()
            debug_logger.debug(f"Обновляемые поля задачи {task_id}: {update_data}")
            await db.execute(update(Task).where(Task.id == task_id).values(**update_data))
            await db.commit()
        
        return await TaskService.get_by_id(db, task_id, load_iterations=True)

    @staticmethod
    async def delete(db: AsyncSession, task_id: int) -> bool:
        """Delete a task; iterations and comments are cascade-deleted"""
        task = await TaskService.get_by_id(db, task_id, load_iterations=True)
        if not task:
            debug_logger.warning(f"Задача с ID {task_id} не найдена при попытке удаления")
            return False
        
        await db.delete(task)
        await db.commit()
        debug_logger.info(f"Задача {task_id} успешно удалена")
        return True

    @staticmethod
    async def apply_ai_outcome(
        db: AsyncSession,
        task_id: int,
        generation: int,
        ai_state: AiState,
        result: str,
        log: str,
        column_id: Optional[int] = None
    ) -> bool:
        """
        Write the outcome of an AI run onto the task.
        
        Only applied while the task still carries the generation the run was
        armed with. Returns False when a newer run has been armed since.
        """
        values = {
            "ai_state": ai_state,
            "ai_result": result,
            "ai_log": log,
            "updated_at": datetime.utcnow(),
        }
        if column_id is not None:
            values["column_id"] = column_id
            values["order"] = await TaskService.next_order(db, column_id)
        
        stmt = update(Task).where(
            Task.id == task_id,
            Task.ai_generation == generation
        ).values(**values)
        outcome = await db.execute(stmt)
        await db.commit()
        return outcome.rowcount > 0

    @staticmethod
    async def get_running(db: AsyncSession) -> List[Task]:
        """Tasks whose AI run has not finished"""
        result = await db.execute(
            select(Task).where(Task.ai_state == AiState.RUNNING).order_by(Task.updated_at, Task.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def fail_running(
        db: AsyncSession,
        task_id: int,
        generation: int,
        result: str,
        log: str,
        column_id: Optional[int] = None
    ) -> bool:
        """
        Mark a task still ``running`` for this generation as failed.
        
        Used when the outcome of a run could not be saved the normal way.
        """
        values = {
            "ai_state": AiState.FAILED,
            "ai_result": result,
            "ai_log": log,
            "updated_at": datetime.utcnow(),
        }
        if column_id is not None:
            values["column_id"] = column_id
            values["order"] = await TaskService.next_order(db, column_id)
        
        outcome = await db.execute(
            update(Task).where(
                Task.id == task_id,
                Task.ai_generation == generation,
                Task.ai_state == AiState.RUNNING
            ).values(**values)
        )
        await db.commit()
        return outcome.rowcount > 0
