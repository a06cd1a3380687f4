import asyncio
from typing import List, Optional
from weakref import WeakValueDictionary
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from src.core.exceptions import NotFoundError
from src.models.ai_iteration import AiIteration, IterationState
from src.models.task import Task
from src.logs import debug_logger, log_function


# Локи по задачам: номер итерации считается и записывается под локом
_task_locks: "WeakValueDictionary[int, asyncio.Lock]" = WeakValueDictionary()


def _task_lock(task_id: int) -> asyncio.Lock:
    lock = _task_locks.get(task_id)
    if lock is None:
        lock = asyncio.Lock()
        _task_locks[task_id] = lock
    return lock


class IterationService:
    """Append-only log of AI attempts per task"""

    @staticmethod
    async def list_iterations(
        db: AsyncSession,
        task_id: int
    ) -> List[AiIteration]:
        """Full iteration history of a task, ascending by number"""
        query = select(AiIteration).where(
            AiIteration.task_id == task_id
        ).order_by(AiIteration.number)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_latest(
        db: AsyncSession,
        task_id: int
    ) -> Optional[AiIteration]:
        """Most recent iteration of a task, or None"""
        query = select(AiIteration).where(
            AiIteration.task_id == task_id
        ).order_by(AiIteration.number.desc()).limit(1)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        iteration_id: int
    ) -> Optional[AiIteration]:
        result = await db.execute(select(AiIteration).where(AiIteration.id == iteration_id))
        return result.scalars().first()

    @staticmethod
    @log_function()
    async def append_iteration(
        db: AsyncSession,
        task_id: int,
        result: str,
        log: Optional[str],
        state: IterationState
    ) -> AiIteration:
        """
        Append a new iteration numbered max + 1 (starting at 1).
        
        Appends for the same task are serialized: a per-task lock inside the
        process and a row lock on the task inside the database, held until
        the insert is committed.
        
        Raises:
            NotFoundError: If the task does not exist
        """
        async with _task_lock(task_id):
            # Блокируем строку задачи до коммита (на SQLite FOR UPDATE не генерируется)
            locked = await db.execute(
                select(Task.id).where(Task.id == task_id).with_for_update()
            )
            if locked.scalar() is None:
                raise NotFoundError(f"Task {task_id} not found")
            
            max_number = await db.execute(
                select(func.max(AiIteration.number)).where(AiIteration.task_id == task_id)
            )
            number = (max_number.scalar() or 0) + 1
            
            iteration = AiIteration(
                task_id=task_id,
                number=number,
                result=result,
                log=log,
                state=state
            )
            db.add(iteration)
            await db.commit()
        
        debug_logger.info(f"Добавлена итерация #{number} для задачи {task_id} ({state.value})")
        return iteration

    @staticmethod
    async def attach_feedback(
        db: AsyncSession,
        iteration_id: int,
        feedback: str
    ) -> AiIteration:
        """
        Attach user feedback to a completed iteration.
        
        Re-submitting the same text is a no-op.
        
        Raises:
            NotFoundError: If the iteration does not exist or already carries
                different feedback
        """
        iteration = await IterationService.get_by_id(db, iteration_id)
        if not iteration:
            raise NotFoundError(f"Iteration {iteration_id} not found")
        
        if iteration.feedback is not None:
            if iteration.feedback == feedback:
                return iteration
            debug_logger.warning(f"Итерация {iteration_id} уже содержит другой отзыв")
            raise NotFoundError(f"Iteration {iteration_id} already has feedback")
        
        iteration.feedback = feedback
        await db.commit()
        debug_logger.debug(f"Отзыв добавлен к итерации #{iteration.number} задачи {iteration.task_id}")
        return iteration
