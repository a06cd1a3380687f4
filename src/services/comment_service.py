from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from src.core.exceptions import ValidationError
from src.models.task import Comment
from src.logs import debug_logger


class CommentService:
    """CRUD operations service for Comment model"""

    @staticmethod
    async def create(
        db: AsyncSession,
        text: str,
        task_id: int,
        user_id: int
    ) -> Comment:
        """
        Create a new comment on a task
        
        Raises:
            ValidationError: If the text is blank
        """
        text = (text or "").strip()
        if not text:
            raise ValidationError("Text is required")
        
        comment = Comment(
            text=text,
            task_id=task_id,
            user_id=user_id
        )
        db.add(comment)
        await db.commit()
        
        debug_logger.debug(f"Пользователь {user_id} добавил комментарий {comment.id} к задаче {task_id}")
        return await CommentService.get_by_id(db, comment.id)

    @staticmethod
    async def get_by_id(db: AsyncSession, comment_id: int):
        query = select(Comment).where(Comment.id == comment_id).options(selectinload(Comment.user))
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_by_task_id(
        db: AsyncSession,
        task_id: int
    ) -> List[Comment]:
        """All comments of a task with their authors, oldest first"""
        query = select(Comment).where(
            Comment.task_id == task_id
        ).options(selectinload(Comment.user)).order_by(Comment.created_at, Comment.id)
        result = await db.execute(query)
        return list(result.scalars().all())
