from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from datetime import datetime

from src.core.exceptions import BoardConfigurationError, ValidationError
from src.models.column import Column, DEFAULT_COLUMN_COLOR
from src.models.task import Task
from src.services.column_policy import has_manual_column
from src.logs import debug_logger


class ColumnService:
    """CRUD operations service for Column model"""

    @staticmethod
    def _ensure_manual_column(columns: List[Column], board_id: int) -> None:
        if not has_manual_column(columns):
            debug_logger.warning(f"Отклонено изменение колонок доски {board_id}: не останется колонок без AI")
            raise BoardConfigurationError(
                "Board must keep at least one column without AI processing"
            )

    @staticmethod
    async def create(
        db: AsyncSession,
        title: str,
        board_id: int,
        color: Optional[str] = None,
        ai_enabled: bool = False,
        order: Optional[int] = None
    ) -> Column:
        """
        Create a new column in a board
        
        Raises:
            BoardConfigurationError: If the board would end up with AI columns only
        """
        existing = await ColumnService.get_by_board_id(db, board_id)
        
        # If order not provided, place it at the end
        if order is None:
            max_order = max((c.order for c in existing), default=-1)
            order = max_order + 1
        
        column = Column(
            title=title,
            board_id=board_id,
            color=color or DEFAULT_COLUMN_COLOR,
            ai_enabled=ai_enabled,
            order=order
        )
        ColumnService._ensure_manual_column(existing + [column], board_id)
        
        db.add(column)
        await db.commit()
        return column

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        column_id: int
    ) -> Optional[Column]:
        result = await db.execute(select(Column).where(Column.id == column_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_board_id(
        db: AsyncSession,
        board_id: int
    ) -> List[Column]:
        """Get all columns for a board ordered by rank"""
        query = select(Column).where(Column.board_id == board_id).order_by(Column.order, Column.id)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update(
        db: AsyncSession,
        column_id: int,
        title: Optional[str] = None,
        color: Optional[str] = None,
        ai_enabled: Optional[bool] = None,
        order: Optional[int] = None
    ) -> Optional[Column]:
        """
        Update a column's details
        
        Raises:
            BoardConfigurationError: If the change leaves the board without a non-AI column
        """
        column = await ColumnService.get_by_id(db, column_id)
        if not column:
            return None
        
        if ai_enabled is not None and ai_enabled != column.ai_enabled:
            siblings = await ColumnService.get_by_board_id(db, column.board_id)
            flags = [
                c.ai_enabled if c.id != column_id else ai_enabled
                for c in siblings
            ]
            if all(flags):
                ColumnService._ensure_manual_column([], column.board_id)
            column.ai_enabled = ai_enabled
        
        if title is not None:
            column.title = title
        if color is not None:
            column.color = color
        if order is not None:
            column.order = order
        column.updated_at = datetime.utcnow()
        
        await db.commit()
        return column

    @staticmethod
    async def delete(
        db: AsyncSession,
        column_id: int
    ) -> bool:
        """
        Delete an empty column
        
        Raises:
            ValidationError: If the column still has tasks
            BoardConfigurationError: If it is the board's last non-AI column
        """
        column = await ColumnService.get_by_id(db, column_id)
        if not column:
            return False
        
        task_count = await db.execute(select(func.count(Task.id)).where(Task.column_id == column_id))
        if task_count.scalar():
            raise ValidationError("Cannot delete column with tasks. Move tasks first.")
        
        siblings = await ColumnService.get_by_board_id(db, column.board_id)
        ColumnService._ensure_manual_column([c for c in siblings if c.id != column_id], column.board_id)
        
        await db.delete(column)
        await db.commit()
        return True

    @staticmethod
    async def reorder_columns(
        db: AsyncSession,
        board_id: int,
        column_order: List[int]
    ) -> bool:
        """Reorder columns in a board
        
        Args:
            db: Database session
            board_id: ID of the board
            column_order: List of column IDs in the desired order
        
        Returns:
            True if reordering was successful, False if it was rolled back
        """
        try:
            current_time = datetime.utcnow()
            
            # Все обновления в одной транзакции
            for new_order, column_id in enumerate(column_order):
                stmt = update(Column).where(
                    Column.id == column_id, 
                    Column.board_id == board_id
                ).values(order=new_order, updated_at=current_time)
                result = await db.execute(stmt)
                if result.rowcount == 0:
                    raise ValidationError(f"Column {column_id} does not belong to board {board_id}")
            
            await db.commit()
            return True
        except ValidationError as e:
            await db.rollback()
            debug_logger.warning(f"Переупорядочивание колонок доски {board_id} отменено: {e.message}")
            return False
