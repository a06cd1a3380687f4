from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, or_
from datetime import datetime
from sqlalchemy.orm import selectinload

from src.models.board import Board, BoardUserRole, board_members
from src.models.column import Column
from src.models.task import Task
from src.models.user import User
from src.logs import debug_logger

# Колонки новой доски; вторая колонка обрабатывается AI
DEFAULT_COLUMNS = [
    {"title": "To Do", "color": "#64748b", "order": 0, "ai_enabled": False},
    {"title": "In Progress (AI)", "color": "#3b82f6", "order": 1, "ai_enabled": True},
    {"title": "Review", "color": "#f59e0b", "order": 2, "ai_enabled": False},
    {"title": "Done", "color": "#22c55e", "order": 3, "ai_enabled": False},
]


class BoardService:
    """CRUD operations service for Board model"""

    @staticmethod
    async def create(
        db: AsyncSession,
        title: str,
        owner_id: int,
        description: Optional[str] = None
    ) -> Board:
        """Create a board owned by the user, with the default column set"""
        board = Board(
            title=title,
            description=description,
            owner_id=owner_id
        )
        db.add(board)
        await db.flush()
        
        await db.execute(board_members.insert().values(
            user_id=owner_id,
            board_id=board.id,
            role=BoardUserRole.OWNER
        ))
        
        for column_data in DEFAULT_COLUMNS:
            db.add(Column(board_id=board.id, **column_data))
        
        await db.commit()
        debug_logger.info(f"Создана доска {board.id} для пользователя {owner_id}")
        return await BoardService.get_by_id(db, board.id, load_relations=True)

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        board_id: int,
        load_relations: bool = False
    ) -> Optional[Board]:
        """Get board by id, optionally with columns and tasks (with iterations)"""
        query = select(Board).where(Board.id == board_id)
        
        if load_relations:
            query = query.options(
                selectinload(Board.columns),
                selectinload(Board.tasks).selectinload(Task.iterations)
            ).execution_options(populate_existing=True)
            
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    def _visible_to(user_id: int):
        membership = select(board_members.c.board_id).where(board_members.c.user_id == user_id)
        return or_(Board.owner_id == user_id, Board.id.in_(membership))

    @staticmethod
    async def get_visible(
        db: AsyncSession,
        board_id: int,
        user_id: int,
        load_relations: bool = False
    ) -> Optional[Board]:
        """Get a board only if the user owns it or is a member"""
        query = select(Board).where(Board.id == board_id, BoardService._visible_to(user_id))
        if load_relations:
            query = query.options(
                selectinload(Board.columns),
                selectinload(Board.tasks).selectinload(Task.iterations)
            ).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_boards_by_user(
        db: AsyncSession,
        user_id: int
    ) -> List[Board]:
        """All boards the user owns or is a member of, newest first"""
        query = select(Board).where(
            BoardService._visible_to(user_id)
        ).options(selectinload(Board.columns)).order_by(Board.created_at.desc(), Board.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_user_role(
        db: AsyncSession,
        board_id: int,
        user_id: int
    ) -> Optional[BoardUserRole]:
        """Role of the user on the board, or None"""
        query = select(board_members.c.role).where(
            board_members.c.board_id == board_id,
            board_members.c.user_id == user_id
        )
        result = await db.execute(query)
        return result.scalar()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    @staticmethod
    async def add_member(
        db: AsyncSession,
        board_id: int,
        user_id: int
    ) -> None:
        """Add a user to the board with the member role"""
        await db.execute(board_members.insert().values(
            user_id=user_id,
            board_id=board_id,
            role=BoardUserRole.MEMBER
        ))
        await db.commit()
        debug_logger.info(f"Пользователь {user_id} добавлен на доску {board_id}")

    @staticmethod
    async def update(
        db: AsyncSession,
        board_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None
    ) -> Optional[Board]:
        """Update a board's details; an empty description clears it"""
        update_data = {}
        if title is not None:
            update_data["title"] = title
        if description is not None:
            update_data["description"] = description or None
        
        if update_data:
            update_data["updated_at"] = datetime.utcnow()
            await db.execute(update(Board).where(Board.id == board_id).values(**update_data))
            await db.commit()
        
        return await BoardService.get_by_id(db, board_id, load_relations=True)

    @staticmethod
    async def delete(
        db: AsyncSession,
        board_id: int
    ) -> bool:
        """Delete a board; columns, tasks, iterations and comments go with it"""
        result = await db.execute(delete(Board).where(Board.id == board_id))
        await db.commit()
        debug_logger.info(f"Доска {board_id} удалена")
        return result.rowcount > 0
