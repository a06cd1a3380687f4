from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Table, Enum
from sqlalchemy.orm import relationship
import enum

from src.db.base import Base


# Enum для ролей пользователей на доске
class BoardUserRole(enum.Enum):
    OWNER = "owner"        # Создатель доски
    MEMBER = "member"      # Участник


# Ассоциативная таблица участников доски с указанием роли
board_members = Table(
    "board_members",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("board_id", Integer, ForeignKey("boards.id", ondelete="CASCADE"), primary_key=True),
    Column("role", Enum(BoardUserRole), nullable=False, default=BoardUserRole.MEMBER)
)


class Board(Base):
    """Модель доски для канбан-системы"""
    
    __tablename__ = "boards"
    
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    owner = relationship("User", foreign_keys=[owner_id])
    
    # Все участники доски, включая владельца
    members = relationship("User", secondary=board_members)
    
    # Колонки всегда отдаются в порядке order
    columns = relationship(
        "Column",
        back_populates="board",
        cascade="all, delete-orphan",
        order_by="Column.order",
    )
    
    tasks = relationship("Task", back_populates="board", cascade="all, delete-orphan")
