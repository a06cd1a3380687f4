from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Float, Enum
from sqlalchemy.orm import relationship
import enum

from src.db.base import Base


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AiState(str, enum.Enum):
    """Состояние AI обработки задачи"""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Task(Base):
    """Модель задачи на доске"""
    
    __tablename__ = "tasks"
    
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Enum(TaskPriority, native_enum=False), nullable=False, default=TaskPriority.MEDIUM)
    order = Column(Float, nullable=False, default=0)  # Позиция внутри колонки
    board_id = Column(Integer, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    column_id = Column(Integer, ForeignKey("columns.id"), nullable=False, index=True)
    assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    
    ai_state = Column(Enum(AiState, native_enum=False), nullable=False, default=AiState.IDLE)
    # Увеличивается при каждом запуске AI, устаревшие результаты отбрасываются
    ai_generation = Column(Integer, nullable=False, default=0)
    # Поля одиночного результата для задач, созданных до появления итераций
    ai_result = Column(Text, nullable=True)
    ai_log = Column(Text, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    board = relationship("Board", back_populates="tasks")
    column = relationship("Column", back_populates="tasks")
    assignee = relationship("User", foreign_keys=[assignee_id])
    
    iterations = relationship(
        "AiIteration",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AiIteration.number",
    )
    
    comments = relationship("Comment", back_populates="task", cascade="all, delete-orphan", passive_deletes=True)


class Comment(Base):
    """Модель комментария к задаче"""
    
    __tablename__ = "comments"
    
    id = Column(Integer, primary_key=True, index=True)
    text = Column(Text, nullable=False)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    task = relationship("Task", back_populates="comments")
    user = relationship("User")
