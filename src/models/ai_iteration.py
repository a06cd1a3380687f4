from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Text, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from src.db.base import Base


class IterationState(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AiIteration(Base):
    """Одна попытка AI обработки задачи; номера идут подряд с 1 для каждой задачи"""
    
    __tablename__ = "ai_iterations"
    __table_args__ = (
        UniqueConstraint("task_id", "number", name="uq_ai_iterations_task_number"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    result = Column(Text, nullable=False)
    log = Column(Text, nullable=True)
    # Единственное поле, которое меняется после создания итерации
    feedback = Column(Text, nullable=True)
    state = Column(Enum(IterationState, native_enum=False), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    task = relationship("Task", back_populates="iterations")
