from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from src.db.base import Base

DEFAULT_COLUMN_COLOR = "#3b82f6"


class Column(Base):
    """Модель колонки доски; ai_enabled колонка запускает AI обработку задач"""
    
    __tablename__ = "columns"
    
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    color = Column(String, nullable=False, default=DEFAULT_COLUMN_COLOR)
    ai_enabled = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, default=0)  # Для сортировки колонок
    board_id = Column(Integer, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    board = relationship("Board", back_populates="columns")
    
    # Удаление колонки с задачами запрещено на уровне сервиса
    tasks = relationship("Task", back_populates="column")
