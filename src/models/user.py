from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean

from src.db.base import Base


class User(Base):
    """Пользователь системы (учетные данные хранятся у внешнего провайдера)"""
    
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
