# Import all models here for Alembic to discover them
from src.db.base import Base
from src.models.user import User
from src.models.board import Board, board_members, BoardUserRole
from src.models.column import Column
from src.models.task import Task, TaskPriority, AiState, Comment
from src.models.ai_iteration import AiIteration, IterationState
