from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import KanbanError, NotFoundError, ValidationError, BoardConfigurationError
from src.models.board import Board, BoardUserRole
from src.models.user import User
from src.services.board_service import BoardService
from src.services.task_transition_service import TaskTransitionService


async def check_board_access(
    board_id: int,
    db: AsyncSession,
    current_user: User,
    require_owner: bool = False
) -> Board:
    """
    Check that the board exists and is visible to the user
    
    Args:
        board_id: ID of the board to check
        db: Database session
        current_user: Current authenticated user
        require_owner: If True, only the board owner passes
    
    Raises:
        HTTPException: 404 if the board is missing or not shared with the user
    """
    board = await BoardService.get_visible(db=db, board_id=board_id, user_id=current_user.id)
    if not board:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Board not found"
        )
    
    if require_owner and board.owner_id != current_user.id:
        role = await BoardService.get_user_role(db, board_id, current_user.id)
        if role != BoardUserRole.OWNER:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Board not found or not owner"
            )
    
    return board


def raise_http_error(error: KanbanError):
    """Translate a domain error into the matching HTTP error"""
    if isinstance(error, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (ValidationError, BoardConfigurationError)):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=status_code, detail=error.message) from error


def get_transition_service(request: Request) -> TaskTransitionService:
    """Transition service bound to the application's AI job queue"""
    return TaskTransitionService(dispatcher=request.app.state.ai_queue)
