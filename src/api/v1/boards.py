from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.database import get_async_session
from src.api.dependencies.auth import get_current_user
from src.api.dependencies.permissions import check_board_access
from src.models.user import User
from src.schemas.board import (
    BoardCreate,
    BoardUpdate,
    BoardResponse,
    BoardList,
    BoardCompleteResponse,
    BoardMemberAdd,
    BoardMemberResponse
)
from src.services.board_service import BoardService
from src.logs import api_logger

router = APIRouter(
    prefix="/boards",
    tags=["boards"],
)


@router.post("", response_model=BoardResponse, status_code=status.HTTP_201_CREATED)
async def create_board(
    board_create: BoardCreate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Create a new board with the default column set"""
    title = board_create.title.strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title is required"
        )
    
    board = await BoardService.create(
        db=db,
        title=title,
        description=(board_create.description or "").strip() or None,
        owner_id=current_user.id,
    )
    api_logger.info(f"Board {board.id} created by user {current_user.id}")
    return board


@router.get("", response_model=BoardList)
async def get_boards(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get all boards the current user owns or is a member of"""
    boards = await BoardService.get_boards_by_user(db=db, user_id=current_user.id)
    return {
        "boards": boards,
        "total": len(boards)
    }


@router.get("/{board_id}", response_model=BoardCompleteResponse)
async def get_board(
    board_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get a board with its columns and tasks, including AI iteration history"""
    board = await BoardService.get_visible(
        db=db,
        board_id=board_id,
        user_id=current_user.id,
        load_relations=True
    )
    if not board:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Board not found"
        )
    return board


@router.put("/{board_id}", response_model=BoardResponse)
async def update_board(
    board_id: int,
    board_update: BoardUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Update board title or description (owner only)"""
    await check_board_access(board_id, db, current_user, require_owner=True)
    
    title = board_update.title.strip() if board_update.title is not None else None
    if title == "":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title is required"
        )
    
    return await BoardService.update(
        db=db,
        board_id=board_id,
        title=title,
        description=board_update.description.strip() if board_update.description is not None else None
    )


@router.delete("/{board_id}", status_code=status.HTTP_200_OK)
async def delete_board(
    board_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Delete a board with everything on it (owner only)"""
    await check_board_access(board_id, db, current_user, require_owner=True)
    
    await BoardService.delete(db=db, board_id=board_id)
    api_logger.info(f"Board {board_id} deleted by user {current_user.id}")
    return {"success": True}


@router.post("/{board_id}/members", response_model=BoardMemberResponse, status_code=status.HTTP_201_CREATED)
async def add_board_member(
    board_id: int,
    member: BoardMemberAdd,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Add a user to the board by email (owner only)"""
    await check_board_access(board_id, db, current_user, require_owner=True)
    
    user = await BoardService.get_user_by_email(db=db, email=member.email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    
    role = await BoardService.get_user_role(db=db, board_id=board_id, user_id=user.id)
    if role is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already a member"
        )
    
    await BoardService.add_member(db=db, board_id=board_id, user_id=user.id)
    return user
