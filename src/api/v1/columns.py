from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.database import get_async_session
from src.api.dependencies.auth import get_current_user
from src.api.dependencies.permissions import check_board_access, raise_http_error
from src.core.exceptions import KanbanError
from src.models.user import User
from src.services.column_service import ColumnService
from src.schemas.column import (
    ColumnCreate, 
    ColumnResponse, 
    ColumnUpdate, 
    ColumnList,
    ColumnOrderUpdate
)
from src.logs import api_logger

router = APIRouter(
    prefix="/boards/{board_id}/columns",
    tags=["columns"],
)


async def get_board_column(board_id: int, column_id: int, db: AsyncSession):
    column = await ColumnService.get_by_id(db=db, column_id=column_id)
    if not column or column.board_id != board_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Column not found"
        )
    return column


@router.put("/reorder", status_code=status.HTTP_200_OK)
async def reorder_columns(
    board_id: int,
    column_order: ColumnOrderUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Reorder all columns of a board in one transaction"""
    await check_board_access(board_id, db, current_user)
    
    success = await ColumnService.reorder_columns(
        db=db,
        board_id=board_id,
        column_order=column_order.column_order
    )
    if not success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Column order contains columns of another board"
        )
    
    return {"message": "Columns reordered successfully"}


@router.get("", response_model=ColumnList)
async def get_columns(
    board_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get all columns of a board ordered by rank"""
    await check_board_access(board_id, db, current_user)
    
    columns = await ColumnService.get_by_board_id(db=db, board_id=board_id)
    return {"columns": columns}


@router.post("", response_model=ColumnResponse, status_code=status.HTTP_201_CREATED)
async def create_column(
    board_id: int,
    column_create: ColumnCreate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Create a new column; AI-enabled columns need a non-AI column on the board"""
    await check_board_access(board_id, db, current_user)
    
    title = column_create.title.strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title is required"
        )
    
    try:
        column = await ColumnService.create(
            db=db,
            title=title,
            board_id=board_id,
            color=column_create.color,
            ai_enabled=column_create.ai_enabled,
            order=column_create.order
        )
    except KanbanError as e:
        raise_http_error(e)
    
    api_logger.info(f"Column {column.id} created on board {board_id} (ai_enabled={column.ai_enabled})")
    return column


@router.put("/{column_id}", response_model=ColumnResponse)
async def update_column(
    board_id: int,
    column_id: int,
    column_update: ColumnUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Update a column (title, color, AI flag, order)"""
    await check_board_access(board_id, db, current_user)
    await get_board_column(board_id, column_id, db)
    
    try:
        column = await ColumnService.update(
            db=db,
            column_id=column_id,
            title=column_update.title.strip() if column_update.title is not None else None,
            color=column_update.color,
            ai_enabled=column_update.ai_enabled,
            order=column_update.order
        )
    except KanbanError as e:
        raise_http_error(e)
    
    return column


@router.delete("/{column_id}", status_code=status.HTTP_200_OK)
async def delete_column(
    board_id: int,
    column_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Delete an empty column"""
    await check_board_access(board_id, db, current_user)
    await get_board_column(board_id, column_id, db)
    
    try:
        await ColumnService.delete(db=db, column_id=column_id)
    except KanbanError as e:
        raise_http_error(e)
    
    return {"success": True}
