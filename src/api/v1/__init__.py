from fastapi import APIRouter
from src.api.v1.boards import router as boards_router
from src.api.v1.columns import router as columns_router
from src.api.v1.tasks import router as tasks_router
from src.api.v1.comments import router as comments_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include routers
api_router.include_router(boards_router)
api_router.include_router(columns_router)
api_router.include_router(tasks_router)
api_router.include_router(comments_router)
