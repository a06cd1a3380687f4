from contextlib import asynccontextmanager
from typing import AsyncGenerator
import asyncio
import os
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from alembic.config import Config
from alembic import command

from src.db import init_db, async_session_factory
from src.core import get_settings
from src.api.v1 import api_router
from src.core.middleware import RequestLoggingMiddleware
from src.services.ai_client import OpenAICompletionProvider
from src.services.ai_runner import AiRunner
from src.services.ai_worker import AiJobQueue
from src.logs.server_log import api_logger

# Get application settings
settings = get_settings()


def run_migrations() -> None:
    alembic_cfg = Config(os.path.join(Path(__file__).parent.parent, "alembic.ini"))
    command.upgrade(alembic_cfg, "head")


# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    try:
        if settings.RUN_MIGRATIONS:
            # env.py запускает свой event loop, поэтому миграции идут в отдельном потоке
            await asyncio.to_thread(run_migrations)
        else:
            await init_db()
        api_logger.info("Database initialized")
    except Exception as e:
        api_logger.error(f"Error preparing database: {e}")
        raise
    
    provider = OpenAICompletionProvider.from_settings(settings)
    if not settings.AI_API_KEY:
        api_logger.warning("AI_API_KEY is not set, AI iterations will fail")
    
    app.state.ai_queue = AiJobQueue(
        runner=AiRunner(session_factory=async_session_factory, provider=provider),
        worker_count=settings.AI_WORKER_COUNT,
    )
    await app.state.ai_queue.start()
    await app.state.ai_queue.resume_interrupted()
    
    yield
    
    await app.state.ai_queue.stop()
    await provider.close()


# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for Kanban board with AI-processed columns",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# Include API router
app.include_router(api_router)

@app.get("/")
async def root(request: Request):
    """Health check endpoint"""
    api_logger.info(f"Received health check request: {request.method} {request.url}")
    return {"message": f"{settings.PROJECT_NAME} is running"}


if __name__ == "__main__":
    import uvicorn
    
    api_logger.info("Сервер запускается на http://0.0.0.0:8000")
    
    uvicorn.run(
        "src.main:app", 
        host="0.0.0.0", 
        port=8000, 
        reload=settings.DEBUG,
        log_level="info"
    )
