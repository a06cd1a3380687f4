from typing import List

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.db.database import init_db
from src.models.user import User
from src.services.ai_client import Completion, CompletionProvider
from src.services.ai_runner import AiJob, AiRunner
from src.services.board_service import BoardService
from src.services.column_service import ColumnService
from src.services.task_service import TaskService


class FakeProvider(CompletionProvider):
    """Returns queued responses; an Exception instance in the queue is raised"""

    name = "fake"

    def __init__(self, *responses):
        self.responses = list(responses)
        self.transcripts: List[list] = []

    async def complete(self, transcript):
        self.transcripts.append(transcript)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return Completion(text=response, total_tokens=42)


class RecordingQueue:
    """Stands in for AiJobQueue: keeps submitted jobs so tests run them explicitly"""

    def __init__(self):
        self.jobs: List[AiJob] = []

    def submit(self, job: AiJob) -> None:
        self.jobs.append(job)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'kanban.db'}", poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, autoflush=False, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user(db):
    user = User(email="owner@example.com", username="owner")
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def stranger(db):
    user = User(email="stranger@example.com", username="stranger")
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def board(db, user):
    """Default board: To Do(0), In Progress (AI)(1, AI), Review(2), Done(3)"""
    return await BoardService.create(db, title="Board", owner_id=user.id)


@pytest_asyncio.fixture
async def columns(db, board):
    todo, work, review, done = await ColumnService.get_by_board_id(db, board.id)
    return {"todo": todo, "work": work, "review": review, "done": done}


@pytest_asyncio.fixture
async def task(db, board, columns):
    return await TaskService.create(
        db,
        board_id=board.id,
        column_id=columns["todo"].id,
        title="Write release notes",
        description="For version 2.0"
    )


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def make_runner(session_factory):
    def factory(*responses):
        provider = FakeProvider(*responses)
        return AiRunner(session_factory=session_factory, provider=provider), provider
    return factory
