from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import AiProviderError
from src.models.ai_iteration import AiIteration, IterationState
from src.models.task import AiState
from src.services.ai_client import CompletionProvider
from src.services.column_policy import is_ai_column, next_column_on_failure, next_column_on_success
from src.services.column_service import ColumnService
from src.services.iteration_service import IterationService
from src.services.prompt_builder import build_transcript
from src.services.task_service import TaskService
from src.logs import debug_logger, api_logger


@dataclass(frozen=True)
class AiJob:
    """Snapshot of a task taken when AI processing was armed"""
    task_id: int
    title: str
    description: Optional[str]
    column_id: int
    generation: int
    feedback: Optional[str] = None


class AiTrace:
    """Human-readable, timestamped trace of one AI run"""

    def __init__(self):
        self.lines: List[str] = []

    def add(self, message: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        self.lines.append(f"[{timestamp}] {message}")

    def render(self) -> str:
        return "\n".join(self.lines)


class AiRunner:
    """
    Executes one AI iteration for a task.
    
    Every run ends with an appended iteration: provider errors, empty
    completions and unexpected exceptions all produce a failed iteration and
    route the task to the failure column. If the outcome itself cannot be
    saved, a failed iteration is recorded from a fresh session, so a task
    never stays ``running``.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        provider: CompletionProvider,
    ):
        self.session_factory = session_factory
        self.provider = provider

    async def run(self, job: AiJob) -> Optional[AiIteration]:
        trace = AiTrace()
        async with self.session_factory() as db:
            try:
                result = await self._generate(db, job, trace)
                state = IterationState.SUCCEEDED
            except AiProviderError as e:
                await db.rollback()
                trace.add(f"Error: {e.message}")
                result = f"AI error: {e.message}"
                state = IterationState.FAILED
                api_logger.warning(f"AI provider error for task {job.task_id}: {e.message}")
            except Exception as e:
                await db.rollback()
                trace.add(f"Error: {type(e).__name__}: {e}")
                result = f"AI error: {e}"
                state = IterationState.FAILED
                debug_logger.error(f"Непредвиденная ошибка AI обработки задачи {job.task_id}")
            
            try:
                return await self._finish(db, job, state, result, trace)
            except Exception as e:
                await db.rollback()
                debug_logger.log_exception(f"Не удалось сохранить результат AI для задачи {job.task_id}")
                reason = f"{type(e).__name__}: {e}"
        
        trace.add(f"Error while saving result: {reason}")
        return await self.fail(job, reason, trace)

    async def fail(
        self,
        job: AiJob,
        reason: str,
        trace: Optional[AiTrace] = None,
        route: bool = True
    ) -> Optional[AiIteration]:
        """
        Record a failed iteration for the job in a fresh session.
        
        Runs after the normal path could not save the outcome, and for jobs
        lost when the process stopped. The task is only touched while it is
        still ``running`` with the job's generation.
        """
        trace = trace or AiTrace()
        result = f"AI error: {reason}"
        async with self.session_factory() as db:
            task = await TaskService.get_by_id(db, job.task_id)
            if not task:
                return None
            
            target = None
            if route and task.column_id == job.column_id:
                target = next_column_on_failure(await ColumnService.get_by_board_id(db, task.board_id))
                if target is not None:
                    trace.add(f'Moving task to column "{target.title}"')
            
            log = trace.render()
            iteration = await IterationService.append_iteration(
                db,
                task_id=job.task_id,
                result=result,
                log=log,
                state=IterationState.FAILED
            )
            failed = await TaskService.fail_running(
                db,
                task_id=job.task_id,
                generation=job.generation,
                result=result,
                log=log,
                column_id=target.id if target else None
            )
        
        api_logger.warning(
            f"AI iteration #{iteration.number} for task {job.task_id} recorded as failed "
            f"({reason}), task updated: {failed}"
        )
        return iteration

    async def interrupted_jobs(self) -> List[AiJob]:
        """
        Jobs for tasks left ``running`` by a previous process.
        
        Tasks still in an AI column are run again for their current
        generation. Tasks moved out of it meanwhile get a failed iteration.
        """
        jobs: List[AiJob] = []
        abandoned: List[AiJob] = []
        async with self.session_factory() as db:
            for task in await TaskService.get_running(db):
                job = AiJob(
                    task_id=task.id,
                    title=task.title,
                    description=task.description,
                    column_id=task.column_id,
                    generation=task.ai_generation
                )
                column = await ColumnService.get_by_id(db, task.column_id)
                if is_ai_column(column):
                    jobs.append(job)
                else:
                    abandoned.append(job)
        
        for job in abandoned:
            trace = AiTrace()
            trace.add("AI processing was interrupted, task is no longer in an AI column")
            await self.fail(job, "processing was interrupted", trace, route=False)
        
        if jobs or abandoned:
            api_logger.info(f"Interrupted AI runs: {len(jobs)} resumed, {len(abandoned)} failed")
        return jobs

    async def _generate(self, db: AsyncSession, job: AiJob, trace: AiTrace) -> str:
        trace.add("AI started processing")
        trace.add(f'Task: "{job.title}"')
        
        iterations = await IterationService.list_iterations(db, job.task_id)
        trace.add(f"Iteration #{len(iterations) + 1}, {len(iterations)} previous")
        
        if job.feedback and iterations and not iterations[-1].feedback:
            await IterationService.attach_feedback(db, iterations[-1].id, job.feedback)
            trace.add(f"Feedback attached to iteration #{iterations[-1].number}")
        
        transcript = build_transcript(job, iterations, job.feedback)
        trace.add(f"Sending request to {self.provider.name} ({len(transcript)} messages)...")
        
        completion = await self.provider.complete(transcript)
        if not completion.text:
            raise AiProviderError("Empty response from AI")
        
        trace.add("Response received successfully")
        trace.add(f"Tokens used: {completion.total_tokens if completion.total_tokens is not None else 'N/A'}")
        return completion.text

    async def _finish(
        self,
        db: AsyncSession,
        job: AiJob,
        state: IterationState,
        result: str,
        trace: AiTrace
    ) -> Optional[AiIteration]:
        task = await TaskService.get_by_id(db, job.task_id)
        if not task:
            api_logger.warning(f"Task {job.task_id} was deleted before AI run finished, result dropped")
            return None
        
        stale = task.ai_generation != job.generation
        target = None
        if stale:
            trace.add("Task was re-armed meanwhile, leaving task state to the newer run")
        elif task.column_id != job.column_id:
            trace.add("Task was moved meanwhile, column left unchanged")
        else:
            columns = await ColumnService.get_by_board_id(db, task.board_id)
            current = next((c for c in columns if c.id == job.column_id), None)
            if state == IterationState.SUCCEEDED:
                target = next_column_on_success(columns, current) if current else None
            else:
                target = next_column_on_failure(columns)
            
            if target is None:
                trace.add("No non-AI column to route to, task stays in place")
                api_logger.warning(f"Board {task.board_id} has no non-AI column, task {task.id} not routed")
            else:
                trace.add(f'Moving task to column "{target.title}"')
        
        log = trace.render()
        iteration = await IterationService.append_iteration(
            db,
            task_id=job.task_id,
            result=result,
            log=log,
            state=state
        )
        
        if stale:
            return iteration
        
        ai_state = AiState.SUCCEEDED if state == IterationState.SUCCEEDED else AiState.FAILED
        applied = await TaskService.apply_ai_outcome(
            db,
            task_id=task.id,
            generation=job.generation,
            ai_state=ai_state,
            result=result,
            log=log,
            column_id=target.id if target else None
        )
        if not applied:
            api_logger.warning(f"Task {job.task_id} was re-armed while finishing, state left to the newer run")
            return iteration
        api_logger.info(
            f"AI iteration #{iteration.number} for task {job.task_id} finished: {state.value}"
        )
        return iteration
