import asyncio
from typing import List, Optional

from src.services.ai_runner import AiJob, AiRunner
from src.logs import api_logger, debug_logger


class AiJobQueue:
    """
    Queue of AI jobs consumed by a small pool of background workers.
    
    Move requests only enqueue; the workers run the jobs outside of the
    request/response cycle, each job with its own database session.
    """

    def __init__(self, runner: AiRunner, worker_count: int = 2):
        self.runner = runner
        self.worker_count = max(1, worker_count)
        self._queue: "asyncio.Queue[AiJob]" = asyncio.Queue()
        self._workers: List[asyncio.Task] = []

    @property
    def started(self) -> bool:
        return bool(self._workers)

    def submit(self, job: AiJob) -> None:
        self._queue.put_nowait(job)
        debug_logger.debug(f"AI задача для карточки {job.task_id} поставлена в очередь, размер очереди {self._queue.qsize()}")

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker_loop(i), name=f"ai-worker-{i}")
            for i in range(self.worker_count)
        ]
        api_logger.info(f"AI worker pool started ({self.worker_count} workers)")

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        api_logger.info("AI worker pool stopped")

    async def resume_interrupted(self) -> int:
        """Re-queue runs that a previous process left unfinished"""
        jobs = await self.runner.interrupted_jobs()
        for job in jobs:
            self.submit(job)
        return len(jobs)

    async def join(self, timeout: Optional[float] = None) -> None:
        """Wait until every submitted job has been processed"""
        await asyncio.wait_for(self._queue.join(), timeout)

    async def _worker_loop(self, worker_id: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.runner.run(job)
            except Exception:
                # Не удалось даже записать ошибку; задача будет восстановлена при следующем запуске
                debug_logger.log_exception(f"AI worker {worker_id}: ошибка обработки задачи {job.task_id}")
                api_logger.error(f"AI worker {worker_id} failed to process task {job.task_id}")
            finally:
                self._queue.task_done()
