import pytest

from src.core.exceptions import NotFoundError, ValidationError
from src.models.ai_iteration import IterationState
from src.models.task import AiState
from src.services.board_service import BoardService
from src.services.iteration_service import IterationService
from src.services.task_service import TaskService
from src.services.task_transition_service import TaskTransitionService


async def move(session_factory, queue, task_id, user_id, column_id, order=None, feedback=None):
    """Every move runs in a fresh session, the way each HTTP request does"""
    async with session_factory() as session:
        return await TaskTransitionService(queue).move(
            session,
            task_id=task_id,
            user_id=user_id,
            column_id=column_id,
            order=order,
            feedback=feedback
        )


async def fetch(session_factory, task_id):
    async with session_factory() as session:
        return await TaskService.get_by_id(session, task_id, load_iterations=True)


class TestArmsProcessing:

    @pytest.mark.asyncio
    async def test_entering_ai_column_arms(self, columns):
        assert TaskTransitionService.arms_processing(columns["todo"], columns["work"])

    @pytest.mark.asyncio
    async def test_staying_in_ai_column_does_not_arm(self, columns):
        assert not TaskTransitionService.arms_processing(columns["work"], columns["work"])

    @pytest.mark.asyncio
    async def test_non_ai_target_does_not_arm(self, columns):
        assert not TaskTransitionService.arms_processing(columns["work"], columns["review"])


class TestTaskTransitionService:
    """Тесты перемещения задач между колонками"""

    @pytest.mark.asyncio
    async def test_move_into_ai_column_arms_processing(self, session_factory, queue, user, task, columns):
        moved = await move(session_factory, queue, task.id, user.id, columns["work"].id)
        
        assert moved.column_id == columns["work"].id
        assert moved.ai_state == AiState.RUNNING
        assert moved.ai_result is None
        assert moved.ai_log is None
        assert moved.iterations == []
        assert len(queue.jobs) == 1
        
        job = queue.jobs[0]
        assert job.task_id == task.id
        assert job.column_id == columns["work"].id
        assert job.generation == 1
        assert job.title == "Write release notes"

    @pytest.mark.asyncio
    async def test_reorder_inside_ai_column_does_not_rearm(self, session_factory, queue, make_runner, user, task, columns):
        runner, _ = make_runner("X", "unused")
        await move(session_factory, queue, task.id, user.id, columns["work"].id)
        await move(session_factory, queue, task.id, user.id, columns["work"].id, order=5)
        
        assert len(queue.jobs) == 1
        for job in list(queue.jobs):
            await runner.run(job)
        
        refreshed = await fetch(session_factory, task.id)
        assert len(refreshed.iterations) == 1

    @pytest.mark.asyncio
    async def test_plain_move_keeps_idle_state(self, session_factory, queue, user, task, columns):
        moved = await move(session_factory, queue, task.id, user.id, columns["done"].id)
        
        assert moved.column_id == columns["done"].id
        assert moved.ai_state == AiState.IDLE
        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_order_defaults_to_end_of_column(self, session_factory, queue, db, user, board, task, columns):
        other = await TaskService.create(db, board_id=board.id, column_id=columns["done"].id, title="Other")
        
        moved = await move(session_factory, queue, task.id, user.id, columns["done"].id)
        
        assert moved.order == other.order + 1

    @pytest.mark.asyncio
    async def test_explicit_order_is_kept(self, session_factory, queue, user, task, columns):
        moved = await move(session_factory, queue, task.id, user.id, columns["done"].id, order=2.5)
        
        assert moved.order == 2.5

    @pytest.mark.asyncio
    async def test_failed_task_resets_to_idle_in_manual_column(self, session_factory, queue, make_runner, user, task, columns):
        runner, _ = make_runner(RuntimeError("boom"))
        await move(session_factory, queue, task.id, user.id, columns["work"].id)
        await runner.run(queue.jobs[0])
        assert (await fetch(session_factory, task.id)).ai_state == AiState.FAILED
        
        moved = await move(session_factory, queue, task.id, user.id, columns["review"].id)
        
        assert moved.ai_state == AiState.IDLE
        assert len(moved.iterations) == 1

    @pytest.mark.asyncio
    async def test_succeeded_task_keeps_state_in_manual_column(self, session_factory, queue, make_runner, user, task, columns):
        runner, _ = make_runner("X")
        await move(session_factory, queue, task.id, user.id, columns["work"].id)
        await runner.run(queue.jobs[0])
        
        moved = await move(session_factory, queue, task.id, user.id, columns["done"].id)
        
        assert moved.ai_state == AiState.SUCCEEDED
        assert moved.ai_result == "X"

    @pytest.mark.asyncio
    async def test_missing_column_id_is_rejected(self, session_factory, queue, user, task):
        with pytest.raises(ValidationError):
            await move(session_factory, queue, task.id, user.id, None)

    @pytest.mark.asyncio
    async def test_unknown_column_is_not_found(self, session_factory, queue, user, task):
        with pytest.raises(NotFoundError):
            await move(session_factory, queue, task.id, user.id, 9999)
        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_column_of_another_board_is_not_found(self, session_factory, queue, db, user, task):
        other_board = await BoardService.create(db, title="Other", owner_id=user.id)
        
        with pytest.raises(NotFoundError):
            await move(session_factory, queue, task.id, user.id, other_board.columns[1].id)
        assert (await fetch(session_factory, task.id)).column_id == task.column_id

    @pytest.mark.asyncio
    async def test_stranger_cannot_move_task(self, session_factory, queue, stranger, task, columns):
        with pytest.raises(NotFoundError):
            await move(session_factory, queue, task.id, stranger.id, columns["work"].id)
        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_board_member_can_move_task(self, session_factory, queue, db, stranger, board, task, columns):
        await BoardService.add_member(db, board.id, stranger.id)
        
        moved = await move(session_factory, queue, task.id, stranger.id, columns["work"].id)
        
        assert moved.ai_state == AiState.RUNNING

    @pytest.mark.asyncio
    async def test_feedback_is_passed_with_job(self, session_factory, queue, user, task, columns):
        await move(session_factory, queue, task.id, user.id, columns["work"].id, feedback="  shorter please  ")
        
        assert queue.jobs[0].feedback == "shorter please"

    @pytest.mark.asyncio
    async def test_every_arming_bumps_generation(self, session_factory, queue, user, task, columns):
        await move(session_factory, queue, task.id, user.id, columns["work"].id)
        await move(session_factory, queue, task.id, user.id, columns["todo"].id)
        await move(session_factory, queue, task.id, user.id, columns["work"].id)
        
        assert [job.generation for job in queue.jobs] == [1, 2]


class TestIterationWorkflow:
    """Полный цикл: задача, итерация, отзыв, повторная итерация"""

    @pytest.mark.asyncio
    async def test_feedback_loop_across_four_columns(self, session_factory, queue, make_runner, user, task, columns):
        runner, provider = make_runner("X", "Y")
        
        # Первая итерация
        await move(session_factory, queue, task.id, user.id, columns["work"].id)
        await runner.run(queue.jobs[-1])
        
        refreshed = await fetch(session_factory, task.id)
        assert refreshed.column_id == columns["review"].id
        assert refreshed.ai_state == AiState.SUCCEEDED
        assert [(i.number, i.result, i.state) for i in refreshed.iterations] == [
            (1, "X", IterationState.SUCCEEDED)
        ]
        
        # Отзыв и возврат в AI колонку
        moved = await move(session_factory, queue, task.id, user.id, columns["work"].id, feedback="improve X")
        assert moved.ai_state == AiState.RUNNING
        await runner.run(queue.jobs[-1])
        
        refreshed = await fetch(session_factory, task.id)
        assert refreshed.column_id == columns["review"].id
        assert refreshed.ai_state == AiState.SUCCEEDED
        assert refreshed.ai_result == "Y"
        assert [(i.number, i.result, i.feedback) for i in refreshed.iterations] == [
            (1, "X", "improve X"),
            (2, "Y", None),
        ]
        
        second_transcript = provider.transcripts[1]
        assert second_transcript[2] == {"role": "assistant", "content": "X"}
        assert second_transcript[3] == {"role": "user", "content": "feedback on iteration #1: improve X"}
        
        # Задача закрывается вручную
        done = await move(session_factory, queue, task.id, user.id, columns["done"].id)
        assert done.column_id == columns["done"].id
        assert len(queue.jobs) == 2
        
        async with session_factory() as session:
            latest = await IterationService.get_latest(session, task.id)
        assert latest.number == 2
