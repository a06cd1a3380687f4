import pytest

from src.models.column import Column
from src.services.column_policy import (
    is_ai_column,
    has_manual_column,
    next_column_on_success,
    next_column_on_failure
)


def make_column(column_id, order, ai_enabled=False, title=None):
    return Column(id=column_id, order=order, ai_enabled=ai_enabled, title=title or f"Column {column_id}")


class TestColumnPolicy:
    """Тесты маршрутизации задач после AI обработки"""

    @pytest.fixture
    def default_columns(self):
        return [
            make_column(1, 0, title="To Do"),
            make_column(2, 1, ai_enabled=True, title="In Progress (AI)"),
            make_column(3, 2, title="Review"),
            make_column(4, 3, title="Done"),
        ]

    def test_is_ai_column(self, default_columns):
        assert is_ai_column(default_columns[1]) is True
        assert is_ai_column(default_columns[0]) is False
        assert is_ai_column(None) is False

    def test_success_goes_to_next_manual_column(self, default_columns):
        target = next_column_on_success(default_columns, default_columns[1])
        assert target.title == "Review"

    def test_success_skips_ai_columns(self):
        columns = [
            make_column(1, 0),
            make_column(2, 1, ai_enabled=True),
            make_column(3, 2, ai_enabled=True),
            make_column(4, 3, title="Check"),
        ]
        assert next_column_on_success(columns, columns[1]).id == 4

    def test_success_ignores_input_order(self, default_columns):
        shuffled = list(reversed(default_columns))
        assert next_column_on_success(shuffled, default_columns[1]).title == "Review"

    def test_success_falls_back_to_last_column(self):
        columns = [make_column(1, 0), make_column(2, 1), make_column(3, 2, ai_enabled=True)]
        assert next_column_on_success(columns, columns[2]).id == 3

    def test_failure_goes_to_manual_column_with_order_zero(self, default_columns):
        assert next_column_on_failure(default_columns).title == "To Do"

    def test_failure_falls_back_to_first_column(self):
        columns = [make_column(1, 0, ai_enabled=True), make_column(2, 1), make_column(3, 2)]
        assert next_column_on_failure(columns).id == 1

    def test_ai_only_board_has_no_targets(self):
        columns = [make_column(1, 0, ai_enabled=True), make_column(2, 1, ai_enabled=True)]
        assert has_manual_column(columns) is False
        assert next_column_on_success(columns, columns[0]) is None
        assert next_column_on_failure(columns) is None

    def test_empty_board_has_no_targets(self):
        assert next_column_on_failure([]) is None
