"""Tests for the bounded context window."""

from datetime import datetime

import pytest

from prowrite.service.context_window import ContextTurn, window, window_chars
from prowrite.storage.models import Message


def _msgs(*contents, roles=("user", "assistant")):
    return [
        Message(
            id=f"m{i}",
            conversation_id="c1",
            role=roles[i % len(roles)],
            content=content,
            seq=i,
            created_at=datetime(2024, 1, 1),
        )
        for i, content in enumerate(contents)
    ]


class TestWindow:
    def test_empty_history_gives_empty_window(self):
        assert window([], 20, 12000) == []

    def test_keeps_roles_and_order(self):
        turns = window(_msgs("hi", "hello", "how are you"), 20, 12000)
        assert turns == [
            ContextTurn("user", "hi"),
            ContextTurn("assistant", "hello"),
            ContextTurn("user", "how are you"),
        ]

    def test_only_most_recent_messages_are_candidates(self):
        history = _msgs(*[f"msg-{i}" for i in range(30)])
        turns = window(history, 5, 12000)
        assert [t.content for t in turns] == [f"msg-{i}" for i in range(25, 30)]

    def test_scenario_25_messages_of_1000_chars(self):
        """Twenty candidates of 1000 chars fill a 12000 budget with twelve."""
        history = _msgs(*[chr(ord("a") + i % 26) * 1000 for i in range(25)])
        turns = window(history, 20, 12000)
        assert len(turns) == 12
        assert window_chars(turns) == 12000
        # Earliest of the 20 most recent messages comes first
        assert turns[0].content == history[5].content

    def test_stops_at_first_overflowing_message(self):
        turns = window(_msgs("a" * 40, "b" * 40, "c" * 10), 20, 85)
        assert [t.content for t in turns] == ["a" * 40, "b" * 40]

    def test_does_not_skip_to_smaller_later_messages(self):
        turns = window(_msgs("a" * 50, "b" * 60, "c" * 5), 20, 100)
        assert [t.content for t in turns] == ["a" * 50]

    def test_truncates_single_oversized_first_candidate(self):
        turns = window(_msgs("x" * 500, "y" * 10), 20, 100)
        assert turns == [ContextTurn("user", "x" * 100)]

    def test_zero_bounds_give_empty_window(self):
        assert window(_msgs("hi"), 0, 100) == []
        assert window(_msgs("hi"), 10, 0) == []

    @pytest.mark.parametrize(
        "sizes,max_messages,max_chars",
        [
            ([10, 20, 30], 2, 25),
            ([1000] * 25, 20, 12000),
            ([5000, 1, 1], 3, 4000),
            ([0, 0, 7], 3, 5),
            ([3, 3, 3, 3], 10, 11),
        ],
    )
    def test_budget_never_exceeded_and_never_empty(self, sizes, max_messages, max_chars):
        history = _msgs(*["z" * size for size in sizes])
        turns = window(history, max_messages, max_chars)
        assert window_chars(turns) <= max_chars
        assert turns, "window must not be empty for a non-empty history"
