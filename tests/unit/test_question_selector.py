"""Unit tests for the question selector (in-memory store double)."""

import random
from collections import Counter
from unittest.mock import AsyncMock

import pytest

from conftest import make_question

from checkride.engines.oral.question_selector import QuestionSelector, push_recent
from checkride.kernel.errors import ContentConfigurationError


def _store_with(questions):
    """Store double filtering by mode and exclusion like the real query."""

    async def query(mode, exclude_ids=()):
        excluded = set(exclude_ids)
        return [q for q in questions if mode in q.mode_tags and q.id not in excluded]

    store = AsyncMock()
    store.query_questions_for_mode.side_effect = query
    return store


BANK = [
    make_question("q1", "PA.I.A.K1", modes=("PPL",)),
    make_question("q2", "PA.I.B.K1", modes=("PPL", "CPL")),
    make_question("q3", "PA.I.C.K1", modes=("PPL",)),
    make_question("i1", "IR.I.A.K1", modes=("IR",)),
]


class TestSelectBase:
    @pytest.mark.asyncio
    async def test_only_remaining_candidate(self):
        """Excluding all but one eligible id always returns that id."""
        selector = QuestionSelector(_store_with(BANK), rng=random.Random(1))
        for _ in range(10):
            q, _ = await selector.select_base("PPL", ["q1", "q3"])
            assert q.id == "q2"

    @pytest.mark.asyncio
    async def test_all_excluded_falls_back(self):
        """Excluding every id serves a repeat instead of failing."""
        selector = QuestionSelector(_store_with(BANK), rng=random.Random(7))
        seen = Counter()
        for _ in range(60):
            q, _ = await selector.select_base("PPL", ["q1", "q2", "q3"])
            seen[q.id] += 1
        assert set(seen) == {"q1", "q2", "q3"}

    @pytest.mark.asyncio
    async def test_mode_filter(self):
        selector = QuestionSelector(_store_with(BANK))
        q, _ = await selector.select_base("IR", [])
        assert q.id == "i1"

    @pytest.mark.asyncio
    async def test_empty_mode_is_content_error(self):
        selector = QuestionSelector(_store_with(BANK))
        with pytest.raises(ContentConfigurationError):
            await selector.select_base("CPL-ME", [])

    @pytest.mark.asyncio
    async def test_recent_updated(self):
        selector = QuestionSelector(_store_with(BANK), rng=random.Random(3))
        q, recent = await selector.select_base("PPL", ["q1"])
        assert recent[0] == q.id
        assert "q1" in recent


class TestPushRecent:
    def test_prepends(self):
        assert push_recent(["a", "b"], "c") == ["c", "a", "b"]

    def test_moves_existing_to_front(self):
        assert push_recent(["a", "b", "c"], "b") == ["b", "a", "c"]

    def test_truncates_to_ten(self):
        recent = [f"q{i}" for i in range(10)]
        updated = push_recent(recent, "new")
        assert len(updated) == 10
        assert updated[0] == "new"
        assert "q9" not in updated

    def test_custom_limit(self):
        assert push_recent(["a", "b", "c"], "d", limit=2) == ["d", "a"]
