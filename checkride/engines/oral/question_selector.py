"""
Question Selector - picks the next base question for a certificate mode.

Recently served questions are avoided when possible; when the exclusion
list has eaten the whole bank, a repeat is served rather than nothing.
"""

import random
from typing import List, Optional, Sequence, Tuple

from checkride.kernel.errors import ContentConfigurationError
from checkride.kernel.exam_store import ExamStore
from checkride.kernel.models.exam import Question
from checkride.logging_config import get_logger

logger = get_logger(__name__)

RECENT_QUESTION_LIMIT = 10


def push_recent(recent_ids: Sequence[str], question_id: str, limit: int = RECENT_QUESTION_LIMIT) -> List[str]:
    """Prepend question_id, drop its older occurrence, keep the newest `limit`."""
    return [question_id, *[x for x in recent_ids if x != question_id]][:limit]


class QuestionSelector:
    """Uniform random selection over a mode's questions, avoiding recent ones."""

    def __init__(
        self,
        store: ExamStore,
        rng: Optional[random.Random] = None,
        recent_limit: int = RECENT_QUESTION_LIMIT,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.recent_limit = recent_limit

    async def select_base(self, mode: str, recent_ids: Sequence[str]) -> Tuple[Question, List[str]]:
        """
        Return (question, updated recent ids).

        Raises ContentConfigurationError when the mode has no questions at all.
        """
        candidates = await self.store.query_questions_for_mode(mode, exclude_ids=recent_ids)
        if not candidates:
            candidates = await self.store.query_questions_for_mode(mode)
            if candidates:
                logger.info(
                    "All questions for mode recently served; allowing a repeat",
                    extra={"mode": str(mode), "bank_size": len(candidates)},
                )
        if not candidates:
            raise ContentConfigurationError(f"No questions found for mode {getattr(mode, 'value', mode)}")

        question = self.rng.choice(candidates)
        return question, push_recent(recent_ids, question.id, self.recent_limit)
