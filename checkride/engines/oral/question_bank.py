"""
Question Bank - loads question content from JSON into the store.

Content authoring happens elsewhere; this only imports a bank file
(default: the bundled sample bank) into an empty questions table.
Expected file shape: a list of objects, or {"questions": [...]}, each with
id, stem, skill_task_code, area_label, and mode_tags.
"""

import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from checkride.kernel.exam_store import ExamStore
from checkride.kernel.models.exam import CertificateMode, Question, QuestionMode
from checkride.logging_config import get_logger

logger = get_logger(__name__)


class QuestionSpec(BaseModel):
    """One question as it appears in a bank file."""

    id: str = Field(min_length=1, max_length=64)
    stem: str = Field(min_length=1)
    skill_task_code: str = Field(min_length=1, max_length=64)
    area_label: str = Field(min_length=1, max_length=255)
    mode_tags: List[CertificateMode] = Field(min_length=1)

    @field_validator("id")
    @classmethod
    def _no_probe_suffix(cls, v: str) -> str:
        if "__probe_" in v:
            raise ValueError("question ids may not contain '__probe_'")
        return v

    def to_model(self) -> Question:
        return Question(
            id=self.id,
            stem=self.stem,
            skill_task_code=self.skill_task_code,
            area_label=self.area_label,
            modes=[QuestionMode(mode=m.value) for m in dict.fromkeys(self.mode_tags)],
        )


def default_bank_path() -> Path:
    """Bundled sample bank (checkride/data/question_bank.json)."""
    return Path(__file__).resolve().parent.parent.parent / "data" / "question_bank.json"


def load_question_specs(path: Optional[Path] = None) -> List[QuestionSpec]:
    """Read and validate a bank file. Invalid entries are skipped with a warning."""
    path = path or default_bank_path()
    if not path.exists():
        logger.warning("Question bank file not found", extra={"path": str(path)})
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.error("Question bank file unreadable: %s", exc, extra={"path": str(path)})
        return []

    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        return []

    specs = []
    for i, item in enumerate(data):
        try:
            specs.append(QuestionSpec.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping invalid question #%d: %s", i, exc.errors()[0].get("msg"))
    return specs


async def seed_question_bank(store: ExamStore, path: Optional[Path] = None) -> int:
    """Load the bank into an empty questions table. Returns the number added."""
    if await store.count_questions() > 0:
        return 0
    specs = load_question_specs(path)
    seen = set()
    unique = [s for s in specs if not (s.id in seen or seen.add(s.id))]
    added = await store.add_questions(s.to_model() for s in unique)
    logger.info("Seeded question bank", extra={"questions": added})
    return added
