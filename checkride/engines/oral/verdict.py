"""
Verdict - the typed result of grading one answer, and the strict parse
boundary that turns oracle free text into either a Verdict or a
MalformedOutput. Nothing downstream ever sees the raw dict.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field

from checkride.kernel.models.exam import Outcome

# Keys the oracle is instructed to return (and the only ones we read)
VERDICT_KEYS = (
    "outcome",
    "confidence",
    "feedback",
    "missing_points",
    "probe_question",
    "skill_task_code",
)

FALLBACK_FEEDBACK = (
    "Evaluator failure: this answer could not be graded automatically. "
    "Treat it as needing another look and keep going."
)


class Verdict(BaseModel):
    """Structured grading verdict for one answer."""

    outcome: Outcome
    confidence: float = Field(ge=0.0, le=1.0)
    feedback: str
    missing_points: List[str] = []
    probe_question: Optional[str] = None
    skill_task_code: str


@dataclass(frozen=True)
class MalformedOutput:
    """The oracle replied, but the reply is not a valid verdict."""

    reason: str
    raw: str


ParseResult = Union[Verdict, MalformedOutput]


def clamp01(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def fallback_verdict(skill_task_code: str) -> Verdict:
    """Deterministic verdict used when grading could not complete."""
    return Verdict(
        outcome=Outcome.PROBE,
        confidence=0.0,
        feedback=FALLBACK_FEEDBACK,
        missing_points=[],
        probe_question=None,
        skill_task_code=skill_task_code,
    )


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1].rsplit("```", 1)[0]
    return text.strip()


def _coerce_confidence(value: Any) -> Optional[float]:
    """Number, or numeric string, as float; None if not coercible."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        return float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None


def parse_verdict(raw: Any, skill_task_code: Optional[str] = None) -> ParseResult:
    """
    Validate an oracle reply.

    Returns a Verdict when every field is structurally valid, otherwise a
    MalformedOutput naming the first problem. When skill_task_code is given
    it replaces whatever code the oracle echoed.
    """
    if not isinstance(raw, str):
        return MalformedOutput("reply is not text", repr(raw))

    try:
        data = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as exc:
        return MalformedOutput(f"invalid JSON: {exc.msg}", raw)
    except (ValueError, OverflowError) as exc:
        # e.g. integer literals past the int-to-str digit limit
        return MalformedOutput(f"unreadable JSON value: {exc}", raw)
    except RecursionError:
        return MalformedOutput("JSON nested too deeply", raw)

    if not isinstance(data, dict):
        return MalformedOutput("reply is not a JSON object", raw)

    outcome_raw = data.get("outcome")
    if not isinstance(outcome_raw, str) or outcome_raw not in Outcome._value2member_map_:
        return MalformedOutput("outcome must be one of PASS, PROBE, REMEDIATE, FAIL", raw)

    confidence = _coerce_confidence(data.get("confidence"))
    if confidence is None:
        return MalformedOutput("confidence is not a number", raw)

    feedback = data.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        return MalformedOutput("feedback must be a non-empty string", raw)

    missing = data.get("missing_points")
    if not isinstance(missing, list) or not all(isinstance(m, str) for m in missing):
        return MalformedOutput("missing_points must be a list of strings", raw)

    probe = data.get("probe_question")
    if probe is not None and not isinstance(probe, str):
        return MalformedOutput("probe_question must be a string or null", raw)

    code = data.get("skill_task_code")
    if not isinstance(code, str):
        return MalformedOutput("skill_task_code must be a string", raw)

    return Verdict(
        outcome=Outcome(outcome_raw),
        confidence=clamp01(confidence),
        feedback=feedback.strip(),
        missing_points=[m.strip() for m in missing if m.strip()],
        probe_question=(probe.strip() or None) if probe is not None else None,
        skill_task_code=skill_task_code if skill_task_code is not None else code.strip(),
    )
