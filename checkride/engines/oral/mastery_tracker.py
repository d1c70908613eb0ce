"""
Mastery Tracker - maps a verdict to a bounded per-skill score change.

Pure functions; persisting the result is the store's job.
"""

from typing import NamedTuple, Tuple

from checkride.engines.oral.verdict import Verdict, clamp01
from checkride.kernel.models.exam import Outcome

MASTERY_MIN = 0.0
MASTERY_MAX = 5.0

# outcome -> (base, confidence weight); REMEDIATE/FAIL are negated
_DELTA_TABLE = {
    Outcome.PASS: (0.4, 0.4),
    Outcome.PROBE: (0.05, 0.15),
    Outcome.REMEDIATE: (-0.3, -0.4),
    Outcome.FAIL: (-0.6, -0.4),
}


class CounterIncrements(NamedTuple):
    attempts: int
    passes: int
    fails: int


def mastery_delta(outcome: Outcome, confidence: float) -> float:
    """Score change for one verdict. Confidence is clamped to [0, 1]."""
    base, weight = _DELTA_TABLE[Outcome(outcome)]
    return base + weight * clamp01(confidence)


def clamp_mastery(score: float) -> float:
    return max(MASTERY_MIN, min(MASTERY_MAX, score))


def apply_verdict(current_mastery: float, verdict: Verdict) -> Tuple[float, float]:
    """Return (new_mastery, delta) for applying verdict to current_mastery."""
    delta = mastery_delta(verdict.outcome, verdict.confidence)
    return clamp_mastery(current_mastery + delta), delta


def counter_increments(outcome: Outcome) -> CounterIncrements:
    """
    Counter changes for one graded answer.

    fails counts every non-PASS outcome, PROBE included: it is a
    "not passed" bucket, not a "failed" one.
    """
    passed = Outcome(outcome).is_pass
    return CounterIncrements(attempts=1, passes=1 if passed else 0, fails=0 if passed else 1)
