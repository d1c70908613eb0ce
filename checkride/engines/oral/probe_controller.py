"""
Probe-Loop Controller - decides between a follow-up probe and a fresh base
question, and keeps the probe loop bounded.

Grading sets the probe counter (next_probe_count); the next-prompt step only
reads it (decide_next). A non-PASS answer keeps the same skill-task code
active and re-serves the oracle's follow-up question until the counter
would pass max_probe_depth, then a fresh base question is served even if
the last answer was still non-PASS.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from checkride.kernel.models.exam import Outcome

PROBE_ID_SEPARATOR = "__probe_"
PROBE_AREA_SUFFIX = " (Probe)"


class PromptKind(str, Enum):
    BASE = "base"
    PROBE = "probe"


@dataclass(frozen=True)
class ProbeState:
    """The slice of session state the controller consults."""

    last_outcome: Optional[Outcome]
    probe_count: int
    max_probe_depth: int
    current_question_id: Optional[str]
    last_probe_question: Optional[str]


@dataclass(frozen=True)
class ProbeDecision:
    kind: PromptKind
    probe_count: int
    base_question_id: Optional[str] = None
    probe_question_id: Optional[str] = None
    probe_stem: Optional[str] = None


def probe_prompt_id(base_question_id: str, probe_count: int) -> str:
    return f"{base_question_id}{PROBE_ID_SEPARATOR}{probe_count}"


def is_probe_prompt_id(prompt_id: str) -> bool:
    base, sep, n = prompt_id.rpartition(PROBE_ID_SEPARATOR)
    return bool(sep) and bool(base) and n.isdigit()


def resolve_base_prompt_id(prompt_id: str) -> str:
    """Map a probe prompt id back to its base question id; base ids pass through."""
    if is_probe_prompt_id(prompt_id):
        return prompt_id.rpartition(PROBE_ID_SEPARATOR)[0]
    return prompt_id


def probe_area_label(area_label: str) -> str:
    return f"{area_label}{PROBE_AREA_SUFFIX}"


def decide_next(state: ProbeState, force_new_base: bool = False) -> ProbeDecision:
    """
    Rules, first match wins:
      1. force_new_base -> new base question, counter reset.
      2. last outcome non-PASS, 0 < counter <= max depth, a current question
         and a probe question exist -> probe, counter unchanged.
      3. otherwise -> new base question, counter reset.
    """
    if force_new_base:
        return ProbeDecision(kind=PromptKind.BASE, probe_count=0)

    outcome = Outcome(state.last_outcome) if state.last_outcome else None
    should_probe = (
        outcome is not None
        and not outcome.is_pass
        and 0 < state.probe_count <= state.max_probe_depth
        and bool(state.current_question_id)
        and bool(state.last_probe_question)
    )
    if should_probe:
        return ProbeDecision(
            kind=PromptKind.PROBE,
            probe_count=state.probe_count,
            base_question_id=state.current_question_id,
            probe_question_id=probe_prompt_id(state.current_question_id, state.probe_count),
            probe_stem=state.last_probe_question,
        )

    return ProbeDecision(kind=PromptKind.BASE, probe_count=0)


def next_probe_count(outcome: Outcome, probe_count: int, max_probe_depth: int) -> int:
    """Counter after grading: +1 (capped) on non-PASS, 0 on PASS."""
    if Outcome(outcome).is_pass:
        return 0
    return min(max_probe_depth, probe_count + 1)
