"""
Oral Exam Engine - grading and adaptive prompt selection.

Components:
- Grading oracle client (OpenAI, or the rule-based stub without a key)
- Evaluation pipeline: strict verdict parsing, bounded correction retries,
  deterministic fallback
- Mastery tracker: verdict -> bounded [0, 5] per-skill score
- Probe-loop controller: follow-up probe vs. fresh base question
- Question selector: random base question avoiding recent repeats
"""

from checkride.engines.oral.verdict import Verdict, MalformedOutput, parse_verdict, fallback_verdict
from checkride.engines.oral.mastery_tracker import apply_verdict, counter_increments, CounterIncrements
from checkride.engines.oral.probe_controller import (
    ProbeDecision,
    ProbeState,
    PromptKind,
    decide_next,
    next_probe_count,
    resolve_base_prompt_id,
)
from checkride.engines.oral.oracle_client import GradingOracle, OpenAIGradingOracle
from checkride.engines.oral.stub_oracle import StubGradingOracle
from checkride.engines.oral.evaluator import EvaluationPipeline, RetryPolicy, build_evaluation_pipeline
from checkride.engines.oral.question_selector import QuestionSelector

__all__ = [
    "Verdict",
    "MalformedOutput",
    "parse_verdict",
    "fallback_verdict",
    "apply_verdict",
    "counter_increments",
    "CounterIncrements",
    "ProbeDecision",
    "ProbeState",
    "PromptKind",
    "decide_next",
    "next_probe_count",
    "resolve_base_prompt_id",
    "GradingOracle",
    "OpenAIGradingOracle",
    "StubGradingOracle",
    "EvaluationPipeline",
    "RetryPolicy",
    "build_evaluation_pipeline",
    "QuestionSelector",
]
