"""
Evaluation Pipeline - turns a free-text answer into a Verdict.

evaluate() is total: whatever the oracle does (errors, garbage, silence),
the caller gets a well-formed Verdict. Malformed replies are retried with an
explicit correction request, bounded by a RetryPolicy; transport failures
and an exhausted budget both yield the deterministic fallback verdict.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from checkride.config import Settings, get_settings
from checkride.engines.oral.oracle_client import (
    GradingOracle,
    OpenAIGradingOracle,
    build_correction_messages,
    build_grading_messages,
)
from checkride.engines.oral.stub_oracle import StubGradingOracle
from checkride.engines.oral.verdict import MalformedOutput, Verdict, fallback_verdict, parse_verdict
from checkride.kernel.errors import OracleMalformedOutput, OracleTransportFailure
from checkride.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounds for one evaluation.

    max_attempts counts every oracle call, so 3 means one call plus two
    correction retries. deadline_seconds caps the whole evaluation,
    retries included.
    """

    max_attempts: int = 3
    backoff_seconds: float = 0.0
    deadline_seconds: Optional[float] = 45.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.evaluator_max_attempts,
            backoff_seconds=settings.evaluator_backoff_seconds,
            deadline_seconds=settings.evaluator_deadline_seconds,
        )


class EvaluationPipeline:
    """Wraps a GradingOracle with validation, bounded retry, and fallback."""

    def __init__(self, oracle: GradingOracle, policy: Optional[RetryPolicy] = None):
        self.oracle = oracle
        self.policy = policy or RetryPolicy()

    async def evaluate(self, prompt_text: str, answer_text: str, skill_task_code: str) -> Verdict:
        """Grade one answer. Never raises for oracle problems."""
        try:
            if self.policy.deadline_seconds is None:
                return await self._evaluate(prompt_text, answer_text, skill_task_code)
            return await asyncio.wait_for(
                self._evaluate(prompt_text, answer_text, skill_task_code),
                timeout=self.policy.deadline_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Evaluation deadline exceeded; using fallback verdict",
                extra={"skill_task_code": skill_task_code, "deadline_seconds": self.policy.deadline_seconds},
            )
        except OracleTransportFailure as exc:
            logger.warning(
                "Grading oracle unavailable; using fallback verdict: %s",
                exc,
                extra={"skill_task_code": skill_task_code},
            )
        except OracleMalformedOutput as exc:
            logger.warning(
                "Grading oracle never produced a valid verdict; using fallback: %s",
                exc.reason,
                extra={"skill_task_code": skill_task_code, "attempts": self.policy.max_attempts},
            )
        except Exception:
            logger.exception("Unexpected grading failure; using fallback verdict")
        return fallback_verdict(skill_task_code)

    async def _evaluate(self, prompt_text: str, answer_text: str, skill_task_code: str) -> Verdict:
        messages = build_grading_messages(prompt_text, answer_text, skill_task_code)
        last: Optional[MalformedOutput] = None

        for attempt in range(1, self.policy.max_attempts + 1):
            if last is not None:
                if self.policy.backoff_seconds:
                    await asyncio.sleep(self.policy.backoff_seconds * (attempt - 1))
                messages = build_correction_messages(
                    prompt_text, answer_text, skill_task_code, last.raw, last.reason
                )

            raw = await self.oracle.complete(messages)
            result = parse_verdict(raw, skill_task_code=skill_task_code)
            if isinstance(result, Verdict):
                if attempt > 1:
                    logger.info(
                        "Grading oracle corrected its output",
                        extra={"attempt": attempt, "skill_task_code": skill_task_code},
                    )
                return result

            last = result
            logger.info(
                "Malformed oracle output: %s",
                result.reason,
                extra={"attempt": attempt, "skill_task_code": skill_task_code},
            )

        raise OracleMalformedOutput(last.reason if last else "no output", last.raw if last else "")


def build_grading_oracle(settings: Optional[Settings] = None) -> GradingOracle:
    """Real OpenAI oracle when a key is configured, the rule-based stub otherwise."""
    settings = settings or get_settings()
    if settings.oracle_configured:
        return OpenAIGradingOracle.from_settings(settings)
    logger.warning("No OpenAI API key; grading with the rule-based stub oracle")
    return StubGradingOracle()


def build_evaluation_pipeline(settings: Optional[Settings] = None) -> EvaluationPipeline:
    settings = settings or get_settings()
    return EvaluationPipeline(build_grading_oracle(settings), RetryPolicy.from_settings(settings))
