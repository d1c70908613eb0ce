"""Unit tests for the evaluation pipeline: retry-with-correction, fallback, deadline."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import scripted_oracle, verdict_reply

from checkride.engines.oral.evaluator import EvaluationPipeline, RetryPolicy, build_grading_oracle
from checkride.engines.oral.stub_oracle import StubGradingOracle
from checkride.engines.oral.verdict import FALLBACK_FEEDBACK
from checkride.kernel.errors import OracleTransportFailure
from checkride.kernel.models.exam import Outcome

PROMPT = "What documents are required on board?"
ANSWER = "Registration and airworthiness certificate."
CODE = "PA.I.B.K1"


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.backoff_seconds == 0.0

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_backoff(self):
        with pytest.raises(ValueError):
            RetryPolicy(backoff_seconds=-1)


class TestEvaluationPipeline:
    """Pipeline always returns a well-formed verdict."""

    @pytest.mark.asyncio
    async def test_valid_first_reply(self):
        oracle = scripted_oracle([verdict_reply("PASS", 0.9)])
        verdict = await EvaluationPipeline(oracle).evaluate(PROMPT, ANSWER, CODE)
        assert verdict.outcome is Outcome.PASS
        assert verdict.confidence == pytest.approx(0.9)
        assert verdict.skill_task_code == CODE
        assert oracle.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_three_malformed_replies_yield_fallback(self):
        oracle = scripted_oracle(["nope", "{}", '{"outcome": "MAYBE"}'])
        verdict = await EvaluationPipeline(oracle, RetryPolicy(max_attempts=3)).evaluate(PROMPT, ANSWER, CODE)
        assert verdict.outcome is Outcome.PROBE
        assert verdict.confidence == 0.0
        assert verdict.feedback == FALLBACK_FEEDBACK
        assert verdict.skill_task_code == CODE
        assert oracle.complete.await_count == 3

    @pytest.mark.asyncio
    async def test_valid_on_second_attempt_forces_code(self):
        """A corrected reply is used, with the input skill-task code."""
        oracle = scripted_oracle(
            ["garbage", verdict_reply("REMEDIATE", 0.7, skill_task_code="SOMETHING.ELSE")]
        )
        verdict = await EvaluationPipeline(oracle).evaluate(PROMPT, ANSWER, CODE)
        assert verdict.outcome is Outcome.REMEDIATE
        assert verdict.skill_task_code == CODE
        assert oracle.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_second_call_is_a_correction_request(self):
        oracle = scripted_oracle(["garbage", verdict_reply()])
        await EvaluationPipeline(oracle).evaluate(PROMPT, ANSWER, CODE)
        second_messages = oracle.complete.await_args_list[1].args[0]
        user_content = second_messages[-1]["content"]
        assert "Invalid output to fix:\ngarbage" in user_content
        assert f"Student answer: {ANSWER}" in user_content

    @pytest.mark.asyncio
    async def test_max_attempts_bounds_calls(self):
        oracle = scripted_oracle(["x"] * 10)
        verdict = await EvaluationPipeline(oracle, RetryPolicy(max_attempts=2)).evaluate(PROMPT, ANSWER, CODE)
        assert verdict.confidence == 0.0
        assert oracle.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_oversized_confidence_is_corrected(self):
        """An unreadable number is a malformed reply, so a correction is requested."""
        oversized = verdict_reply("PASS").replace("0.8", "1" + "0" * 400)
        oracle = scripted_oracle([oversized, verdict_reply("PASS", 0.9)])
        verdict = await EvaluationPipeline(oracle).evaluate(PROMPT, ANSWER, CODE)
        assert verdict.outcome is Outcome.PASS
        assert verdict.confidence == pytest.approx(0.9)
        assert oracle.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_transport_failure_yields_fallback(self):
        oracle = scripted_oracle([OracleTransportFailure("connection reset")])
        verdict = await EvaluationPipeline(oracle).evaluate(PROMPT, ANSWER, CODE)
        assert verdict.outcome is Outcome.PROBE
        assert verdict.confidence == 0.0
        assert oracle.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_yields_fallback(self):
        oracle = scripted_oracle([RuntimeError("boom")])
        verdict = await EvaluationPipeline(oracle).evaluate(PROMPT, ANSWER, CODE)
        assert verdict.feedback == FALLBACK_FEEDBACK

    @pytest.mark.asyncio
    async def test_deadline_yields_fallback(self):
        async def slow(messages):
            await asyncio.sleep(5)
            return verdict_reply()

        oracle = AsyncMock()
        oracle.complete.side_effect = slow
        pipeline = EvaluationPipeline(oracle, RetryPolicy(deadline_seconds=0.05))
        verdict = await pipeline.evaluate(PROMPT, ANSWER, CODE)
        assert verdict.outcome is Outcome.PROBE
        assert verdict.confidence == 0.0


class TestOracleSelection:
    def test_stub_without_key(self):
        from checkride.config import Settings

        oracle = build_grading_oracle(Settings(openai_api_key=""))
        assert isinstance(oracle, StubGradingOracle)

    def test_placeholder_key_means_stub(self):
        from checkride.config import Settings

        oracle = build_grading_oracle(Settings(openai_api_key="sk-your-openai-api-key"))
        assert isinstance(oracle, StubGradingOracle)

    @pytest.mark.asyncio
    async def test_stub_through_pipeline(self):
        pipeline = EvaluationPipeline(StubGradingOracle())
        verdict = await pipeline.evaluate(PROMPT, "It doesn't matter, skip checklist.", CODE)
        assert verdict.outcome is Outcome.FAIL
        assert verdict.skill_task_code == CODE
