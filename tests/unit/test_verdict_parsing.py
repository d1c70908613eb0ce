"""Unit tests for the oracle reply parse boundary."""

import json
import math

import pytest

from checkride.engines.oral.verdict import (
    FALLBACK_FEEDBACK,
    MalformedOutput,
    Verdict,
    fallback_verdict,
    parse_verdict,
)
from checkride.kernel.models.exam import Outcome


def _reply(**overrides) -> str:
    data = {
        "outcome": "PROBE",
        "confidence": 0.6,
        "feedback": "Partially correct.",
        "missing_points": ["Cite 14 CFR 91.203"],
        "probe_question": "Which documents are required?",
        "skill_task_code": "PA.I.B.K1",
    }
    data.update(overrides)
    return json.dumps(data)


class TestParseVerdictValid:
    def test_valid_reply(self):
        result = parse_verdict(_reply())
        assert isinstance(result, Verdict)
        assert result.outcome is Outcome.PROBE
        assert result.confidence == pytest.approx(0.6)
        assert result.missing_points == ["Cite 14 CFR 91.203"]
        assert result.probe_question == "Which documents are required?"
        assert result.skill_task_code == "PA.I.B.K1"

    def test_code_forced_to_input(self):
        """The caller's skill-task code wins over whatever the oracle echoed."""
        result = parse_verdict(_reply(skill_task_code="WRONG"), skill_task_code="IR.I.A.K1")
        assert result.skill_task_code == "IR.I.A.K1"

    def test_confidence_clamped(self):
        assert parse_verdict(_reply(confidence=1.7)).confidence == 1.0
        assert parse_verdict(_reply(confidence=-0.2)).confidence == 0.0

    def test_numeric_string_confidence(self):
        assert parse_verdict(_reply(confidence="0.25")).confidence == pytest.approx(0.25)

    def test_non_finite_confidence_is_zero(self):
        raw = _reply().replace("0.6", "NaN")
        result = parse_verdict(raw)
        assert isinstance(result, Verdict)
        assert result.confidence == 0.0

    def test_code_fence_stripped(self):
        result = parse_verdict("```json\n" + _reply(outcome="PASS") + "\n```")
        assert isinstance(result, Verdict)
        assert result.outcome is Outcome.PASS

    def test_extra_keys_ignored(self):
        raw = json.dumps({**json.loads(_reply()), "result": "FAIL", "notes": "x"})
        assert parse_verdict(raw).outcome is Outcome.PROBE

    def test_blank_probe_question_is_none(self):
        assert parse_verdict(_reply(probe_question="   ")).probe_question is None
        assert parse_verdict(_reply(probe_question=None)).probe_question is None

    def test_blank_missing_points_dropped(self):
        assert parse_verdict(_reply(missing_points=["a", " ", ""])).missing_points == ["a"]


class TestParseVerdictMalformed:
    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            "[1, 2, 3]",
            _reply(outcome="MAYBE"),
            _reply(outcome=None),
            _reply(confidence="high"),
            _reply(confidence=None),
            _reply(confidence=True),
            _reply(feedback=""),
            _reply(feedback=3),
            _reply(missing_points="none"),
            _reply(missing_points=[1, 2]),
            _reply(probe_question=5),
            _reply(skill_task_code=None),
        ],
    )
    def test_malformed(self, raw):
        result = parse_verdict(raw)
        assert isinstance(result, MalformedOutput)
        assert result.reason
        assert result.raw == raw

    def test_non_text_reply(self):
        assert isinstance(parse_verdict(None), MalformedOutput)

    def test_lowercase_outcome_rejected(self):
        assert isinstance(parse_verdict(_reply(outcome="pass")), MalformedOutput)

    def test_confidence_too_large_for_float(self):
        raw = _reply().replace("0.6", "1" + "0" * 400)
        result = parse_verdict(raw)
        assert isinstance(result, MalformedOutput)
        assert "confidence" in result.reason

    def test_integer_past_digit_limit(self):
        raw = _reply().replace("0.6", "9" * 5000)
        assert isinstance(parse_verdict(raw), MalformedOutput)

    def test_huge_numeric_string_is_zero(self):
        """float() of a numeric string saturates to inf rather than raising."""
        result = parse_verdict(_reply(confidence="9" * 400))
        assert isinstance(result, Verdict)
        assert result.confidence == 0.0


class TestFallbackVerdict:
    def test_shape(self):
        v = fallback_verdict("CA.I.A.K1")
        assert v.outcome is Outcome.PROBE
        assert v.confidence == 0.0
        assert v.feedback == FALLBACK_FEEDBACK
        assert v.missing_points == []
        assert v.probe_question is None
        assert v.skill_task_code == "CA.I.A.K1"
        assert not math.isnan(v.confidence)
