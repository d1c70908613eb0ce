"""
Grading Oracle Client - one structured chat-completions call per invocation.

The client only transports: it builds the messages, enforces the verdict
JSON schema on the request, and returns the reply text. It never retries
(the evaluation pipeline owns retry) and never interprets the reply.
"""

from typing import Dict, List, Optional, Protocol

from checkride.config import Settings, get_settings
from checkride.engines.oral.verdict import VERDICT_KEYS
from checkride.kernel.errors import OracleTransportFailure
from checkride.logging_config import get_logger

logger = get_logger(__name__)

Message = Dict[str, str]

SYSTEM_PROMPT = """You are an FAA designated pilot examiner (DPE) conducting a checkride oral.
Evaluate only this answer against this question and ACS task.
Grade for structure, regulatory/source correctness, and safety/risk emphasis.
Return ONLY valid JSON. No markdown. No extra keys.

Required JSON:
{
  "outcome": "PASS" | "PROBE" | "REMEDIATE" | "FAIL",
  "confidence": number between 0 and 1,
  "feedback": string,
  "missing_points": string[],
  "probe_question": string | null,
  "skill_task_code": string
}
When outcome is not PASS, probe_question must be a single follow-up question
that targets the weakest part of the answer."""

VERDICT_JSON_SCHEMA = {
    "name": "oral_evaluation",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "required": list(VERDICT_KEYS),
        "properties": {
            "outcome": {"type": "string", "enum": ["PASS", "PROBE", "REMEDIATE", "FAIL"]},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "feedback": {"type": "string"},
            "missing_points": {"type": "array", "items": {"type": "string"}},
            "probe_question": {"anyOf": [{"type": "string"}, {"type": "null"}]},
            "skill_task_code": {"type": "string"},
        },
    },
}


class GradingOracle(Protocol):
    """Anything that can answer a grading conversation with reply text."""

    async def complete(self, messages: List[Message]) -> str:
        ...


def grading_context(prompt_text: str, answer_text: str, skill_task_code: str) -> str:
    return (
        f"Question stem: {prompt_text}\n"
        f"ACS task code: {skill_task_code}\n"
        f"Student answer: {answer_text}"
    )


def build_grading_messages(prompt_text: str, answer_text: str, skill_task_code: str) -> List[Message]:
    """Messages for the first grading call."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": grading_context(prompt_text, answer_text, skill_task_code)},
    ]


def build_correction_messages(
    prompt_text: str,
    answer_text: str,
    skill_task_code: str,
    invalid_output: str,
    reason: Optional[str] = None,
) -> List[Message]:
    """Messages asking the oracle to repair its previous, invalid reply."""
    problem = f" Problem: {reason}." if reason else ""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                "Your previous output was invalid JSON for the required schema."
                f"{problem}\n"
                "Fix it and return only valid JSON with the required keys.\n"
                f"Original context:\n{grading_context(prompt_text, answer_text, skill_task_code)}\n\n"
                f"Invalid output to fix:\n{invalid_output}"
            ),
        },
    ]


class OpenAIGradingOracle:
    """GradingOracle backed by the OpenAI chat-completions API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4.1",
        timeout_seconds: float = 20.0,
        client=None,
    ):
        if client is None:
            from openai import AsyncOpenAI

            # max_retries=0: retry policy lives in the evaluation pipeline
            client = AsyncOpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OpenAIGradingOracle":
        settings = settings or get_settings()
        return cls(
            api_key=settings.openai_api_key.strip(),
            model=settings.openai_model,
            timeout_seconds=settings.oracle_timeout_seconds,
        )

    async def complete(self, messages: List[Message]) -> str:
        import openai

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.2,
                response_format={"type": "json_schema", "json_schema": VERDICT_JSON_SCHEMA},
            )
        except openai.APIStatusError as exc:
            logger.warning(
                "Grading oracle returned an error status",
                extra={"status_code": exc.status_code, "model": self.model},
            )
            raise OracleTransportFailure(f"oracle returned HTTP {exc.status_code}") from exc
        except openai.APIError as exc:
            # Connection errors and timeouts land here
            logger.warning("Grading oracle call failed: %s", exc, extra={"model": self.model})
            raise OracleTransportFailure(str(exc)) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not isinstance(content, str):
            raise OracleTransportFailure("oracle returned empty content")
        return content
