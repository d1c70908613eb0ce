"""Verify the OpenAI key in .env and grade one sample answer through the real oracle."""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

from checkride.config import get_settings
from checkride.engines.oral.evaluator import EvaluationPipeline, RetryPolicy
from checkride.engines.oral.oracle_client import OpenAIGradingOracle

SAMPLE_PROMPT = "What documents must be on board the aircraft for a flight to be legal?"
SAMPLE_ANSWER = "The registration and the airworthiness certificate."
SAMPLE_CODE = "PA.I.B.K1"


async def main():
    settings = get_settings()
    if not settings.oracle_configured:
        print("FAIL: OPENAI_API_KEY is not set (or still the placeholder) in .env")
        sys.exit(1)
    print(f"Key set ({len(settings.openai_api_key)} chars), model {settings.openai_model}")

    pipeline = EvaluationPipeline(OpenAIGradingOracle.from_settings(settings), RetryPolicy.from_settings(settings))
    verdict = await pipeline.evaluate(SAMPLE_PROMPT, SAMPLE_ANSWER, SAMPLE_CODE)
    print(f"Outcome: {verdict.outcome.value} (confidence {verdict.confidence:.2f})")
    print(f"Feedback: {verdict.feedback}")
    for point in verdict.missing_points:
        print(f"  missing: {point}")
    if verdict.probe_question:
        print(f"Probe: {verdict.probe_question}")
    if verdict.confidence == 0.0 and verdict.outcome.value == "PROBE":
        print("WARN: this looks like the fallback verdict; check the server logs for oracle errors.")


if __name__ == "__main__":
    asyncio.run(main())
