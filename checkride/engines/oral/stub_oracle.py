"""
Stub grading oracle - rule-based stand-in used when no OpenAI key is set.

Looks for the four elements a checkride answer should carry (definition,
authority, process, safety), red-flag phrases, and answer length, then
replies with the same JSON shape the real oracle is asked for.
"""

import json
import re
from typing import List

from checkride.engines.oral.oracle_client import Message

RED_FLAG_PHRASES = [
    "doesn't matter",
    "doesnt matter",
    "optional",
    "ignore",
    "always fine",
    "never check",
    "skip checklist",
    "don't check",
    "dont check",
]

_DEFINITION = [
    re.compile(r"\b(is|means|defined as|definition)\b"),
    re.compile(r"\b(a|an)\b.+\bthat\b"),
]
_SOURCE = [
    re.compile(r"\b(far|14 cfr|regulation|aim|acs|afh|poh|fih)\b"),
    re.compile(r"\b(section|part)\b\s*\d+"),
]
_PROCESS = [
    re.compile(r"\b(first|then|next|after|before|finally)\b"),
    re.compile(r"\b(step|procedure|checklist|sequence)\b"),
]
_SAFETY = [
    re.compile(r"\b(risk|hazard|mitigate|mitigation|safe|safety|go/no-go)\b"),
    re.compile(r"\b(minimums|weather|currency|airworthiness)\b"),
]

# Context lines written by oracle_client.grading_context
_ANSWER_RE = re.compile(r"^Student answer: (.*)\Z", re.MULTILINE | re.DOTALL)
_CODE_RE = re.compile(r"^ACS task code: (.*)$", re.MULTILINE)


def _has_any(text: str, patterns: List[re.Pattern]) -> bool:
    return any(p.search(text) for p in patterns)


def grade_answer_text(answer: str, skill_task_code: str) -> dict:
    """Grade an answer with fixed rules; returns the verdict JSON as a dict."""
    raw = (answer or "").strip()
    lower = raw.lower()
    words = len(raw.split())

    missing: List[str] = []
    if not _has_any(lower, _DEFINITION):
        missing.append("State a crisp definition first.")
    if not _has_any(lower, _SOURCE):
        missing.append("Cite a source (FAR/AIM/ACS/POH) for authority.")
    if not _has_any(lower, _PROCESS):
        missing.append("Give step-by-step process in order.")
    if not _has_any(lower, _SAFETY):
        missing.append("Explain safety risk and mitigation.")

    red_flag = any(p in lower for p in RED_FLAG_PHRASES)

    if red_flag:
        outcome, confidence = "FAIL", 0.9
        feedback = (
            "Unsafe reasoning detected. Re-answer with explicit legal source, "
            "checklist process, and risk controls."
        )
    elif words < 18 or len(missing) >= 3:
        outcome, confidence = "REMEDIATE", 0.82
        feedback = (
            "Answer is too thin for checkride depth. Rebuild it with definition, "
            "authority, process, and safety implications."
        )
    elif words < 40 or missing:
        outcome, confidence = "PROBE", 0.66
        feedback = (
            "Partially correct. Add missing structure and be more specific with "
            "source and risk reasoning."
        )
    else:
        outcome, confidence = "PASS", 0.72
        feedback = "Solid structure. Keep tightening references and keep your process safety-first."

    focus = missing[0] if missing else (
        "Tighten your answer with clearer source, ordered process, and risk mitigation."
    )
    probe_question = (
        f"Follow-up on {skill_task_code}: {focus} In 4-6 sentences, answer using "
        "definition -> source -> process -> safety/risk."
    )

    return {
        "outcome": outcome,
        "confidence": confidence,
        "feedback": feedback,
        "missing_points": missing,
        "probe_question": probe_question,
        "skill_task_code": skill_task_code,
    }


class StubGradingOracle:
    """GradingOracle that grades locally with grade_answer_text."""

    async def complete(self, messages: List[Message]) -> str:
        context = messages[-1]["content"] if messages else ""
        # Correction requests embed the original context; grade from that
        if "Original context:\n" in context:
            context = context.split("Original context:\n", 1)[1].split("\n\nInvalid output to fix:", 1)[0]
        answer_match = _ANSWER_RE.search(context)
        code_match = _CODE_RE.search(context)
        answer = answer_match.group(1) if answer_match else ""
        code = code_match.group(1).strip() if code_match else ""
        return json.dumps(grade_answer_text(answer, code))
