"""
Answer endpoint - grade one answer against the current prompt.
"""

from fastapi import APIRouter

from checkride.api.deps import CurrentExaminee, Orchestrator
from checkride.schemas.session import SubmitAnswerRequest, VerdictResponse

router = APIRouter()


@router.post("/submit", response_model=VerdictResponse)
async def submit_answer(
    body: SubmitAnswerRequest,
    examinee: CurrentExaminee,
    orchestrator: Orchestrator,
):
    """
    Grade an answer. question_id may be a base id or a probe id
    ("{base}__probe_{n}"). Always returns a well-formed verdict; oracle
    failures degrade to the fallback verdict rather than an error.
    """
    graded = await orchestrator.grade_answer(examinee, body.session_id, body.question_id, body.answer)
    v = graded.verdict
    return VerdictResponse(
        outcome=v.outcome.value,
        confidence=v.confidence,
        feedback=v.feedback,
        missing_points=list(v.missing_points),
        probe_question=v.probe_question,
        skill_task_code=v.skill_task_code,
        attempt_id=graded.attempt_id,
        mastery=round(graded.mastery, 4),
        mastery_delta=round(graded.mastery_delta, 4),
        probe_count=graded.probe_count,
    )
