"""
System smoke test: full API flow in-process with SQLite.
Covers health, session start, next prompt, answer submission, the probe
loop, results, session list, and error mapping. Grading uses the rule-based
stub oracle (no network).
"""

import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkride.api.deps import get_evaluation_pipeline
from checkride.database import get_db
from checkride.engines.oral.evaluator import EvaluationPipeline, RetryPolicy
from checkride.engines.oral.question_bank import seed_question_bank
from checkride.engines.oral.stub_oracle import StubGradingOracle
from checkride.kernel.exam_store import ExamStore
from checkride.main import app

API = "/api/v1"
ALICE = {"X-Examinee-ID": "alice"}
BOB = {"X-Examinee-ID": "bob"}

THIN_ANSWER = "Registration."
GOOD_ANSWER = (
    "An airworthiness certificate is the document that shows the aircraft meets its type design. "
    "Per 14 CFR 91.203 it must be on board and displayed. Before flight I first check the "
    "documents, then the inspections in the logbooks, and finally the required equipment. "
    "Flying without it is a safety and legal risk, so it is a go/no-go item."
)


@pytest_asyncio.fixture
async def client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """Async client bound to a seeded test DB and the stub oracle."""
    session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async with session_maker() as session:
        store = ExamStore(session)
        await seed_question_bank(store)
        await store.commit()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_evaluation_pipeline] = lambda: EvaluationPipeline(
        StubGradingOracle(), RetryPolicy(deadline_seconds=5.0)
    )
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_evaluation_pipeline, None)


async def _start(client: AsyncClient, mode: str = "PPL", headers=ALICE) -> str:
    r = await client.post(f"{API}/sessions/start", json={"mode": mode}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["session_id"]


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Health endpoint responds on both paths."""
    for path in ("/health", f"{API}/health"):
        r = await client.get(path)
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["oracle"] == "stub"
        assert "version" in data


@pytest.mark.asyncio
async def test_exam_flow_with_probe(client: AsyncClient):
    """start -> base -> thin answer -> probe -> good answer -> base; results and list."""
    session_id = await _start(client)

    r = await client.post(f"{API}/sessions/next", json={"session_id": session_id}, headers=ALICE)
    assert r.status_code == 200, r.text
    data = r.json()
    base = data["question"]
    assert data["meta"]["kind"] == "base"
    assert data["meta"]["probe_count"] == 0
    assert data["meta"]["max_probes"] == 2
    assert r.headers.get("X-Request-ID")

    r = await client.post(
        f"{API}/answers/submit",
        json={"session_id": session_id, "question_id": base["id"], "answer": THIN_ANSWER},
        headers=ALICE,
    )
    assert r.status_code == 200, r.text
    verdict = r.json()
    assert verdict["outcome"] == "REMEDIATE"
    assert verdict["skill_task_code"] == base["skill_task_code"]
    assert verdict["probe_count"] == 1
    assert verdict["mastery"] == 0.0
    assert verdict["probe_question"]
    uuid.UUID(verdict["attempt_id"])

    r = await client.post(f"{API}/sessions/next", json={"session_id": session_id}, headers=ALICE)
    probe = r.json()
    assert probe["meta"]["kind"] == "probe"
    assert probe["question"]["id"] == f"{base['id']}__probe_1"
    assert probe["question"]["stem"] == verdict["probe_question"]
    assert probe["meta"]["base_question_id"] == base["id"]

    r = await client.post(
        f"{API}/answers/submit",
        json={"session_id": session_id, "question_id": probe["question"]["id"], "answer": GOOD_ANSWER},
        headers=ALICE,
    )
    assert r.status_code == 200, r.text
    assert r.json()["outcome"] == "PASS"
    assert r.json()["probe_count"] == 0

    r = await client.post(f"{API}/sessions/next", json={"session_id": session_id}, headers=ALICE)
    assert r.json()["meta"]["kind"] == "base"

    r = await client.get(f"{API}/sessions/results", params={"session_id": session_id}, headers=ALICE)
    assert r.status_code == 200, r.text
    results = r.json()
    assert results["session"]["mode"] == "PPL"
    assert results["counts"]["total"] == 2
    assert results["counts"]["remediate_count"] == 1
    assert results["counts"]["pass_count"] == 1
    assert len(results["attempts"]) == 2
    assert results["weakest"][0]["skill_task_code"] == base["skill_task_code"]

    r = await client.get(f"{API}/sessions", headers=ALICE)
    assert r.status_code == 200
    sessions = r.json()["sessions"]
    assert [s["id"] for s in sessions] == [session_id]
    assert sessions[0]["counts"]["total"] == 2


@pytest.mark.asyncio
async def test_force_new_base(client: AsyncClient):
    session_id = await _start(client, "IR")
    r = await client.post(f"{API}/sessions/next", json={"session_id": session_id}, headers=ALICE)
    base = r.json()["question"]
    await client.post(
        f"{API}/answers/submit",
        json={"session_id": session_id, "question_id": base["id"], "answer": THIN_ANSWER},
        headers=ALICE,
    )
    r = await client.post(
        f"{API}/sessions/next",
        json={"session_id": session_id, "force_new_base": True},
        headers=ALICE,
    )
    assert r.json()["meta"]["kind"] == "base"
    assert r.json()["meta"]["probe_count"] == 0


@pytest.mark.asyncio
async def test_error_mapping(client: AsyncClient):
    """Invalid mode 400, unknown session 404, other examinee 403, bad body 422."""
    r = await client.post(f"{API}/sessions/start", json={"mode": "ATP"}, headers=ALICE)
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_state"

    r = await client.post(f"{API}/sessions/next", json={"session_id": str(uuid.uuid4())}, headers=ALICE)
    assert r.status_code == 404
    assert r.headers.get("X-Request-ID")

    session_id = await _start(client)
    r = await client.post(f"{API}/sessions/next", json={"session_id": session_id}, headers=BOB)
    assert r.status_code == 403

    r = await client.get(f"{API}/sessions/results", params={"session_id": session_id}, headers=BOB)
    assert r.status_code == 403

    r = await client.post(
        f"{API}/answers/submit",
        json={"session_id": session_id, "question_id": "no-such-question", "answer": "x"},
        headers=ALICE,
    )
    assert r.status_code == 404

    r = await client.post(
        f"{API}/answers/submit",
        json={"session_id": session_id, "question_id": "ppl-airworthiness-docs", "answer": ""},
        headers=ALICE,
    )
    assert r.status_code == 422

    r = await client.post(f"{API}/sessions/next", json={"session_id": "not-a-uuid"}, headers=ALICE)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_default_examinee(client: AsyncClient):
    """Without X-Examinee-ID the configured default identity is used."""
    r = await client.post(f"{API}/sessions/start", json={"mode": "CPL"})
    session_id = r.json()["session_id"]
    r = await client.get(f"{API}/sessions")
    assert session_id in [s["id"] for s in r.json()["sessions"]]
    r = await client.get(f"{API}/sessions", headers=ALICE)
    assert session_id not in [s["id"] for s in r.json()["sessions"]]
