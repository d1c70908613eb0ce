"""Run one short oral exam against a local server: start, answer, follow the probe, show results."""
import httpx, sys

BASE = "http://localhost:8000/api/v1"
headers = {"X-Examinee-ID": sys.argv[1] if len(sys.argv) > 1 else "demo-user"}
client = httpx.Client(timeout=60, headers=headers)

r = client.post(f"{BASE}/sessions/start", json={"mode": "PPL"})
print(f"Start: {r.status_code}")
if r.status_code not in (200, 201):
    print(f"  Body: {r.text}")
    exit(1)
session_id = r.json()["session_id"]
print(f"Session: {session_id}")

answers = [
    "Registration.",
    "The airworthiness certificate and registration must be on board, per 14 CFR 91.203, "
    "plus the POH/AFM and weight and balance. Before flight I check each document is current, "
    "because without them the aircraft is not legal to fly and that is a safety issue.",
]

for answer in answers:
    r = client.post(f"{BASE}/sessions/next", json={"session_id": session_id})
    if r.status_code != 200:
        print(f"Next: {r.status_code} {r.text}")
        exit(1)
    data = r.json()
    q, meta = data["question"], data["meta"]
    print(f"\n[{meta['kind']}] {q['area_label']} ({q['skill_task_code']})")
    print(f"  Q: {q['stem']}")
    print(f"  A: {answer}")

    r = client.post(f"{BASE}/answers/submit", json={
        "session_id": session_id,
        "question_id": q["id"],
        "answer": answer,
    })
    v = r.json()
    print(f"  -> {v['outcome']} ({v['confidence']:.2f}), mastery {v['mastery']} ({v['mastery_delta']:+})")
    print(f"     {v['feedback']}")

r = client.get(f"{BASE}/sessions/results", params={"session_id": session_id})
print(f"\nResults: {r.status_code}")
if r.status_code == 200:
    res = r.json()
    c = res["counts"]
    print(f"  total {c['total']}: PASS {c['pass_count']}, PROBE {c['probe_count']}, "
          f"REMEDIATE {c['remediate_count']}, FAIL {c['fail_count']}")
    for s in res["weakest"]:
        print(f"  weak: {s['skill_task_code']} {s['mastery']}")
