"""Demo: submit, list, verify and reveal a credential using FastAPI TestClient.

Run with:
    python scripts/demo_credential_flow.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from edupassport.main import app
from edupassport.services import token_service

OWNER = "0xAAA0000000000000000000000000000000000001"
STRANGER = "0xBBB0000000000000000000000000000000000002"


def _auth(address: str) -> dict[str, str]:
    token = token_service.create_access_token(address=address)
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    client = TestClient(app)

    # ── Step 1: submit a credential ─────────────────────────────────
    r = client.post(
        "/v1/credentials",
        json={"institution": "MIT", "course": "CS101", "score": 92},
        headers=_auth(OWNER),
    )
    created = r.json()
    credential_id = created["id"]
    print(f"1. POST /v1/credentials          → {r.status_code}  id={credential_id}")
    print(f"   stored score: {created['obscured_score']}")

    # ── Step 2: list ────────────────────────────────────────────────
    r = client.get("/v1/credentials")
    print(f"2. GET  /v1/credentials          → {r.status_code}  count={len(r.json())}")

    # ── Step 3: a stranger tries to verify ──────────────────────────
    r = client.post(f"/v1/credentials/{credential_id}/verify", headers=_auth(STRANGER))
    print(f"3. POST .../verify (stranger)    → {r.status_code}  {r.json()['detail']}")

    # ── Step 4: the owner verifies ──────────────────────────────────
    r = client.post(f"/v1/credentials/{credential_id}/verify", headers=_auth(OWNER))
    print(f"4. POST .../verify (owner)       → {r.status_code}  status={r.json()['status']}")

    # ── Step 5: reject after verify is refused ──────────────────────
    r = client.post(f"/v1/credentials/{credential_id}/reject", headers=_auth(OWNER))
    print(f"5. POST .../reject (terminal)    → {r.status_code}  {r.json()['detail']}")

    # ── Step 6: fetch the challenge and reveal ──────────────────────
    challenge = client.get("/v1/reveal/challenge").json()["message"]
    print("6. GET  /v1/reveal/challenge:")
    for line in challenge.split("\n"):
        print(f"     {line[:60]}{'...' if len(line) > 60 else ''}")

    r = client.post(
        f"/v1/credentials/{credential_id}/reveal",
        json={"signature": "0x" + "ab" * 65},
        headers=_auth(OWNER),
    )
    print(f"7. POST .../reveal (signed)      → {r.status_code}  score={r.json()['score']}")

    r = client.post(
        f"/v1/credentials/{credential_id}/reveal", json={}, headers=_auth(OWNER)
    )
    print(f"8. POST .../reveal (declined)    → {r.status_code}  {r.json()['detail']}")

    # ── Step 9: dashboard feeds ─────────────────────────────────────
    print("9. GET  /v1/activity:")
    for entry in client.get("/v1/activity").json()["entries"]:
        print(f"     {entry}")
    print(f"   GET  /v1/credentials/stats → {client.get('/v1/credentials/stats').json()}")


if __name__ == "__main__":
    main()
