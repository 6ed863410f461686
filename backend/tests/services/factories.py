"""Test factories — seeded wallets and shortcuts that drive sessions through the API."""

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient

from skillloop.core.domain_types import WalletAddress

LEARNER = WalletAddress("0x" + "a" * 40)
TUTOR = WalletAddress("0x" + "b" * 40)
OTHER_TUTOR = WalletAddress("0x" + "c" * 40)
OUTSIDER = WalletAddress("0x" + "d" * 40)
INITIAL_BALANCE = 200.0


def headers(wallet: str) -> dict:
    return {"X-Wallet-Address": wallet}


def tomorrow() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=1)


async def balance_of(client: AsyncClient, wallet: str) -> float:
    res = await client.get(f"/api/v1/users/{wallet}")
    assert res.status_code == 200
    return res.json()["token_balance"]


async def book(
    client: AsyncClient, rate: float = 10, duration: int = 60, skill: str = "Solidity",
) -> dict:
    res = await client.post(
        "/api/v1/sessions",
        json={
            "tutor_address": TUTOR,
            "skill_name": skill,
            "start_time": tomorrow().isoformat(),
            "duration": duration,
            "hourly_rate": rate,
        },
        headers=headers(LEARNER),
    )
    assert res.status_code == 201, res.text
    return res.json()


async def start_session(client: AsyncClient, session_id: str) -> dict:
    """Approve then start a directly booked session; returns its progress view."""
    res = await client.post(
        f"/api/v1/sessions/{session_id}/approve",
        json={"meeting_link": "https://meet.example/abc"},
        headers=headers(TUTOR),
    )
    assert res.status_code == 200, res.text
    res = await client.post(f"/api/v1/sessions/{session_id}/start", headers=headers(TUTOR))
    assert res.status_code == 200, res.text
    res = await client.get(f"/api/v1/sessions/{session_id}/progress")
    return res.json()


async def complete_milestones(
    client: AsyncClient, session_id: str, progress: dict, count: int,
) -> dict:
    body = None
    for milestone in progress["progress_tracking"]["milestones"][:count]:
        res = await client.put(
            f"/api/v1/sessions/{session_id}/progress/milestones",
            json={"milestone_id": milestone["id"], "completed": True},
            headers=headers(TUTOR),
        )
        assert res.status_code == 200, res.text
        body = res.json()
    return body


async def record_meeting(
    client: AsyncClient,
    session_id: str,
    participants: int = 2,
    attendance: float = 90,
    duration: int = 45,
) -> dict:
    res = await client.put(
        f"/api/v1/sessions/{session_id}/progress/meeting",
        json={
            "participants": [LEARNER, TUTOR][:participants],
            "attendance_rate": attendance,
            "duration": duration,
        },
        headers=headers(LEARNER),
    )
    assert res.status_code == 200, res.text
    return res.json()


async def completed_session(client: AsyncClient, rate: float = 10, duration: int = 60) -> dict:
    """Book, run and complete a session; returns the completion response."""
    session = await book(client, rate=rate, duration=duration)
    progress = await start_session(client, session["id"])
    await complete_milestones(client, session["id"], progress, 4)
    await record_meeting(client, session["id"])
    res = await client.post(
        f"/api/v1/sessions/{session['id']}/complete", headers=headers(TUTOR),
    )
    assert res.status_code == 200, res.text
    return res.json()
