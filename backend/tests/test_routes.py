from __future__ import annotations
from urllib.parse import urlparse, parse_qs
import pytest
from storysquad.errors import ScoringError


@pytest.mark.asyncio
async def test_register_activate_login_me(client, mailer):
    body = {"codename": "Inkwell", "email": "ink@example.com", "password": "Passw0rd1", "age": 15}
    r = await client.post("/auth/register", json=body)
    assert r.status_code == 201
    assert r.json()["is_validated"] is False
    assert "password_hash" not in r.json()

    r = await client.post("/auth/login", json={"email": "ink@example.com", "password": "Passw0rd1"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Account must be validated"

    token = parse_qs(urlparse(mailer.validations[0][1]).query)["token"][0]
    r = await client.get("/auth/activation", params={"email": "ink@example.com", "token": token})
    assert r.status_code == 200

    r = await client.post("/auth/login", json={"email": "ink@example.com", "password": "Passw0rd1"})
    assert r.status_code == 200
    access = r.json()["token"]

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {access}"})
    assert me.status_code == 200
    assert me.json()["codename"] == "Inkwell"


@pytest.mark.asyncio
async def test_error_mapping(client, factory):
    r = await client.post("/auth/login", json={"email": "nobody@example.com", "password": "Passw0rd1"})
    assert r.status_code == 404
    assert r.json() == {"detail": "User not found"}

    r = await client.post("/auth/register", json={"codename": "Tiny", "email": "tiny@example.com", "password": "Passw0rd1", "age": 7})
    assert r.status_code == 400

    await factory.user(email="kid@example.com")
    assert (await client.post("/auth/reset/email", json={"email": "kid@example.com"})).status_code == 202
    r = await client.post("/auth/reset/email", json={"email": "kid@example.com"})
    assert r.status_code == 429


@pytest.mark.asyncio
async def test_missing_or_bad_token(client):
    r = await client.get("/auth/me")
    assert r.status_code in (401, 403)
    r = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_section_and_rumble_flow(client, factory, headers_for):
    teacher = await factory.user(role="teacher")
    student = await factory.user()
    prompt = await factory.prompt()

    r = await client.post("/sections", json={"name": "Period 3", "subject_id": 1, "grade_id": 5}, headers=headers_for(student))
    assert r.status_code == 403

    r = await client.post("/sections", json={"name": "Period 3", "subject_id": 1, "grade_id": 5}, headers=headers_for(teacher))
    assert r.status_code == 201
    section = r.json()

    r = await client.post(
        "/rumbles",
        json={"rumble": {"num_minutes": 25, "prompt_id": prompt.id}, "section_ids": [section["id"]]},
        headers=headers_for(teacher),
    )
    assert r.status_code == 201
    rumble = r.json()[0]
    assert rumble["section_name"] == "Period 3"
    assert rumble["phase"] == "pending"

    r = await client.post(f"/sections/{section['id']}/students", json={"join_code": "nope"}, headers=headers_for(student))
    assert r.status_code == 401
    r = await client.post(
        f"/sections/{section['id']}/students", json={"join_code": section["join_code"]}, headers=headers_for(student)
    )
    assert r.status_code == 201
    assert [x["id"] for x in r.json()["rumbles"]] == [rumble["id"]]

    r = await client.post(f"/rumbles/{rumble['id']}/sections/{section['id']}/start", headers=headers_for(teacher))
    assert r.status_code == 200
    assert r.json()["end_time"]

    r = await client.get(f"/rumbles/sections/{section['id']}", headers=headers_for(student))
    assert r.json()[0]["phase"] == "active"

    r = await client.get(f"/sections/{section['id']}/students", headers=headers_for(teacher))
    assert [s["codename"] for s in r.json()] == [student.codename]

    r = await client.get("/sections", headers=headers_for(student))
    assert [s["name"] for s in r.json()] == ["Period 3"]


@pytest.mark.asyncio
async def test_submit_page(client, factory, headers_for, png, scorer):
    student = await factory.user()
    prompt = await factory.prompt()
    scorer.score = 73.5

    r = await client.post(
        "/submissions",
        files={"file": ("page.png", png(), "image/png")},
        data={"prompt_id": str(prompt.id)},
        headers=headers_for(student),
    )
    assert r.status_code == 201
    item = r.json()
    assert item["score"] == 74
    assert item["src"].startswith("data:image/png;base64,")
    assert "etag" not in item and "blob_label" not in item

    r = await client.get(f"/submissions/{item['id']}", headers=headers_for(student))
    assert r.status_code == 200
    r = await client.get("/submissions/mine", headers=headers_for(student))
    assert [s["id"] for s in r.json()] == [item["id"]]


@pytest.mark.asyncio
async def test_submit_rejects_non_images_and_reports_scoring_outage(client, factory, headers_for, png, scorer):
    student = await factory.user()
    prompt = await factory.prompt()

    r = await client.post(
        "/submissions",
        files={"file": ("page.txt", b"hello", "text/plain")},
        data={"prompt_id": str(prompt.id)},
        headers=headers_for(student),
    )
    assert r.status_code == 400

    scorer.error = ScoringError("Scoring service unavailable")
    r = await client.post(
        "/submissions",
        files={"file": ("page.png", png(), "image/png")},
        data={"prompt_id": str(prompt.id)},
        headers=headers_for(student),
    )
    assert r.status_code == 502
    assert r.json()["detail"] == "Scoring service unavailable"


@pytest.mark.asyncio
async def test_contest_endpoints(client, factory, headers_for):
    admin = await factory.user(role="admin")
    student = await factory.user()
    prompt = await factory.prompt()
    subs = [await factory.submission(student, prompt, score=s) for s in (30, 60, 90)]
    ids = [s.id for s in subs]

    r = await client.get("/winner", headers=headers_for(student))
    assert r.status_code == 200
    assert r.json() is None

    r = await client.get("/leaderboard", headers=headers_for(student))
    assert [s["score"] for s in r.json()["subs"]] == [90, 60, 30]
    assert r.json()["has_voted"] is False

    assert (await client.post("/top3", json={"ids": ids}, headers=headers_for(student))).status_code == 403
    assert (await client.post("/top3", json={"ids": ids}, headers=headers_for(admin))).status_code == 201

    r = await client.post(
        "/votes",
        json={"first_place_id": ids[0], "second_place_id": ids[0], "third_place_id": ids[1]},
        headers=headers_for(student),
    )
    assert r.status_code == 422
    r = await client.post(
        "/votes",
        json={"first_place_id": ids[2], "second_place_id": ids[0], "third_place_id": ids[1]},
        headers=headers_for(student),
    )
    assert r.status_code == 201

    r = await client.post("/winner", headers=headers_for(admin))
    assert r.status_code == 201
    assert r.json()["id"] == ids[2]
    assert (await client.get("/winner", headers=headers_for(student))).json()["id"] == ids[2]


@pytest.mark.asyncio
async def test_removing_unknown_flag_is_404(client, factory, headers_for):
    teacher = await factory.user(role="teacher")
    r = await client.delete("/submissions/1/flags/1", headers=headers_for(teacher))
    assert r.status_code == 404
