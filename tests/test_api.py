"""HTTP tests for captcha and auth endpoints."""

from __future__ import annotations

import logging

import pytest

from backend.app.models.slider_challenge import SliderChallenge


async def _target_x(session_factory, captcha_id: str) -> int:
    async with session_factory() as session:
        challenge = await session.get(SliderChallenge, captcha_id)
        return challenge.target_x


async def _solve(client, session_factory) -> str:
    generated = (await client.get("/api/captcha/generate")).json()
    x = await _target_x(session_factory, generated["captchaId"])
    resp = await client.post(
        "/api/captcha/verify", json={"captchaId": generated["captchaId"], "x": x}
    )
    body = resp.json()
    assert body["success"] is True
    return body["captchaToken"]


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_generate_response_shape(client):
    resp = await client.get("/api/captcha/generate")
    assert resp.status_code == 200

    body = resp.json()
    assert set(body) == {"captchaId", "bgImage", "pieceImage", "y"}
    assert body["bgImage"].startswith("data:image/png;base64,")
    assert isinstance(body["y"], int)


@pytest.mark.asyncio
async def test_generate_unknown_scope_is_rejected(client):
    resp = await client.get("/api/captcha/generate", params={"scope": "payment"})
    assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"x": 100},
        {"captchaId": "not-hex", "x": 100},
        {"captchaId": "a" * 32},
        {"captchaId": "a" * 32, "x": -3},
        {"captchaId": "a" * 32, "x": "far"},
    ],
)
async def test_verify_rejects_malformed_requests(client, payload):
    resp = await client.post("/api/captcha/verify", json=payload)
    assert resp.status_code == 400
    assert "detail" in resp.json()


@pytest.mark.asyncio
async def test_verify_unknown_challenge(client):
    resp = await client.post("/api/captcha/verify", json={"captchaId": "a" * 32, "x": 100})
    assert resp.status_code == 200
    assert resp.json() == {"success": False, "msg": "验证码已过期，请重新获取"}


@pytest.mark.asyncio
async def test_verify_mismatch_reveals_nothing(client, session_factory):
    generated = (await client.get("/api/captcha/generate")).json()
    x = await _target_x(session_factory, generated["captchaId"])

    resp = await client.post(
        "/api/captcha/verify", json={"captchaId": generated["captchaId"], "x": x + 30}
    )
    assert resp.json() == {"success": False, "msg": "验证失败，请重试"}


@pytest.mark.asyncio
async def test_register_consumes_token_once(client, session_factory):
    token = await _solve(client, session_factory)

    resp = await client.post(
        "/api/auth/register",
        json={"username": "alice", "password": "secret123", "captchaToken": token},
    )
    assert resp.status_code == 201
    assert resp.json() == {"msg": "注册成功！请登录"}

    replay = await client.post(
        "/api/auth/register",
        json={"username": "mallory", "password": "secret123", "captchaToken": token},
    )
    assert replay.status_code == 400
    assert replay.json()["detail"] == "人机验证未通过或已失效，请重新验证"


@pytest.mark.asyncio
async def test_register_requires_valid_token(client):
    resp = await client.post(
        "/api/auth/register",
        json={"username": "bob", "password": "secret123", "captchaToken": "forged"},
    )
    assert resp.status_code == 400

    missing = await client.post(
        "/api/auth/register", json={"username": "bob", "password": "secret123"}
    )
    assert missing.status_code == 400
    assert missing.json() == {"detail": "请填写人机验证凭证"}


@pytest.mark.asyncio
async def test_register_duplicate_username(client, session_factory):
    payload = {"username": "carol", "password": "secret123", "role": "merchant"}
    first = await client.post(
        "/api/auth/register",
        json={**payload, "captchaToken": await _solve(client, session_factory)},
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/auth/register",
        json={**payload, "captchaToken": await _solve(client, session_factory)},
    )
    assert second.status_code == 400
    assert second.json()["detail"] == "该账号已被注册"


@pytest.mark.asyncio
async def test_register_cannot_create_admin(client, session_factory):
    resp = await client.post(
        "/api/auth/register",
        json={
            "username": "eve",
            "password": "secret123",
            "role": "admin",
            "captchaToken": await _solve(client, session_factory),
        },
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_login_and_me(client, session_factory):
    token = await _solve(client, session_factory)
    await client.post(
        "/api/auth/register",
        json={"username": "dave", "password": "secret123", "captchaToken": token},
    )

    wrong = await client.post("/api/auth/login", json={"username": "dave", "password": "nope"})
    assert wrong.status_code == 400
    assert wrong.json()["detail"] == "密码错误"

    login = await client.post(
        "/api/auth/login", json={"username": "dave", "password": "secret123"}
    )
    assert login.status_code == 200
    access_token = login.json()["token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {access_token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "dave"
    assert me.json()["role"] == "user"

    # 人机验证凭证不能当作登录令牌使用
    other = await client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {await _solve(client, session_factory)}"},
    )
    assert other.status_code == 401


class _UnreachableEngine:
    def connect(self):
        raise ConnectionRefusedError("database down")


@pytest.mark.asyncio
async def test_detailed_health_reports_database_outage(client, monkeypatch, caplog):
    monkeypatch.setattr("backend.app.core.database.engine", _UnreachableEngine())

    with caplog.at_level(logging.ERROR, logger="backend.app.main"):
        resp = await client.get("/health/detailed")

    assert resp.status_code == 200
    assert resp.json()["database"] == "disconnected"
    assert resp.json()["status"] == "unhealthy"
    record = next(r for r in caplog.records if r.name == "backend.app.main")
    assert record.msg == "数据库连接失败: %s"
    assert isinstance(record.args[0], ConnectionRefusedError)
