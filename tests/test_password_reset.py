import pytest
from sqlalchemy import event
from conftest import cookie_header, other_strong_pass, strong_pass, url_prefix, wrong_code


async def _reset_start(ac_client, email):
    return await ac_client.post(f"{url_prefix}/otp/password-reset/start", json={"email": email})


async def _reset_verify(ac_client, handle, email, code, new_password=other_strong_pass):
    return await ac_client.post(f"{url_prefix}/otp/password-reset/verify",
                                json={"email": email, "code": code, "new_password": new_password},
                                headers=cookie_header("pr_sid", handle))


@pytest.mark.asyncio
async def test_unknown_email_gets_the_same_response(ac_client, app, notifier, make_user):
    _, email, _ = await make_user()

    known = await _reset_start(ac_client, email)
    unknown = await _reset_start(ac_client, "nobody@example.com")
    garbage = await _reset_start(ac_client, "not an email")
    await app.state.otp.dispatcher.drain()

    for resp in (known, unknown, garbage):
        assert resp.status_code == 200
        assert resp.json()["data"] == known.json()["data"]
        assert len(resp.cookies.get("pr_sid")) == 48

    assert [item["destination"] for item in notifier.sent] == [email]


@pytest.mark.asyncio
async def test_reset_rotates_password(ac_client, app, notifier, make_user):
    _, email, _ = await make_user()
    resp = await _reset_start(ac_client, email)
    await app.state.otp.dispatcher.drain()
    handle, code = resp.cookies.get("pr_sid"), notifier.last_code(email)

    resp = await _reset_verify(ac_client, handle, email, code)
    assert resp.status_code == 200
    assert "max-age=0" in resp.headers["set-cookie"].lower()

    old = await ac_client.post(f"{url_prefix}/auth/login", json={"email": email, "password": strong_pass})
    new = await ac_client.post(f"{url_prefix}/auth/login", json={"email": email, "password": other_strong_pass})
    assert old.status_code == 401
    assert new.status_code == 200

    replay = await _reset_verify(ac_client, handle, email, code)
    assert replay.json()["error"]["code"] == "SESSION_INVALID"


@pytest.mark.asyncio
async def test_decoy_handle_never_verifies(ac_client, notifier):
    resp = await _reset_start(ac_client, "ghost@example.com")
    handle = resp.cookies.get("pr_sid")

    resp = await _reset_verify(ac_client, handle, "ghost@example.com", "123456")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "SESSION_INVALID"


@pytest.mark.asyncio
async def test_unknown_email_does_the_same_database_work(ac_client, app, engine, make_user):
    _, email, _ = await make_user()
    statements = []

    def _record_statement(conn, cursor, statement, parameters, context, executemany):
        kind = statement.lstrip().split(None, 1)[0].upper()
        if kind in ("SELECT", "INSERT", "UPDATE", "DELETE"):
            statements.append(kind)

    event.listen(engine.sync_engine, "before_cursor_execute", _record_statement)
    try:
        await _reset_start(ac_client, email)
        known = list(statements)
        statements.clear()

        await _reset_start(ac_client, "nobody@example.com")
        unknown = list(statements)
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", _record_statement)
    await app.state.otp.dispatcher.drain()

    assert "INSERT" in known
    assert unknown == known


@pytest.mark.asyncio
async def test_other_email_does_not_reveal_ownership(ac_client, app, notifier, make_user):
    _, email, _ = await make_user()
    _, other_email, _ = await make_user()
    resp = await _reset_start(ac_client, email)
    await app.state.otp.dispatcher.drain()
    handle, code = resp.cookies.get("pr_sid"), notifier.last_code(email)

    resp = await _reset_verify(ac_client, handle, other_email, code)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "SESSION_INVALID"


@pytest.mark.asyncio
async def test_weak_password_does_not_spend_an_attempt(ac_client, app, notifier, make_user):
    _, email, _ = await make_user()
    resp = await _reset_start(ac_client, email)
    await app.state.otp.dispatcher.drain()
    handle, code = resp.cookies.get("pr_sid"), notifier.last_code(email)

    resp = await _reset_verify(ac_client, handle, email, wrong_code(code), new_password="weak")
    assert resp.status_code == 400
    assert (await app.state.otp.store.get(handle)).attempts == 0


@pytest.mark.asyncio
async def test_reset_code_cannot_verify_email(ac_client, app, notifier, make_user):
    _, email, token = await make_user()
    resp = await _reset_start(ac_client, email)
    await app.state.otp.dispatcher.drain()
    handle, code = resp.cookies.get("pr_sid"), notifier.last_code(email)

    resp = await ac_client.post(f"{url_prefix}/otp/verify", json={"code": code},
                                headers={"Authorization": f"Bearer {token}", **cookie_header("ve_sid", handle)})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "SESSION_INVALID"
