import pytest
from conftest import strong_pass, url_prefix


@pytest.mark.asyncio
async def test_signup(ac_client):
    payload = {"email": "New.Seller@Example.com", "password": strong_pass, "name": "new seller"}
    resp = await ac_client.post(f"{url_prefix}/auth/signup", json=payload)

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["message"] == "User created successfully."
    assert len(data["user_public_id"]) == 36


@pytest.mark.asyncio
async def test_signup_duplicate_email(ac_client, make_user):
    _, email, _ = await make_user()
    resp = await ac_client.post(f"{url_prefix}/auth/signup", json={"email": email.upper(), "password": strong_pass})
    assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "NoDigitsHere!", "NoSpecial123"])
async def test_signup_weak_password(ac_client, password):
    resp = await ac_client.post(f"{url_prefix}/auth/signup", json={"email": "weak@example.com", "password": password})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_signup_invalid_email(ac_client):
    resp = await ac_client.post(f"{url_prefix}/auth/signup", json={"email": "nope", "password": strong_pass})
    assert resp.status_code == 400
