"""
Users API: registration, login and profile.
"""
import pytest

from tests.utils import auth, register

pytestmark = pytest.mark.anyio


async def test_register_returns_summary_with_usable_token(client):
    body = await register(client, "ada@example.com")
    assert set(body) == {"id", "email", "firstName", "lastName", "role", "token"}
    assert body["role"] == "student"

    r = await client.get("/api/users/profile", headers=auth(body["token"]))
    assert r.status_code == 200
    assert r.json()["email"] == "ada@example.com"


async def test_register_duplicate_email_fails(client):
    await register(client, "ada@example.com")
    r = await client.post(
        "/api/users/register",
        json={"email": "ADA@example.com", "password": "other", "firstName": "A", "lastName": "B"},
    )
    assert r.status_code == 400
    assert r.json() == {"message": "User already exists"}


async def test_register_missing_fields_is_validation_error(client):
    r = await client.post("/api/users/register", json={"email": "ada@example.com"})
    assert r.status_code == 400
    assert "message" in r.json()


async def test_register_unknown_role_rejected(client):
    r = await client.post(
        "/api/users/register",
        json={"email": "x@example.com", "password": "p", "firstName": "A", "lastName": "B", "role": "root"},
    )
    assert r.status_code == 400


async def test_register_as_admin_is_allowed(client):
    body = await register(client, "boss@example.com", role="admin")
    assert body["role"] == "admin"


async def test_password_is_stored_hashed(client, db):
    await register(client, "ada@example.com", password="secret123")
    stored = await db["user"].find_one({"email": "ada@example.com"})
    assert stored["password"] != "secret123"
    assert stored["password"].startswith("$2")


async def test_login_returns_token(client):
    await register(client, "ada@example.com", password="secret123")
    r = await client.post("/api/users/login", json={"email": "Ada@Example.com", "password": "secret123"})
    assert r.status_code == 200
    assert r.json()["token"]


async def test_login_failures_are_indistinguishable(client):
    await register(client, "ada@example.com", password="secret123")
    wrong_password = await client.post("/api/users/login", json={"email": "ada@example.com", "password": "nope"})
    unknown_email = await client.post("/api/users/login", json={"email": "who@example.com", "password": "secret123"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"message": "Invalid email or password"}


async def test_profile_never_includes_password(client):
    body = await register(client, "ada@example.com")
    r = await client.get("/api/users/profile", headers=auth(body["token"]))
    profile = r.json()
    assert "password" not in profile
    assert profile["id"] == body["id"]
    assert profile["firstName"] == "Ada"


async def test_profile_requires_token(client):
    r = await client.get("/api/users/profile")
    assert r.status_code == 401


async def test_update_profile_is_partial(client):
    body = await register(client, "ada@example.com")
    r = await client.put("/api/users/profile", json={"lastName": "Lovelace"}, headers=auth(body["token"]))
    assert r.status_code == 200
    updated = r.json()
    assert updated["lastName"] == "Lovelace"
    assert updated["firstName"] == "Ada"
    assert updated["email"] == "ada@example.com"
    assert updated["token"]
    assert "password" not in updated


async def test_update_profile_rehashes_new_password(client, db):
    body = await register(client, "ada@example.com", password="secret123")
    r = await client.put("/api/users/profile", json={"password": "newpass456"}, headers=auth(body["token"]))
    assert r.status_code == 200

    stored = await db["user"].find_one({"email": "ada@example.com"})
    assert stored["password"] != "newpass456"

    old = await client.post("/api/users/login", json={"email": "ada@example.com", "password": "secret123"})
    new = await client.post("/api/users/login", json={"email": "ada@example.com", "password": "newpass456"})
    assert old.status_code == 401
    assert new.status_code == 200


async def test_update_profile_cannot_change_role(client):
    body = await register(client, "ada@example.com")
    r = await client.put("/api/users/profile", json={"role": "admin"}, headers=auth(body["token"]))
    assert r.status_code == 200
    assert r.json()["role"] == "student"


async def test_update_profile_to_taken_email_fails(client):
    await register(client, "taken@example.com")
    body = await register(client, "ada@example.com")
    r = await client.put("/api/users/profile", json={"email": "taken@example.com"}, headers=auth(body["token"]))
    assert r.status_code == 400
    assert r.json()["message"] == "User already exists"


@pytest.mark.parametrize("role", [None, ""])
async def test_register_unspecified_role_defaults_to_student(client, role):
    r = await client.post(
        "/api/users/register",
        json={"email": "x@example.com", "password": "p", "firstName": "A", "lastName": "B", "role": role},
    )
    assert r.status_code == 201
    assert r.json()["role"] == "student"
