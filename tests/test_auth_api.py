"""
Auth chain: token extraction, verification, user lookup and role gate.
"""
from datetime import timedelta

import pytest
from bson import ObjectId

from security import create_access_token
from tests.utils import COURSE_BODY, auth, register

pytestmark = pytest.mark.anyio


async def test_missing_token(client):
    r = await client.post("/api/courses", json=COURSE_BODY)
    assert r.status_code == 401
    assert r.json() == {"message": "Not authorized, no token"}


async def test_non_bearer_header_counts_as_missing(client):
    r = await client.post("/api/courses", json=COURSE_BODY, headers={"Authorization": "Basic abc"})
    assert r.status_code == 401
    assert r.json()["message"] == "Not authorized, no token"


async def test_garbage_token(client):
    r = await client.post("/api/courses", json=COURSE_BODY, headers=auth("garbage"))
    assert r.status_code == 401
    assert r.json()["message"] == "Not authorized, token failed"


async def test_expired_token(client):
    body = await register(client, "inst@example.com", role="instructor")
    token = create_access_token(body["id"], expires_delta=timedelta(seconds=-5))
    r = await client.post("/api/courses", json=COURSE_BODY, headers=auth(token))
    assert r.status_code == 401
    assert r.json()["message"] == "Not authorized, token failed"


async def test_token_for_unknown_user(client):
    token = create_access_token(str(ObjectId()))
    r = await client.get("/api/users/profile", headers=auth(token))
    assert r.status_code == 401
    assert r.json()["message"] == "Not authorized, user not found"


async def test_student_cannot_create_course(client):
    body = await register(client, "stu@example.com")
    r = await client.post("/api/courses", json=COURSE_BODY, headers=auth(body["token"]))
    assert r.status_code == 403
    assert r.json()["message"] == "User role student is not authorized to access this route"


async def test_admin_can_create_course(client):
    body = await register(client, "boss@example.com", role="admin")
    r = await client.post("/api/courses", json=COURSE_BODY, headers=auth(body["token"]))
    assert r.status_code == 201
