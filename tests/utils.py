"""Request helpers shared by the API tests."""
import httpx

COURSE_BODY = {
    "title": "Intro to Python",
    "description": "Variables, loops and functions.",
    "category": "Programming",
    "level": "beginner",
    "price": 0,
    "duration": 1,
    "topics": ["syntax", "loops"],
}


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(c: httpx.AsyncClient, email: str, role: str = "student", password: str = "secret123") -> dict:
    r = await c.post(
        "/api/users/register",
        json={"email": email, "password": password, "firstName": "Ada", "lastName": email.split("@")[0], "role": role},
    )
    assert r.status_code == 201, r.text
    return r.json()


async def create_course(c: httpx.AsyncClient, token: str, **overrides) -> dict:
    r = await c.post("/api/courses", json={**COURSE_BODY, **overrides}, headers=auth(token))
    assert r.status_code == 201, r.text
    return r.json()
