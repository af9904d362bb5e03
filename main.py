import logging
from typing import Optional

from fastapi import Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorDatabase

import courses
import users
from auth import get_current_user, require
from config import configure_logging, settings
from database import close_db, ensure_indexes, get_db
from errors import install_handlers
from schemas import (
    Capability,
    CourseCreate,
    CourseList,
    CourseOut,
    CourseUpdate,
    Identity,
    Message,
    ReviewCreate,
    UserCreate,
    UserLogin,
    UserPublic,
    UserSummary,
    UserUpdate,
)
from security import create_access_token

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Learning Platform API")

_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=_cors_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

install_handlers(app)


def user_summary(user: dict) -> UserSummary:
    return UserSummary(
        id=user["id"],
        email=user["email"],
        first_name=user["first_name"],
        last_name=user["last_name"],
        role=user["role"],
        token=create_access_token(user["id"]),
    )


@app.on_event("startup")
async def startup_event():
    await ensure_indexes(get_db())


@app.on_event("shutdown")
async def shutdown_event():
    close_db()


@app.get("/", response_model=Message)
async def root():
    return {"message": "Welcome to the Learning Platform API"}


# Users
@app.post("/api/users/register", response_model=UserSummary, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await users.register(db, user_in)
    return user_summary(user)


@app.post("/api/users/login", response_model=UserSummary)
async def login(credentials: UserLogin, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await users.verify_credentials(db, credentials.email, credentials.password)
    return user_summary(user)


@app.get("/api/users/profile", response_model=UserPublic)
async def get_profile(current_user: Identity = Depends(get_current_user), db: AsyncIOMotorDatabase = Depends(get_db)):
    return await users.get_profile(db, current_user.id)


@app.put("/api/users/profile", response_model=UserSummary)
async def update_profile(
    changes: UserUpdate,
    current_user: Identity = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    user = await users.update_profile(db, current_user.id, changes)
    return user_summary(user)


# Courses
@app.get("/api/courses", response_model=CourseList)
async def list_courses(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await courses.list_courses(db, page, limit)


@app.get("/api/courses/{course_id}", response_model=CourseOut)
async def get_course(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await courses.get_course(db, course_id)


@app.post("/api/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    course_in: CourseCreate,
    current_user: Identity = Depends(require(Capability.MANAGE_COURSES)),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await courses.create_course(db, course_in, current_user.id)


@app.put("/api/courses/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: str,
    changes: CourseUpdate,
    current_user: Identity = Depends(require(Capability.MANAGE_COURSES)),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await courses.update_course(db, course_id, current_user.id, changes)


@app.delete("/api/courses/{course_id}", response_model=Message)
async def delete_course(
    course_id: str,
    current_user: Identity = Depends(require(Capability.MANAGE_COURSES)),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await courses.delete_course(db, course_id, current_user.id)
    return {"message": "Course removed"}


@app.post("/api/courses/{course_id}/reviews", response_model=Message, status_code=status.HTTP_201_CREATED)
async def add_review(
    course_id: str,
    review: ReviewCreate,
    current_user: Identity = Depends(require(Capability.REVIEW_COURSES)),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await courses.add_review(db, course_id, current_user.id, review.rating, review.comment)
    return {"message": "Review added"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT)
