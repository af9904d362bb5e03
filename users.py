"""User accounts: registration, credential checks and profile updates."""

import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import USERS, create_document, to_object_id, to_str_id, utcnow
from errors import Conflict, NotFound, Unauthorized
from schemas import UserCreate, UserUpdate
from security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

PUBLIC_PROJECTION = {"password": 0}


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    user = to_str_id(doc)
    user.pop("password", None)
    return user


async def find_by_email(db: AsyncIOMotorDatabase, email: str) -> Optional[Dict[str, Any]]:
    return await db[USERS].find_one({"email": email.strip().lower()})


async def register(db: AsyncIOMotorDatabase, user_in: UserCreate) -> Dict[str, Any]:
    if await find_by_email(db, user_in.email):
        raise Conflict("User already exists")
    user_doc = {
        "email": user_in.email,
        "password": get_password_hash(user_in.password),
        "first_name": user_in.first_name,
        "last_name": user_in.last_name,
        "role": user_in.role.value,
    }
    try:
        created = await create_document(db, USERS, user_doc)
    except DuplicateKeyError:
        raise Conflict("User already exists")
    logger.info("Registered user %s as %s", created["_id"], user_doc["role"])
    return public_user(created)


async def verify_credentials(db: AsyncIOMotorDatabase, email: str, password: str) -> Dict[str, Any]:
    user = await find_by_email(db, email)
    if not verify_password(password, user.get("password") if user else None):
        logger.info("Failed login for %s", email)
        raise Unauthorized("Invalid email or password")
    return public_user(user)


async def get_profile(db: AsyncIOMotorDatabase, user_id: str) -> Dict[str, Any]:
    user = await db[USERS].find_one({"_id": to_object_id(user_id)}, PUBLIC_PROJECTION)
    if not user:
        raise NotFound("User not found")
    return public_user(user)


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, changes: UserUpdate) -> Dict[str, Any]:
    oid = to_object_id(user_id)
    current = await db[USERS].find_one({"_id": oid}, PUBLIC_PROJECTION)
    if not current:
        raise NotFound("User not found")

    # Empty values keep what is stored.
    updates = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v}
    if "password" in updates:
        updates["password"] = get_password_hash(updates["password"])
    if "email" in updates and updates["email"] != current["email"]:
        if await find_by_email(db, updates["email"]):
            raise Conflict("User already exists")
    updates["updated_at"] = utcnow()

    try:
        updated = await db[USERS].find_one_and_update(
            {"_id": oid},
            {"$set": updates},
            projection=PUBLIC_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise Conflict("User already exists")
    if not updated:
        raise NotFound("User not found")
    return public_user(updated)
