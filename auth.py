"""Request authentication and role/capability checks.

``get_current_user`` resolves the bearer token to an ``Identity``; the
``authorize`` and ``require`` factories build dependencies that additionally
reject identities whose role is not allowed on the route.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from database import USERS, get_db, to_object_id
from errors import AppError, Forbidden, Unauthorized
from schemas import Capability, Identity, Role, roles_with
from security import InvalidToken, decode_access_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authorized, no token")
    try:
        user_id = decode_access_token(credentials.credentials)
        oid = to_object_id(user_id)
    except (InvalidToken, AppError) as exc:
        logger.debug("Rejected token: %s", exc)
        raise Unauthorized("Not authorized, token failed")

    user = await db[USERS].find_one({"_id": oid}, {"password": 0})
    if not user:
        raise Unauthorized("Not authorized, user not found")
    return Identity(
        id=str(user["_id"]),
        email=user["email"],
        first_name=user["first_name"],
        last_name=user["last_name"],
        role=user["role"],
    )


def authorize(*roles: Role):
    allowed = frozenset(Role(r) for r in roles)

    async def dependency(current_user: Identity = Depends(get_current_user)) -> Identity:
        if current_user.role not in allowed:
            raise Forbidden(f"User role {current_user.role.value} is not authorized to access this route")
        return current_user

    return dependency


def require(capability: Capability):
    return authorize(*roles_with(capability))
