"""Bearer JWT authentication and the per-request permission context."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from halaqa.config import get_settings
from halaqa.database import get_db
from halaqa.exceptions import AuthenticationError, AuthorizationError
from halaqa.logging_config import bind_request_context, get_logger
from halaqa.models import Profile
from halaqa.permissions import PermissionContext, Role
from halaqa.repositories.people import PeopleRepository

logger = get_logger(__name__)


def create_access_token(user_id: str | UUID, expires_minutes: int | None = None) -> str:
    """Create a JWT access token for a profile."""
    settings = get_settings()
    minutes = expires_minutes or settings.jwt_access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": str(user_id), "exp": expire, "type": "access"}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and validate a JWT token. Raises AuthenticationError on failure."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid Authorization header")
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        raise AuthenticationError("Empty token")
    return token


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """
    FastAPI dependency: resolve the Bearer JWT to an active profile.

    401 for a missing, invalid or expired token or an unknown profile;
    403 for a suspended profile.
    """
    payload = decode_jwt(_bearer_token(request))
    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")
    try:
        user_id = UUID(payload["sub"])
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token subject")

    profile = await PeopleRepository(db).get_profile(user_id)
    if profile is None:
        raise AuthenticationError("User not found")
    if profile.status != "active":
        raise AuthorizationError("access", "account")

    bind_request_context(
        request_id=getattr(request.state, "request_id", "-"),
        user_id=str(profile.id),
        school_id=str(profile.school_id),
    )
    return profile


async def build_permission_context(people: PeopleRepository, profile: Profile) -> PermissionContext:
    """Resolve the teacher/student/parent identities a profile holds."""
    role = Role(profile.role)
    teacher_id = student_id = None
    class_ids: frozenset[UUID] = frozenset()
    child_student_ids: frozenset[UUID] = frozenset()

    if role is Role.teacher:
        teacher_id = await people.teacher_id_for_user(profile.id)
        if teacher_id is not None:
            class_ids = await people.class_ids_for_teacher(teacher_id)
    elif role is Role.student:
        student_id = await people.student_id_for_user(profile.id)
    elif role is Role.parent:
        child_student_ids = await people.child_student_ids(profile.id)

    return PermissionContext(
        user_id=profile.id,
        role=role,
        school_id=profile.school_id,
        teacher_id=teacher_id,
        student_id=student_id,
        class_ids=class_ids,
        child_student_ids=child_student_ids,
    )


async def get_permission_context(
    profile: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PermissionContext:
    """FastAPI dependency: the caller's ``PermissionContext``."""
    return await build_permission_context(PeopleRepository(db), profile)
