import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub.auth.models import User
from schoolhub.auth.schemas import (
    AccessTokenResponse,
    ChangePasswordRequest,
    CurrentUser,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RegisterRequest,
    UserInfo,
)
from schoolhub.auth.security import hash_password, verify_password
from schoolhub.auth.tokens import TokenService
from schoolhub.core.enums import Role, TokenType
from schoolhub.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
)
from schoolhub.core.models import School

logger = logging.getLogger(__name__)


def _user_to_info(u: User) -> UserInfo:
    return UserInfo(
        id=u.id,
        email=u.email,
        first_name=u.first_name,
        last_name=u.last_name,
        role=u.role,
        school_id=u.school_id,
        is_active=u.is_active,
        last_login=u.last_login,
        created_at=u.created_at,
    )


async def _get_user(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


async def register_user(db: AsyncSession, payload: RegisterRequest) -> UserInfo:
    email = payload.email.lower()
    existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("User with this email already exists")

    school_id = None
    if payload.role == Role.SCHOOL_ADMIN:
        school = await db.execute(select(School.id).where(School.id == payload.school_id))
        if school.scalar_one_or_none() is None:
            raise NotFoundError("School not found")
        school_id = payload.school_id

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role=payload.role.value,
        school_id=school_id,
        is_active=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("User with this email already exists") from e
    await db.refresh(user)
    logger.info(f"Registered {user.role} {user.email}")
    return _user_to_info(user)


async def login_user(db: AsyncSession, tokens: TokenService, payload: LoginRequest) -> LoginResponse:
    result = await db.execute(select(User).where(func.lower(User.email) == payload.email.lower()))
    user = result.scalar_one_or_none()
    # Same message for unknown email and wrong password
    if not user or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthorizationError("User is inactive")

    access_token = tokens.create_access_token(user.id, Role(user.role), user.school_id)
    refresh_token = tokens.create_refresh_token(user.id, Role(user.role), user.school_id)
    user.refresh_token = refresh_token
    user.last_login = datetime.utcnow()
    await db.commit()

    logger.info(f"User {user.id} logged in")
    return LoginResponse(access_token=access_token, refresh_token=refresh_token, user=_user_to_info(user))


async def logout_user(db: AsyncSession, tokens: TokenService, caller: CurrentUser, access_token: str) -> None:
    await tokens.revoke(access_token)
    user = await _get_user(db, caller.id)
    user.refresh_token = None
    await db.commit()


async def refresh_access_token(db: AsyncSession, tokens: TokenService, refresh_token: str) -> AccessTokenResponse:
    payload = await tokens.verify(refresh_token, expected_type=TokenType.REFRESH)
    caller = tokens.to_current_user(payload)

    result = await db.execute(select(User).where(User.id == caller.id))
    user = result.scalar_one_or_none()
    # Only the most recently issued refresh token is honoured
    if not user or user.refresh_token != refresh_token:
        raise AuthenticationError("Invalid refresh token")
    if not user.is_active:
        raise AuthorizationError("User is inactive")

    access_token = tokens.create_access_token(user.id, Role(user.role), user.school_id)
    return AccessTokenResponse(access_token=access_token)


async def get_profile(db: AsyncSession, caller: CurrentUser) -> UserInfo:
    return _user_to_info(await _get_user(db, caller.id))


async def update_profile(db: AsyncSession, caller: CurrentUser, payload: ProfileUpdate) -> UserInfo:
    user = await _get_user(db, caller.id)
    if payload.first_name is not None:
        user.first_name = payload.first_name.strip()
    if payload.last_name is not None:
        user.last_name = payload.last_name.strip()
    if payload.is_active is not None:
        user.is_active = payload.is_active
    user.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(user)
    return _user_to_info(user)


async def change_password(db: AsyncSession, caller: CurrentUser, payload: ChangePasswordRequest) -> None:
    user = await _get_user(db, caller.id)
    if not verify_password(payload.current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")
    user.password_hash = hash_password(payload.new_password)
    # Existing sessions must log in again to get a new refresh token
    user.refresh_token = None
    user.updated_at = datetime.utcnow()
    await db.commit()
    logger.info(f"User {user.id} changed password")
