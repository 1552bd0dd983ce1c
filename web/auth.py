"""Authentication for the web API: session tokens, password hashing, role and permission gates."""
from __future__ import annotations

import hashlib
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import config
from marketplace.models import User
from marketplace.roles import (
    ADMIN_WILDCARD,
    Role,
    can_access_restaurant,
    has_permission,
    parse_role,
    split_permissions,
)
from web.errors import AuthError, PermissionDenied

logger = logging.getLogger("mnufood.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)
http_bearer = HTTPBearer(auto_error=False)


class InvalidToken(Exception):
    """Token is malformed, tampered with, expired, or carries an unknown role."""


@dataclass(frozen=True)
class SessionUser:
    """Identity carried by the session token."""

    id: int
    email: str
    name: str
    role: Role
    restaurant_id: Optional[int] = None
    permissions: tuple[str, ...] = ()

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.ADMIN, Role.RESTAURATOR)


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(_prepare_password(plain), hashed)


def generate_temporary_password(length: int = 12) -> str:
    alphabet = string.ascii_letters + string.digits + "!@#$%&*"
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if any(c.isdigit() for c in password) and any(c.isalpha() for c in password):
            return password


def effective_permissions(user: User) -> list[str]:
    """Permissions put in the token: base role grants plus an active custom role's list.

    ``user.custom_role`` must already be loaded.
    """
    role = parse_role(user.role)
    if role is Role.ADMIN:
        perms = [ADMIN_WILDCARD]
    elif role is Role.RESTAURATOR:
        perms = split_permissions(user.permissions)
    else:
        perms = []
    custom = user.custom_role
    if custom is not None and custom.is_active:
        for perm in split_permissions(custom.permissions):
            if perm not in perms:
                perms.append(perm)
    return perms


def session_user_for(user: User) -> SessionUser:
    return SessionUser(
        id=user.id,
        email=user.email,
        name=user.name,
        role=parse_role(user.role),
        restaurant_id=user.restaurant_id,
        permissions=tuple(effective_permissions(user)),
    )


def issue_token(user: SessionUser, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else timedelta(days=config.JWT_EXPIRE_DAYS))
    payload = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "restaurantId": user.restaurant_id,
        "permissions": list(user.permissions),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_token(token: str) -> SessionUser:
    """Decode and validate a session token. Raises InvalidToken on any failure."""
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.InvalidTokenError as e:
        raise InvalidToken(str(e)) from e
    try:
        user_id = payload["id"]
        email = payload["email"]
        name = payload["name"]
        role = parse_role(payload["role"])
    except (KeyError, ValueError) as e:
        raise InvalidToken("Malformed token payload") from e
    restaurant_id = payload.get("restaurantId")
    permissions = payload.get("permissions") or []
    if (
        not isinstance(user_id, int)
        or not isinstance(email, str)
        or not isinstance(name, str)
        or (restaurant_id is not None and not isinstance(restaurant_id, int))
        or not isinstance(permissions, list)
        or not all(isinstance(p, str) for p in permissions)
    ):
        raise InvalidToken("Malformed token payload")
    return SessionUser(
        id=user_id,
        email=email,
        name=name,
        role=role,
        restaurant_id=restaurant_id,
        permissions=tuple(permissions),
    )


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(
        select(User)
        .where(func.lower(User.email) == email.strip().lower())
        .options(selectinload(User.custom_role))
    )
    return result.scalar_one_or_none()


async def bootstrap_initial_admin(session: AsyncSession, email: str, password: str) -> Optional[User]:
    """Create the configured initial admin on first login with its credentials."""
    if not config.INITIAL_ADMIN_PASSWORD:
        return None
    if email.strip().lower() != config.INITIAL_ADMIN_EMAIL or password != config.INITIAL_ADMIN_PASSWORD:
        return None
    user = User(
        email=config.INITIAL_ADMIN_EMAIL,
        name="Administrator",
        password_hash=hash_password(config.INITIAL_ADMIN_PASSWORD),
        role=Role.ADMIN,
        is_active=True,
    )
    session.add(user)
    await session.commit()
    logger.info("Initial admin account %s created", user.email)
    return await get_user_by_email(session, user.email)


async def authenticate(session: AsyncSession, email: str, password: str) -> User:
    """Return the active user whose password matches. Raises AuthError otherwise."""
    user = await get_user_by_email(session, email)
    if not user or not user.password_hash or not user.is_active:
        raise AuthError("Invalid email or password")
    if not verify_password(password, user.password_hash):
        raise AuthError("Invalid email or password")
    return user


def token_from_request(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = None) -> Optional[str]:
    """The ``auth-token`` cookie, falling back to ``Authorization: Bearer``."""
    token = request.cookies.get(config.AUTH_COOKIE_NAME)
    if not token and credentials and credentials.credentials:
        token = credentials.credentials
    return token or None


async def get_session_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Optional[SessionUser]:
    """Return the session user from the token, or None if absent or invalid."""
    token = token_from_request(request, credentials)
    if not token:
        return None
    try:
        return verify_token(token)
    except InvalidToken:
        return None


async def require_user(
    user: Optional[SessionUser] = Depends(get_session_user),
) -> SessionUser:
    """Require a valid session. Raises 401 if missing."""
    if not user:
        raise AuthError("Not authenticated", headers={"WWW-Authenticate": "Bearer"})
    return user


async def require_staff(user: SessionUser = Depends(require_user)) -> SessionUser:
    """Dependency: ADMIN or RESTAURATOR."""
    if not user.is_staff:
        raise PermissionDenied("Staff access required")
    return user


async def require_admin_user(user: SessionUser = Depends(require_user)) -> SessionUser:
    """Dependency: require logged-in admin."""
    if not user.is_admin:
        raise PermissionDenied("Admin access required")
    return user


def require_role(*roles: Role):
    """Dependency factory: session role must be one of ``roles``."""
    allowed = frozenset(roles)

    async def dependency(user: SessionUser = Depends(require_user)) -> SessionUser:
        if user.role not in allowed:
            raise PermissionDenied("Insufficient role")
        return user

    return dependency


def check_permission(user: SessionUser, permission: str) -> None:
    if not has_permission(user, permission):
        raise PermissionDenied(f"Missing permission: {permission}")


def require_permission(permission: str):
    """Dependency factory: session must hold ``permission``."""

    async def dependency(user: SessionUser = Depends(require_user)) -> SessionUser:
        check_permission(user, permission)
        return user

    return dependency


def ensure_restaurant_access(user: SessionUser, restaurant_id: int) -> None:
    if not can_access_restaurant(user, restaurant_id):
        raise PermissionDenied("No access to this restaurant")
