"""Auth API routes: login, logout, current user, signup, password change."""
from __future__ import annotations

import logging
import re
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import selectinload

from marketplace.models import Restaurant, User
from marketplace.models.base import async_session_factory
from marketplace.roles import RESTAURATOR_PERMISSIONS, Role, join_permissions
from web.auth import (
    SessionUser,
    authenticate,
    bootstrap_initial_admin,
    get_session_user,
    get_user_by_email,
    hash_password,
    require_user,
    session_user_for,
    verify_password,
)
from web.api.utils import ApiModel, RestaurantBrief, RestaurantOut, UserOut, ok
from web.errors import AuthError, PermissionDenied, ValidationError
from web.session import session_store

logger = logging.getLogger("mnufood.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_SIGNUP_PASSWORD = 6
MIN_NEW_PASSWORD = 8


class LoginRequest(ApiModel):
    email: Optional[str] = None
    password: Optional[str] = None


class SignupUser(ApiModel):
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    password: str


class SignupRestaurant(ApiModel):
    name: str
    address: str
    phone: Optional[str] = None
    description: Optional[str] = None


class SignupRequest(ApiModel):
    type: Literal["admin", "restaurant"]
    user: SignupUser
    restaurant: Optional[SignupRestaurant] = None


class ChangePasswordRequest(ApiModel):
    current_password: str
    new_password: str


def _session_payload(user: User, session_user: SessionUser) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "restaurantId": user.restaurant_id,
        "permissions": list(session_user.permissions),
        "mustChangePassword": user.must_change_password,
    }


def _require_credentials(body: LoginRequest) -> tuple[str, str]:
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")
    return body.email.strip().lower(), body.password


@router.post("/login")
async def login(body: LoginRequest, response: Response):
    """Staff sign-in. Sets the session cookie and returns the token."""
    email, password = _require_credentials(body)
    async with async_session_factory() as session:
        user = await get_user_by_email(session, email)
        if user is None:
            user = await bootstrap_initial_admin(session, email, password)
        if user is not None and user.role is Role.CUSTOMER:
            raise PermissionDenied("Customer accounts cannot sign in here")
        user = await authenticate(session, email, password)
        session_user = session_user_for(user)
    token = session_store.save(response, session_user)
    logger.info("User %s signed in as %s", user.id, user.role.value)
    return ok({"user": _session_payload(user, session_user), "token": token})


@router.post("/restaurant-login")
async def restaurant_login(body: LoginRequest, response: Response):
    """Restaurant manager sign-in. Flags accounts that still use a temporary password."""
    email, password = _require_credentials(body)
    async with async_session_factory() as session:
        user = await get_user_by_email(session, email)
        if user is not None and user.role is not Role.RESTAURATOR:
            raise PermissionDenied("Restaurant manager account required")
        user = await authenticate(session, email, password)
        restaurant = await session.get(Restaurant, user.restaurant_id) if user.restaurant_id else None
        session_user = session_user_for(user)
    token = session_store.save(response, session_user)
    data = {
        "user": _session_payload(user, session_user),
        "restaurant": RestaurantOut.model_validate(restaurant) if restaurant else None,
        "token": token,
        "requiresPasswordChange": user.must_change_password,
    }
    if user.must_change_password:
        return ok(data, "Temporary password detected. Please change it.")
    return ok(data)


@router.post("/logout")
async def logout(response: Response):
    session_store.clear(response)
    return ok(None, "Signed out")


@router.get("/me")
async def get_me(current: SessionUser = Depends(require_user)):
    """Current user, re-read from the database."""
    async with async_session_factory() as session:
        user = await session.get(User, current.id, options=[selectinload(User.restaurant)])
        if not user or not user.is_active:
            raise AuthError("User not found or deactivated")
        data = _session_payload(user, current)
        data["restaurant"] = RestaurantBrief.model_validate(user.restaurant) if user.restaurant else None
        return ok(data)


@router.post("/signup")
async def signup(body: SignupRequest, current: Optional[SessionUser] = Depends(get_session_user)):
    """Create a restaurant owner with its restaurant, or (admins only) another admin."""
    if body.type == "admin" and (current is None or not current.is_admin):
        raise PermissionDenied("Only administrators can create administrator accounts")
    u = body.user
    email = u.email.strip().lower()
    if not u.first_name.strip() or not u.last_name.strip() or not u.password:
        raise ValidationError("All user fields are required")
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    if len(u.password) < MIN_SIGNUP_PASSWORD:
        raise ValidationError(f"Password must be at least {MIN_SIGNUP_PASSWORD} characters")
    if body.type == "restaurant" and (
        body.restaurant is None or not body.restaurant.name.strip() or not body.restaurant.address.strip()
    ):
        raise ValidationError("Restaurant details are required")

    async with async_session_factory() as session:
        if await get_user_by_email(session, email):
            raise ValidationError("An account with this email already exists")
        user = User(
            name=f"{u.first_name.strip()} {u.last_name.strip()}",
            email=email,
            phone=u.phone or None,
            password_hash=hash_password(u.password),
            role=Role.ADMIN if body.type == "admin" else Role.RESTAURATOR,
            permissions=None if body.type == "admin" else join_permissions(RESTAURATOR_PERMISSIONS),
            is_active=True,
        )
        restaurant = None
        if body.type == "restaurant":
            r = body.restaurant
            restaurant = Restaurant(
                name=r.name.strip(),
                address=r.address.strip(),
                phone=r.phone or None,
                description=r.description or None,
                is_active=True,
            )
            session.add(restaurant)
            await session.flush()
            user.restaurant_id = restaurant.id
        session.add(user)
        await session.commit()
        logger.info("Signup: %s account %s created", user.role.value, user.id)
        return ok(
            {
                "user": UserOut.model_validate(user),
                "restaurant": RestaurantOut.model_validate(restaurant) if restaurant else None,
            },
            "Account created",
        )


@router.post("/change-password")
async def change_password(body: ChangePasswordRequest, current: SessionUser = Depends(require_user)):
    if len(body.new_password) < MIN_NEW_PASSWORD:
        raise ValidationError(f"New password must be at least {MIN_NEW_PASSWORD} characters long")
    async with async_session_factory() as session:
        user = await session.get(User, current.id)
        if not user or not user.is_active:
            raise AuthError("User not found or deactivated")
        if not user.password_hash or not verify_password(body.current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        user.password_hash = hash_password(body.new_password)
        user.must_change_password = False
        await session.commit()
    logger.info("User %s changed their password", current.id)
    return ok(None, "Password changed")
