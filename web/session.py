"""Cookie-backed session store and the page-route gate for /admin and /restaurant."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

import config
from marketplace.roles import Role
from web.auth import InvalidToken, SessionUser, issue_token, verify_token

logger = logging.getLogger("mnufood.session")

# Page prefix -> role allowed behind it
PROTECTED_PREFIXES = {
    "/admin": Role.ADMIN,
    "/restaurant": Role.RESTAURATOR,
}

LOGIN_PATH = "/login"


class CookieSessionStore:
    """Reads and writes the session token in an HTTP-only cookie."""

    def __init__(self, cookie_name: str = config.AUTH_COOKIE_NAME, max_age_days: int = config.JWT_EXPIRE_DAYS):
        self.cookie_name = cookie_name
        self.max_age = int(timedelta(days=max_age_days).total_seconds())

    def load(self, request: Request) -> Optional[SessionUser]:
        """Session user from the cookie, None without one. Raises InvalidToken."""
        token = request.cookies.get(self.cookie_name)
        if not token:
            return None
        return verify_token(token)

    def save(self, response: Response, user: SessionUser) -> str:
        token = issue_token(user, timedelta(seconds=self.max_age))
        response.set_cookie(
            self.cookie_name,
            token,
            max_age=self.max_age,
            httponly=True,
            secure=config.COOKIE_SECURE,
            samesite="strict",
            path="/",
        )
        return token

    def clear(self, response: Response) -> None:
        response.delete_cookie(
            self.cookie_name,
            path="/",
            httponly=True,
            secure=config.COOKIE_SECURE,
            samesite="strict",
        )


session_store = CookieSessionStore()


def required_role(path: str) -> Optional[Role]:
    """Role guarding ``path``, matched on whole path segments."""
    for prefix, role in PROTECTED_PREFIXES.items():
        if path == prefix or path.startswith(prefix + "/"):
            return role
    return None


def _login_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(f"{LOGIN_PATH}?{urlencode(params)}", status_code=307)


class SessionMiddleware(BaseHTTPMiddleware):
    """Redirect unauthenticated or wrong-role visitors of protected pages to the login page."""

    def __init__(self, app, store: CookieSessionStore = session_store):
        super().__init__(app)
        self.store = store

    async def dispatch(self, request, call_next):
        path = request.url.path
        role = required_role(path)
        if role is None:
            return await call_next(request)
        try:
            user = self.store.load(request)
        except InvalidToken:
            logger.info("Rejected expired or invalid session on %s", path)
            return _login_redirect(redirect=path, error="session-expired")
        if user is None:
            return _login_redirect(redirect=path)
        if user.role is not role:
            logger.info("User %s with role %s denied access to %s", user.id, user.role.value, path)
            return _login_redirect(error="unauthorized")
        request.state.session_user = user
        return await call_next(request)
