"""Like and unlike products or restaurants without an account."""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Query

from marketplace.models import LikeTarget
from marketplace.models.base import async_session_factory
from marketplace.services import likes
from web.api.utils import ApiModel, ok
from web.errors import NotFoundError, ValidationError

router = APIRouter(prefix="/api/likes", tags=["likes"])


class LikeRequest(ApiModel):
    target_type: LikeTarget
    target_id: int
    action: Literal["like", "unlike"]
    user_phone: Optional[str] = None
    user_email: Optional[str] = None
    user_fingerprint: Optional[str] = None


@router.post("")
async def toggle_like(body: LikeRequest):
    if not (body.user_phone or body.user_email or body.user_fingerprint):
        raise ValidationError("A phone, email or fingerprint is required")
    async with async_session_factory() as session:
        try:
            liked, changed = await likes.set_like(
                session,
                body.target_type,
                body.target_id,
                body.action == "like",
                phone=body.user_phone,
                email=body.user_email,
                fingerprint=body.user_fingerprint,
            )
        except ValueError as e:
            raise NotFoundError(str(e))
        await session.commit()
    if body.action == "like":
        message = "Like added" if changed else "Already liked"
    else:
        message = "Like removed" if changed else "Not liked yet"
    return ok({"liked": liked}, message, liked=liked)


@router.get("")
async def like_status(
    target_type: LikeTarget = Query(..., alias="targetType"),
    target_id: int = Query(..., alias="targetId"),
    user_phone: Optional[str] = Query(None, alias="userPhone"),
    user_email: Optional[str] = Query(None, alias="userEmail"),
    user_fingerprint: Optional[str] = Query(None, alias="userFingerprint"),
):
    if not (user_phone or user_email or user_fingerprint):
        raise ValidationError("A phone, email or fingerprint is required")
    async with async_session_factory() as session:
        like = await likes.find_like(session, target_type, target_id, user_phone, user_email, user_fingerprint)
    return ok({"liked": like is not None}, liked=like is not None)
