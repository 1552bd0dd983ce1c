"""Anonymous likes on products and restaurants, with counter maintenance."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import Like, LikeTarget, Product, Restaurant

_COUNTED = {
    LikeTarget.PRODUCT: Product,
    LikeTarget.RESTAURANT: Restaurant,
}


def _identity_filter(phone: Optional[str], email: Optional[str], fingerprint: Optional[str]):
    clauses = []
    if phone:
        clauses.append(Like.user_phone == phone)
    if email:
        clauses.append(Like.user_email == email)
    if fingerprint:
        clauses.append(Like.user_fingerprint == fingerprint)
    if not clauses:
        raise ValueError("A phone, email or fingerprint is required")
    return and_(*clauses)


async def find_like(
    session: AsyncSession,
    target: LikeTarget,
    target_id: int,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    fingerprint: Optional[str] = None,
) -> Optional[Like]:
    result = await session.execute(
        select(Like)
        .where(Like.target_type == target, Like.target_id == target_id)
        .where(_identity_filter(phone, email, fingerprint))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def set_like(
    session: AsyncSession,
    target: LikeTarget,
    target_id: int,
    liked: bool,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    fingerprint: Optional[str] = None,
) -> tuple[bool, bool]:
    """Like or unlike a target. Returns ``(liked, changed)``.

    The target's ``likes_count`` moves with the change and never drops below
    zero. Raises ValueError when the target does not exist. Caller commits.
    """
    model = _COUNTED[target]
    if await session.get(model, target_id) is None:
        raise ValueError(f"{target.value.capitalize()} not found")
    existing = await find_like(session, target, target_id, phone, email, fingerprint)
    if liked:
        if existing:
            return True, False
        session.add(Like(
            target_type=target,
            target_id=target_id,
            user_phone=phone or None,
            user_email=email or None,
            user_fingerprint=fingerprint or None,
        ))
        await session.execute(
            update(model).where(model.id == target_id).values(likes_count=model.likes_count + 1)
        )
        return True, True
    if not existing:
        return False, False
    await session.delete(existing)
    await session.execute(
        update(model)
        .where(model.id == target_id, model.likes_count > 0)
        .values(likes_count=model.likes_count - 1)
    )
    return False, True
