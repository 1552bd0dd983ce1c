"""Image upload for staff: stored under UPLOAD_DIR, served from UPLOAD_URL_PREFIX."""
from __future__ import annotations

import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

import config
from marketplace.roles import Role
from web.auth import SessionUser, require_role
from web.api.utils import ok
from web.errors import ValidationError

logger = logging.getLogger("mnufood.api")

router = APIRouter(prefix="/api/upload", tags=["upload"])


@router.post("")
async def upload_image(
    file: UploadFile | None = File(None),
    user: SessionUser = Depends(require_role(Role.ADMIN, Role.RESTAURATOR)),
):
    """Accept one JPEG, PNG, WebP or GIF image up to UPLOAD_MAX_BYTES."""
    if file is None or not file.filename:
        raise ValidationError("No file provided")
    extension = config.UPLOAD_ALLOWED_TYPES.get(file.content_type or "")
    if extension is None:
        raise ValidationError("File type not allowed. Only JPG, PNG, WebP and GIF are accepted.")
    content = await file.read(config.UPLOAD_MAX_BYTES + 1)
    if len(content) > config.UPLOAD_MAX_BYTES:
        raise ValidationError(f"File too large. Maximum size: {config.UPLOAD_MAX_BYTES // (1024 * 1024)}MB")
    if not content:
        raise ValidationError("Empty file")

    filename = f"{uuid.uuid4()}.{extension}"
    upload_dir = Path(config.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    await run_in_threadpool((upload_dir / filename).write_bytes, content)
    logger.info("User %s uploaded %s (%d bytes)", user.id, filename, len(content))
    return ok({
        "url": f"{config.UPLOAD_URL_PREFIX}/{filename}",
        "filename": filename,
        "size": len(content),
        "type": file.content_type,
    })
