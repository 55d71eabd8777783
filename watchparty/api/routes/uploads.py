# watchparty/api/routes/uploads.py

import logging
import time
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from watchparty.api.deps import get_state
from watchparty.core.state import AppState
from watchparty.models.room import UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


@router.post("/upload", response_model=UploadResponse, response_model_by_alias=True)
async def upload(
    request: Request,
    file: Optional[UploadFile] = File(None),
    state: AppState = Depends(get_state),
):
    """
    Store an uploaded media file and return the URL it is served from.

    The file lands in UPLOAD_DIR as "<epoch ms>-<original name>" and is
    served back under /uploads/. The returned URL can be used as the
    locator of a {"kind": "file"} media descriptor.

    Raises:
        HTTPException: 400 if the request has no file
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file")

    # Only the basename; never let a client pick the directory
    filename = f"{int(time.time() * 1000)}-{Path(file.filename).name}"
    destination = Path(state.settings.UPLOAD_DIR) / filename

    contents = await file.read()
    await run_in_threadpool(destination.write_bytes, contents)
    logger.info("📁 Stored upload %s (%d bytes)", filename, len(contents))

    url = str(request.url_for("uploads", path=filename))
    return UploadResponse(url=url, filename=filename)
