"""
Signed download endpoint for order attachments
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging

from labflow.config import settings
from labflow.services.storage import OrderFileStorage, get_storage
from labflow.utils.error_handler import StorageError

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

router = APIRouter()


@router.get("/{token}")
@limiter.limit("120/minute")
async def download_file(
    request: Request,
    token: str,
    storage: OrderFileStorage = Depends(get_storage)
):
    """Serve the file a signed URL points to while its token is valid"""
    try:
        path = storage.verify_signed_token(token)
        target = storage.open_path(path)
    except StorageError as e:
        logger.warning(f"Rejected file download: {e.message}")
        raise HTTPException(status_code=403, detail=e.message)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(target, media_type=storage.content_type(path), filename=target.name)
