"""
Signed Blob Download Route
"""

import os

from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse, JSONResponse

from vidifolio.api.deps import get_asset_storage
from vidifolio.core.errors import BlobStorageError
from vidifolio.services.asset_storage import AssetStorage


router = APIRouter()


@router.get("/blobs/{bucket}/{path:path}")
async def get_blob(
    bucket: str,
    path: str,
    expires: int = 0,
    signature: str = "",
    asset_storage: AssetStorage = Depends(get_asset_storage),
):
    """Serve a blob addressed by a signed, unexpired URL"""
    if not signature or not asset_storage.verify_signature(bucket, path, expires, signature):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": "Invalid or expired signature"},
        )

    try:
        file_path = asset_storage.resolve_path(bucket, path)
    except BlobStorageError:
        file_path = None

    if not file_path or not os.path.isfile(file_path):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Blob not found"},
        )

    return FileResponse(file_path)
