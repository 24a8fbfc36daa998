"""
Portfolio API Routes
"""

import json
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from vidifolio.api.deps import get_asset_storage, get_current_user
from vidifolio.config.constants import DOWNLOAD_CHUNK_SIZE
from vidifolio.config.settings import settings
from vidifolio.core.errors import InvalidArgument, NotFoundOrUnauthorized
from vidifolio.models import get_db
from vidifolio.models.user import UserModel
from vidifolio.services.asset_storage import AssetStorage
from vidifolio.services.observability import logger
from vidifolio.services.storage import PortfolioDB, VideoDB


router = APIRouter()


def _parse_raw_data(raw_data: Optional[str]) -> Optional[Dict[str, Any]]:
    if not raw_data:
        return None
    try:
        parsed = json.loads(raw_data)
    except json.JSONDecodeError:
        raise InvalidArgument("raw_data must be a JSON object")
    if not isinstance(parsed, dict):
        raise InvalidArgument("raw_data must be a JSON object")
    return parsed


async def _iter_upload(upload: UploadFile) -> AsyncIterator[bytes]:
    while True:
        chunk = await upload.read(DOWNLOAD_CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


@router.get("/portfolio")
async def list_portfolios(
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_user),
):
    """List the caller's portfolios, newest first"""
    return [portfolio.to_dict() for portfolio in PortfolioDB.list_portfolios(db, user.id)]


@router.post("/portfolio", status_code=status.HTTP_201_CREATED)
async def create_portfolio(
    title: str = Form(...),
    raw_data: Optional[str] = Form(default=None),
    pdf: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    asset_storage: AssetStorage = Depends(get_asset_storage),
):
    """
    Create a portfolio from a multipart form

    Fields: title (required), raw_data (JSON string), pdf (source document).
    """
    if not title.strip():
        raise InvalidArgument("title is required")
    parsed_raw_data = _parse_raw_data(raw_data)

    pdf_path = None
    if pdf is not None and pdf.filename:
        pdf_path = AssetStorage.build_portfolio_path(user.id, pdf.filename)
        await asset_storage.upload_stream(
            settings.portfolio_bucket,
            pdf_path,
            _iter_upload(pdf),
            upsert=False,
        )

    portfolio = PortfolioDB.create_portfolio(
        db,
        user_id=user.id,
        title=title.strip(),
        pdf_path=pdf_path,
        raw_data=parsed_raw_data,
    )
    logger.info("portfolio_created", portfolio_id=portfolio.id, user_id=user.id, has_pdf=bool(pdf_path))
    return portfolio.to_dict()


@router.delete("/portfolio")
async def delete_portfolio(
    id: Optional[str] = None,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    asset_storage: AssetStorage = Depends(get_asset_storage),
):
    """Delete one of the caller's portfolios and its source document"""
    if not id:
        raise InvalidArgument("Missing id")

    portfolio = PortfolioDB.get_owned(db, id, user.id)
    if not portfolio:
        raise NotFoundOrUnauthorized("Portfolio not found or unauthorized.")

    # Videos keep referencing their source portfolio
    video_count = VideoDB.count_for_portfolio(db, id)
    if video_count:
        raise InvalidArgument(f"Portfolio is used by {video_count} video(s) and cannot be deleted.")

    pdf_path = portfolio.pdf_path
    PortfolioDB.delete_portfolio(db, id, user.id)
    if pdf_path:
        asset_storage.delete(settings.portfolio_bucket, pdf_path)

    logger.info("portfolio_deleted", portfolio_id=id, user_id=user.id)
    return {"message": "Deleted."}
