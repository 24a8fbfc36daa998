"""
Auth API Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vidifolio.api.deps import get_identity
from vidifolio.core.auth import Identity
from vidifolio.models import get_db
from vidifolio.services.observability import logger
from vidifolio.services.storage import UserDB


router = APIRouter()


@router.post("/auth/sync")
async def sync_user(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    """Create or refresh the caller's user row from their token claims"""
    user = UserDB.upsert_user(
        db,
        clerk_id=identity.subject,
        email=identity.email,
        full_name=identity.full_name,
    )
    logger.info("user_synced", user_id=user.id)
    return {"user": user.to_dict()}
