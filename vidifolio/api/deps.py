"""
FastAPI dependencies shared by the routes
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from vidifolio.core.auth import CredentialVerifier, Identity
from vidifolio.models import get_db
from vidifolio.models.user import UserModel
from vidifolio.services.asset_storage import AssetStorage
from vidifolio.services.job_manager import JobManager
from vidifolio.services.storage import UserDB


@lru_cache
def get_verifier() -> CredentialVerifier:
    return CredentialVerifier()


@lru_cache
def get_asset_storage() -> AssetStorage:
    return AssetStorage()


@lru_cache
def get_job_manager() -> JobManager:
    return JobManager(asset_storage=get_asset_storage())


def get_identity(
    authorization: Optional[str] = Header(default=None),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> Identity:
    """Verify the caller's bearer credential"""
    return verifier.verify(authorization)


def get_current_user(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> UserModel:
    """Load the caller's user row, creating it on first sight"""
    user = UserDB.get_by_clerk_id(db, identity.subject)
    if user is None:
        user = UserDB.upsert_user(
            db,
            clerk_id=identity.subject,
            email=identity.email,
            full_name=identity.full_name,
        )
    return user


async def close_job_manager() -> None:
    """Finish inline pipelines and release the shared job manager's clients"""
    if get_job_manager.cache_info().currsize == 0:
        return
    job_manager = get_job_manager()
    get_job_manager.cache_clear()
    await job_manager.shutdown()
