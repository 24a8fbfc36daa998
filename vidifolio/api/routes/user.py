"""
User Credit API Routes
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vidifolio.api.deps import get_current_user
from vidifolio.models import get_db
from vidifolio.models.user import UserModel
from vidifolio.services.observability import logger
from vidifolio.services.storage import UserDB


router = APIRouter()


class CreditUpdateRequest(BaseModel):
    """New credit balance"""

    credits: int = Field(..., ge=0, strict=True)


@router.get("/user/credit")
async def get_credit(user: UserModel = Depends(get_current_user)):
    return {"credits": user.credits}


@router.patch("/user/credit")
async def update_credit(
    request: CreditUpdateRequest,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_user),
):
    """Set the caller's credit balance"""
    updated = UserDB.update_credits(db, user.clerk_id, request.credits)
    logger.info("credits_updated", user_id=user.id, credits=updated.credits)
    return {"credits": updated.credits}
