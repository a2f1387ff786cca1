# routers/invites.py — Single-use signup invite codes
import secrets
import string
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, require_admin, CurrentUser
from database import get_db_session
from errors import NotFoundError, ValidationError
from models import InviteCode, isoformat_utc, utcnow

logger = logging.getLogger("fourgears.invites")

router = APIRouter(prefix="/api/v1/invites", tags=["Invites"])

CODE_PREFIX = "4G-"
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


class InviteRedeem(BaseModel):
    code: str


def generate_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _invite_out(i: InviteCode) -> dict:
    return {
        "id": i.id,
        "code": i.code,
        "used": bool(i.used),
        "used_by": i.used_by,
        "created_at": isoformat_utc(i.created_at),
        "used_at": isoformat_utc(i.used_at),
    }


@router.get("")
async def list_invites(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    invites = (await db.execute(
        select(InviteCode).order_by(InviteCode.created_at.desc())
    )).scalars().all()
    return {"invites": [_invite_out(i) for i in invites]}


@router.post("", status_code=201)
async def create_invite(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Generate a fresh 4G-XXXXXX code"""
    code = generate_code()
    while (await db.execute(select(InviteCode.id).where(InviteCode.code == code))).first():
        code = generate_code()
    invite = InviteCode(code=code)
    db.add(invite)
    await db.commit()
    return {"invite": _invite_out(invite)}


@router.post("/redeem")
async def redeem_invite(
    data: InviteRedeem,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    code = data.code.strip().upper()
    invite = (await db.execute(
        select(InviteCode).where(InviteCode.code == code)
    )).scalar_one_or_none()
    if not invite:
        raise NotFoundError("Invite code")
    if invite.used:
        raise ValidationError("Invite code already used")

    invite.used = True
    invite.used_by = user.id
    invite.used_at = utcnow()
    await db.commit()
    logger.info(f"Invite {invite.code} redeemed by {user.id}")
    return {"success": True, "invite": _invite_out(invite)}
