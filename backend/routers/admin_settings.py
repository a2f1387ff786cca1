# routers/admin_settings.py — Admin configuration (GitHub personal access token)
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_admin, CurrentUser
from database import get_db_session
from errors import ValidationError
from settings_store import GITHUB_PAT_KEY, get_github_token, mask_token, set_setting

logger = logging.getLogger("fourgears.settings")

router = APIRouter(prefix="/api/v1/admin", tags=["Admin Settings"])


class GitConfigUpdate(BaseModel):
    pat: str


@router.get("/git-config")
async def get_git_config(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Whether a GitHub token is stored; only its masked tail is ever returned"""
    token = await get_github_token(db)
    return {"has_pat": bool(token), "masked_pat": mask_token(token)}


@router.post("/git-config")
async def save_git_config(
    data: GitConfigUpdate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    pat = data.pat.strip()
    if not pat:
        raise ValidationError("PAT is required")
    await set_setting(db, GITHUB_PAT_KEY, pat)
    await db.commit()
    logger.info(f"GitHub PAT updated by {user.id}")
    return {"success": True}
