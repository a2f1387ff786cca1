# routers/app_projects.py — Customer app projects (visual builder) and monetization tiers
import logging
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from errors import NotFoundError, ValidationError
from models import AppProject, AppTier, isoformat_utc

logger = logging.getLogger("fourgears.app_projects")

router = APIRouter(prefix="/api/v1/projects", tags=["App Projects"])


def default_config() -> Dict[str, Any]:
    """Starting point for a freshly created app"""
    return {
        "team": {
            "name": "Nuovo Team",
            "sportType": "CALCIO",
            "colors": {"primary": "#3b82f6", "secondary": "#1e40af"},
        },
        "theme": {
            "fontFamily": "Inter",
            "borderRadius": "8px",
            "supportLightMode": True,
            "supportDarkMode": True,
            "navigation": [],
        },
        "features": {},
    }


# ============================================================
# SCHEMAS
# ============================================================

class AppProjectCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    config: Optional[Dict[str, Any]] = None


class AppProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    config: Optional[Dict[str, Any]] = None


class TierIn(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    price: float = Field(0, ge=0)
    features: List[str] = Field(default_factory=list)


class TiersReplace(BaseModel):
    tiers: List[TierIn]


def _project_out(p: AppProject) -> dict:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "name": p.name,
        "config": p.config or {},
        "created_at": isoformat_utc(p.created_at),
        "updated_at": isoformat_utc(p.updated_at),
    }


def _tier_out(t: AppTier) -> dict:
    return {
        "id": t.id,
        "project_id": t.project_id,
        "name": t.name,
        "price": t.price,
        "features": t.features or [],
        "position": t.position,
    }


async def _get_owned_project(project_id: str, user: CurrentUser, db: AsyncSession) -> AppProject:
    project = await db.get(AppProject, project_id)
    # Someone else's project is reported as missing
    if not project or (project.user_id != user.id and not user.is_admin):
        raise NotFoundError("Project")
    return project


async def _list_tiers(project_id: str, db: AsyncSession) -> List[AppTier]:
    result = await db.execute(
        select(AppTier).where(AppTier.project_id == project_id).order_by(AppTier.position.asc())
    )
    return list(result.scalars().all())


# ============================================================
# PROJECTS
# ============================================================

@router.get("")
async def list_app_projects(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    projects = (await db.execute(
        select(AppProject)
        .where(AppProject.user_id == user.id)
        .order_by(AppProject.updated_at.desc())
    )).scalars().all()
    return {"projects": [_project_out(p) for p in projects]}


@router.post("", status_code=201)
async def create_app_project(
    data: AppProjectCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    name = (data.name or "").strip()
    if not name:
        count = (await db.execute(
            select(func.count(AppProject.id)).where(AppProject.user_id == user.id)
        )).scalar() or 0
        name = f"Nuovo Progetto {count + 1}"

    project = AppProject(user_id=user.id, name=name, config=data.config if data.config is not None else default_config())
    db.add(project)
    await db.commit()
    logger.info(f"App project {project.id} created by {user.id}")
    return {"project": _project_out(project)}


@router.get("/{project_id}")
async def get_app_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    project = await _get_owned_project(project_id, user, db)
    return {"project": _project_out(project)}


@router.patch("/{project_id}")
async def update_app_project(
    project_id: str,
    data: AppProjectUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    project = await _get_owned_project(project_id, user, db)
    if data.name is not None:
        if not data.name.strip():
            raise ValidationError("Project name is required")
        project.name = data.name.strip()
    if data.config is not None:
        project.config = data.config
    await db.commit()
    return {"project": _project_out(project)}


@router.delete("/{project_id}")
async def delete_app_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    project = await _get_owned_project(project_id, user, db)
    await db.delete(project)
    await db.commit()
    return {"success": True}


# ============================================================
# TIERS
# ============================================================

@router.get("/{project_id}/tiers")
async def list_tiers(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_owned_project(project_id, user, db)
    return {"tiers": [_tier_out(t) for t in await _list_tiers(project_id, db)]}


@router.put("/{project_id}/tiers")
async def replace_tiers(
    project_id: str,
    data: TiersReplace,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Replace the tier list: known ids are updated, new ones inserted, the rest removed.

    List order becomes the tier position.
    """
    await _get_owned_project(project_id, user, db)
    existing = {t.id: t for t in await _list_tiers(project_id, db)}

    kept = set()
    for position, tier_in in enumerate(data.tiers):
        tier = existing.get(tier_in.id) if tier_in.id else None
        if tier is None:
            tier = AppTier(project_id=project_id)
            db.add(tier)
        else:
            kept.add(tier.id)
        tier.name = tier_in.name.strip()
        tier.price = tier_in.price
        tier.features = list(tier_in.features)
        tier.position = position

    for tier_id, tier in existing.items():
        if tier_id not in kept:
            await db.delete(tier)

    await db.commit()
    return {"tiers": [_tier_out(t) for t in await _list_tiers(project_id, db)]}
