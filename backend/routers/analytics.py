# routers/analytics.py — Admin dashboard figures
from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_admin, CurrentUser
from database import get_db_session
from models import (
    AppProject, KanbanProject, Profile, ProjectStatus, SubmissionRequest, SubmissionStatus,
)

router = APIRouter(prefix="/api/v1/admin", tags=["Analytics"])


@router.get("/analytics")
async def get_analytics(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    users = (await db.execute(select(func.count(Profile.id)))).scalar() or 0
    app_projects = (await db.execute(select(func.count(AppProject.id)))).scalar() or 0
    active_boards = (await db.execute(
        select(func.count(KanbanProject.id)).where(KanbanProject.status == ProjectStatus.ACTIVE)
    )).scalar() or 0

    rows = (await db.execute(
        select(SubmissionRequest.status, func.count(SubmissionRequest.id))
        .group_by(SubmissionRequest.status)
    )).all()
    by_status = {s.value: 0 for s in SubmissionStatus}
    for status, count in rows:
        by_status[status.value] = count
    total = sum(by_status.values())

    # Approval rate over decided submissions only
    decided = by_status[SubmissionStatus.COMPLETED.value] + by_status[SubmissionStatus.REJECTED.value]
    approval_rate = round(by_status[SubmissionStatus.COMPLETED.value] / decided * 100, 1) if decided else 0.0

    return {
        "users": users,
        "app_projects": app_projects,
        "active_kanban_projects": active_boards,
        "submissions": {"total": total, "by_status": by_status},
        "approval_rate": approval_rate,
    }
