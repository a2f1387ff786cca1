# routers/quotes.py — Project quotes: admin pricing and customer response
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, require_admin, CurrentUser
from database import get_db_session
from errors import NotFoundError, ValidationError
from models import (
    AppProject, KanbanProject, KanbanTask, ProjectQuote, QuoteStatus, SubmissionRequest, isoformat_utc,
)
from quoting import calculate_quote

logger = logging.getLogger("fourgears.quotes")

router = APIRouter(prefix="/api/v1", tags=["Quotes"])


# ============================================================
# SCHEMAS
# ============================================================

class QuoteSave(BaseModel):
    total_amount: Optional[float] = Field(None, ge=0)
    hypothetical_market_price: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    status: Optional[QuoteStatus] = None


class QuoteResponse(BaseModel):
    status: QuoteStatus


def _quote_out(q: Optional[ProjectQuote]) -> Optional[dict]:
    if q is None:
        return None
    return {
        "id": q.id,
        "project_id": q.project_id,
        "submission_id": q.submission_id,
        "total_amount": q.total_amount,
        "hypothetical_market_price": q.hypothetical_market_price,
        "notes": q.notes,
        "status": q.status.value,
        "created_at": isoformat_utc(q.created_at),
        "updated_at": isoformat_utc(q.updated_at),
    }


async def _get_quote(project_id: str, db: AsyncSession) -> Optional[ProjectQuote]:
    result = await db.execute(select(ProjectQuote).where(ProjectQuote.project_id == project_id))
    return result.scalar_one_or_none()


async def _get_kanban_project(project_id: str, db: AsyncSession) -> KanbanProject:
    project = await db.get(KanbanProject, project_id)
    if not project:
        raise NotFoundError("Project")
    return project


async def _customer_quote(app_project_id: str, user: CurrentUser, db: AsyncSession) -> Optional[ProjectQuote]:
    """Latest submission of the app project → its Kanban project → quote shown to the customer"""
    app_project = await db.get(AppProject, app_project_id)
    if not app_project or (app_project.user_id != user.id and not user.is_admin):
        raise NotFoundError("Project")

    submission_id = (await db.execute(
        select(SubmissionRequest.id)
        .where(SubmissionRequest.project_id == app_project_id)
        .order_by(SubmissionRequest.created_at.desc())
        .limit(1)
    )).scalar_one_or_none()
    if not submission_id:
        return None

    result = await db.execute(
        select(ProjectQuote)
        .join(KanbanProject, KanbanProject.id == ProjectQuote.project_id)
        .where(
            KanbanProject.submission_id == submission_id,
            ProjectQuote.status != QuoteStatus.DRAFT,
        )
        .order_by(ProjectQuote.updated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# ============================================================
# ADMIN
# ============================================================

@router.get("/kanban/projects/{project_id}/quote")
async def get_project_quote(
    project_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Saved quote (if any) plus a fresh price analysis from the project's tasks"""
    await _get_kanban_project(project_id, db)
    tasks = (await db.execute(
        select(KanbanTask).where(KanbanTask.project_id == project_id)
    )).scalars().all()
    quote = await _get_quote(project_id, db)
    analysis = calculate_quote(tasks, quote)
    return {"quote": _quote_out(quote), "analysis": analysis.to_dict()}


@router.post("/kanban/projects/{project_id}/quote")
async def save_project_quote(
    project_id: str,
    data: QuoteSave,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Create or replace the project's single quote.

    Every field takes the request's value; status falls back to draft and a
    missing market price is recomputed from the project's tasks.
    """
    project = await _get_kanban_project(project_id, db)
    quote = await _get_quote(project_id, db)

    market_price = data.hypothetical_market_price
    if market_price is None:
        tasks = (await db.execute(
            select(KanbanTask).where(KanbanTask.project_id == project_id)
        )).scalars().all()
        market_price = calculate_quote(tasks, quote).market_price

    if quote is None:
        quote = ProjectQuote(project_id=project_id, submission_id=project.submission_id)
        db.add(quote)

    quote.total_amount = data.total_amount
    quote.hypothetical_market_price = market_price
    quote.notes = data.notes
    quote.status = data.status or QuoteStatus.DRAFT

    await db.commit()
    logger.info(f"Saved quote for project {project_id} (status={quote.status.value})")
    return {"quote": _quote_out(quote)}


# ============================================================
# CUSTOMER
# ============================================================

@router.get("/projects/{app_project_id}/quote")
async def get_customer_quote(
    app_project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    quote = await _customer_quote(app_project_id, user, db)
    return {"quote": _quote_out(quote)}


@router.post("/projects/{app_project_id}/quote/respond")
async def respond_to_quote(
    app_project_id: str,
    data: QuoteResponse,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Accept or reject the quote that was sent for the app project"""
    if data.status not in (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED):
        raise ValidationError("Status must be 'accepted' or 'rejected'")

    quote = await _customer_quote(app_project_id, user, db)
    if quote is None:
        raise NotFoundError("Quote")

    quote.status = data.status
    await db.commit()
    logger.info(f"Quote {quote.id} {data.status.value} by {user.id}")
    return {"success": True, "quote": _quote_out(quote)}
