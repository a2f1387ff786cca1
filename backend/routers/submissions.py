# routers/submissions.py — Build requests from customers and their admin checklist
import json
import logging
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, require_admin, CurrentUser
from database import get_db_session
from errors import AuthorizationError, GitHubError, NotFoundError, ValidationError
from github_client import GitHubClient
from mirroring import ClientFactory, github_client_factory
from models import (
    AppProject, ChecklistItem, KanbanProject, SubmissionRequest, SubmissionStatus, isoformat_utc,
)
from routers.kanban import create_project_with_columns
from settings_store import get_github_token

logger = logging.getLogger("fourgears.submissions")

router = APIRouter(prefix="/api/v1", tags=["Submissions"])

DEFAULT_PROJECT_NAME = "Nuovo Progetto"
MIN_NOTES_LENGTH = 5


# ============================================================
# SCHEMAS
# ============================================================

class SubmissionCreate(BaseModel):
    project_id: str
    notes: str
    config: Optional[Dict[str, Any]] = None  # Defaults to the project's current config
    test_email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, max_length=32)


class SubmissionUpdate(BaseModel):
    status: SubmissionStatus


class RepositoryCreate(BaseModel):
    repo_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class ChecklistItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)


class ChecklistItemUpdate(BaseModel):
    title: Optional[str] = None
    completed: Optional[bool] = None


def _submission_out(s: SubmissionRequest) -> dict:
    return {
        "id": s.id,
        "user_id": s.user_id,
        "project_id": s.project_id,
        "config": s.config or {},
        "notes": s.notes,
        "test_email": s.test_email,
        "phone_number": s.phone_number,
        "status": s.status.value,
        "github_repo_url": s.github_repo_url,
        "github_repo_name": s.github_repo_name,
        "created_at": isoformat_utc(s.created_at),
        "updated_at": isoformat_utc(s.updated_at),
    }


def _item_out(i: ChecklistItem) -> dict:
    return {
        "id": i.id,
        "submission_id": i.submission_id,
        "title": i.title,
        "completed": bool(i.completed),
        "created_at": isoformat_utc(i.created_at),
        "updated_at": isoformat_utc(i.updated_at),
    }


def project_name_from_config(config: Optional[dict]) -> str:
    """Team name from the builder config, as entered in the identity tab"""
    config = config or {}
    identity = config.get("identity") or {}
    return identity.get("teamName") or config.get("team_name") or DEFAULT_PROJECT_NAME


async def _get_submission(submission_id: str, db: AsyncSession) -> SubmissionRequest:
    submission = await db.get(SubmissionRequest, submission_id)
    if not submission:
        raise NotFoundError("Submission")
    return submission


# ============================================================
# SUBMISSIONS
# ============================================================

@router.post("/submissions", status_code=201)
async def create_submission(
    data: SubmissionCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Submit an app project for review"""
    notes = data.notes.strip()
    if len(notes) < MIN_NOTES_LENGTH:
        raise ValidationError(f"Notes must be at least {MIN_NOTES_LENGTH} characters")

    project = await db.get(AppProject, data.project_id)
    if not project:
        raise NotFoundError("Project")
    if project.user_id != user.id:
        raise AuthorizationError("Unauthorized access to project")

    submission = SubmissionRequest(
        user_id=user.id,
        project_id=project.id,
        config=data.config if data.config is not None else dict(project.config or {}),
        notes=notes,
        test_email=data.test_email,
        phone_number=data.phone_number,
        status=SubmissionStatus.PENDING,
    )
    db.add(submission)
    await db.commit()
    logger.info(f"New submission {submission.id} for project {project.id} by {user.id}")
    return {"success": True, "submission": _submission_out(submission)}


@router.get("/submissions")
async def list_submissions(
    status: Optional[SubmissionStatus] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Admins see every submission; everyone else sees their own"""
    stmt = select(SubmissionRequest).order_by(SubmissionRequest.created_at.desc())
    if not user.is_admin:
        stmt = stmt.where(SubmissionRequest.user_id == user.id)
    if status:
        stmt = stmt.where(SubmissionRequest.status == status)
    submissions = (await db.execute(stmt)).scalars().all()
    return {"submissions": [_submission_out(s) for s in submissions]}


@router.patch("/submissions/{submission_id}")
async def update_submission(
    submission_id: str,
    data: SubmissionUpdate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Change a submission's status. Approving it opens a Kanban project."""
    submission = await _get_submission(submission_id, db)
    submission.status = data.status

    kanban_project_id = None
    if data.status == SubmissionStatus.COMPLETED:
        existing = (await db.execute(
            select(KanbanProject.id).where(KanbanProject.submission_id == submission.id)
        )).scalar_one_or_none()
        if existing:
            kanban_project_id = existing
        else:
            project, _ = await create_project_with_columns(
                db,
                project_name_from_config(submission.config),
                submission.notes,
                submission_id=submission.id,
                github_repo_url=submission.github_repo_url,
                github_repo_name=submission.github_repo_name,
            )
            kanban_project_id = project.id
            logger.info(f"Submission {submission.id} approved, Kanban project {project.id} created")

    await db.commit()
    return {"submission": _submission_out(submission), "kanban_project_id": kanban_project_id}


@router.post("/submissions/{submission_id}/repository")
async def initialize_repository(
    submission_id: str,
    data: RepositoryCreate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    client_factory: ClientFactory = Depends(github_client_factory),
):
    """Create a private repository seeded with the submission's config.json"""
    token = await get_github_token(db)
    if not token:
        raise ValidationError("GitHub PAT is not configured")
    submission = await _get_submission(submission_id, db)

    client: GitHubClient = client_factory(token)
    repo = await client.create_repo(data.repo_name, data.description)

    try:
        await client.put_file(
            repo["full_name"],
            "config.json",
            json.dumps(submission.config or {}, indent=2),
            "Initialize project config",
        )
    except GitHubError as e:
        # The repository exists already; a missing config.json can be pushed by hand
        logger.error(f"Failed to create config.json in {repo['full_name']}: {e}")

    submission.github_repo_url = repo["url"]
    submission.github_repo_name = repo["full_name"]
    submission.status = SubmissionStatus.IN_PROGRESS
    await db.commit()
    return {"success": True, "repo_url": repo["url"], "repo_name": repo["full_name"]}


# ============================================================
# CHECKLIST
# ============================================================

@router.get("/submissions/{submission_id}/checklist")
async def list_checklist(
    submission_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_submission(submission_id, db)
    items = (await db.execute(
        select(ChecklistItem)
        .where(ChecklistItem.submission_id == submission_id)
        .order_by(ChecklistItem.created_at.asc())
    )).scalars().all()
    return {"items": [_item_out(i) for i in items]}


@router.post("/submissions/{submission_id}/checklist", status_code=201)
async def add_checklist_item(
    submission_id: str,
    data: ChecklistItemCreate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_submission(submission_id, db)
    if not data.title.strip():
        raise ValidationError("Title is required")
    item = ChecklistItem(submission_id=submission_id, title=data.title.strip())
    db.add(item)
    await db.commit()
    return {"item": _item_out(item)}


@router.patch("/checklist/{item_id}")
async def update_checklist_item(
    item_id: str,
    data: ChecklistItemUpdate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    item = await db.get(ChecklistItem, item_id)
    if not item:
        raise NotFoundError("Checklist item")
    if data.title is not None:
        if not data.title.strip():
            raise ValidationError("Title is required")
        item.title = data.title.strip()
    if data.completed is not None:
        item.completed = data.completed
    await db.commit()
    return {"item": _item_out(item)}


@router.delete("/checklist/{item_id}")
async def delete_checklist_item(
    item_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    item = await db.get(ChecklistItem, item_id)
    if not item:
        raise NotFoundError("Checklist item")
    await db.delete(item)
    await db.commit()
    return {"success": True}
