# routers/kanban.py — Delivery Kanban: projects, columns, tasks, labels
import logging
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_admin, CurrentUser
from database import get_db_session
from errors import NotFoundError, ValidationError
from github_client import GitHubClient
from kanban_rules import DEFAULT_COLUMNS, next_position, plan_column_change
from mirroring import ClientFactory, TaskMirror, get_task_mirror, github_client_factory
from models import (
    KanbanProject, KanbanColumn, KanbanTask, KanbanLabel,
    ProjectStatus, TaskPriority, TaskStatus, isoformat_utc, utcnow,
)
from settings_store import get_github_token

logger = logging.getLogger("fourgears.kanban")

router = APIRouter(prefix="/api/v1/kanban", tags=["Kanban"])

TERMINAL_PROJECT_STATUSES = {ProjectStatus.ARCHIVED, ProjectStatus.COMPLETED}


# ============================================================
# SCHEMAS
# ============================================================

# --- Project ---
class ProjectCreate(BaseModel):
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    submission_id: Optional[str] = None
    github_repo_url: Optional[str] = None
    github_repo_name: Optional[str] = None
    create_repo: bool = False  # Create a private GitHub repository first
    repo_name: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    github_repo_url: Optional[str] = None
    github_repo_name: Optional[str] = None
    status: Optional[ProjectStatus] = None


class ColumnOut(BaseModel):
    id: str
    project_id: str
    name: str
    position: int
    color: Optional[str] = None


class ProjectStats(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    review: int = 0
    todo: int = 0


class ProjectOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    submission_id: Optional[str] = None
    github_repo_url: Optional[str] = None
    github_repo_name: Optional[str] = None
    status: str
    columns: List[ColumnOut] = []
    stats: Optional[ProjectStats] = None
    created_at: str
    updated_at: str


# --- Column ---
class ColumnCreate(BaseModel):
    name: str = Field(..., max_length=50)
    position: Optional[int] = None
    color: Optional[str] = None


class ColumnUpdate(BaseModel):
    name: Optional[str] = None
    position: Optional[int] = None
    color: Optional[str] = None


# --- Label ---
class LabelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = "#6366f1"


class LabelOut(BaseModel):
    id: str
    name: str
    color: Optional[str] = None


# --- Task ---
class TaskCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    project_id: str
    column_id: Optional[str] = None  # If None, goes to the first column (Backlog)
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    submission_request_id: Optional[str] = None
    label_ids: List[str] = Field(default_factory=list)
    auto_commit: bool = True


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    column_id: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)
    label_ids: Optional[List[str]] = None
    auto_commit: Optional[bool] = None


class TaskOut(BaseModel):
    id: str
    project_id: str
    column_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    priority: str
    status: str
    position: int
    assigned_to: Optional[str] = None
    due_date: Optional[str] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    submission_request_id: Optional[str] = None
    git_branch: Optional[str] = None
    github_issue_number: Optional[int] = None
    auto_commit: bool
    labels: List[LabelOut] = []
    created_at: str
    updated_at: str
    completed_at: Optional[str] = None


# ============================================================
# HELPERS
# ============================================================

def _column_out(c: KanbanColumn) -> ColumnOut:
    return ColumnOut(id=c.id, project_id=c.project_id, name=c.name, position=c.position, color=c.color)


def _label_out(l: KanbanLabel) -> LabelOut:
    return LabelOut(id=l.id, name=l.name, color=l.color)


def _project_out(p: KanbanProject, columns: Optional[List[KanbanColumn]] = None,
                 stats: Optional[ProjectStats] = None) -> ProjectOut:
    return ProjectOut(
        id=p.id,
        name=p.name,
        description=p.description,
        submission_id=p.submission_id,
        github_repo_url=p.github_repo_url,
        github_repo_name=p.github_repo_name,
        status=p.status.value,
        columns=[_column_out(c) for c in sorted(columns or [], key=lambda c: c.position)],
        stats=stats,
        created_at=isoformat_utc(p.created_at),
        updated_at=isoformat_utc(p.updated_at),
    )


def _task_out(t: KanbanTask) -> TaskOut:
    return TaskOut(
        id=t.id,
        project_id=t.project_id,
        column_id=t.column_id,
        title=t.title,
        description=t.description,
        priority=t.priority.value,
        status=t.status.value,
        position=t.position or 0,
        assigned_to=t.assigned_to,
        due_date=isoformat_utc(t.due_date),
        estimated_hours=t.estimated_hours,
        actual_hours=t.actual_hours,
        submission_request_id=t.submission_request_id,
        git_branch=t.git_branch,
        github_issue_number=t.github_issue_number,
        auto_commit=bool(t.auto_commit),
        labels=[_label_out(l) for l in (t.labels or [])],
        created_at=isoformat_utc(t.created_at),
        updated_at=isoformat_utc(t.updated_at),
        completed_at=isoformat_utc(t.completed_at),
    )


async def _get_project(project_id: str, db: AsyncSession) -> KanbanProject:
    project = await db.get(KanbanProject, project_id)
    if not project:
        raise NotFoundError("Project")
    return project


async def _get_column(column_id: str, db: AsyncSession, project_id: Optional[str] = None) -> KanbanColumn:
    stmt = select(KanbanColumn).where(KanbanColumn.id == column_id)
    if project_id:
        stmt = stmt.where(KanbanColumn.project_id == project_id)
    column = (await db.execute(stmt)).scalar_one_or_none()
    if not column:
        raise NotFoundError("Column")
    return column


async def _get_task(task_id: str, db: AsyncSession) -> KanbanTask:
    result = await db.execute(select(KanbanTask).where(KanbanTask.id == task_id))
    task = result.scalar_one_or_none()
    if not task:
        raise NotFoundError("Task")
    return task


async def _list_columns(project_id: str, db: AsyncSession) -> List[KanbanColumn]:
    result = await db.execute(
        select(KanbanColumn)
        .where(KanbanColumn.project_id == project_id)
        .order_by(KanbanColumn.position.asc())
    )
    return list(result.scalars().all())


async def _column_positions(column_id: str, project_id: str, db: AsyncSession,
                            exclude_task_id: Optional[str] = None) -> List[int]:
    stmt = select(KanbanTask.position).where(
        KanbanTask.column_id == column_id, KanbanTask.project_id == project_id,
    )
    if exclude_task_id:
        stmt = stmt.where(KanbanTask.id != exclude_task_id)
    return list((await db.execute(stmt)).scalars().all())


async def _resolve_labels(label_ids: List[str], db: AsyncSession) -> List[KanbanLabel]:
    if not label_ids:
        return []
    result = await db.execute(select(KanbanLabel).where(KanbanLabel.id.in_(label_ids)))
    labels = list(result.scalars().all())
    missing = set(label_ids) - {l.id for l in labels}
    if missing:
        logger.warning(f"Ignoring unknown label ids: {sorted(missing)}")
    return labels


async def _project_stats(project_id: str, db: AsyncSession) -> ProjectStats:
    result = await db.execute(
        select(KanbanTask.status, func.count(KanbanTask.id))
        .where(KanbanTask.project_id == project_id)
        .group_by(KanbanTask.status)
    )
    counts = {s.value: c for s, c in result.all()}
    return ProjectStats(
        total=sum(counts.values()),
        completed=counts.get(TaskStatus.DONE.value, 0),
        in_progress=counts.get(TaskStatus.IN_PROGRESS.value, 0),
        review=counts.get(TaskStatus.REVIEW.value, 0),
        todo=counts.get(TaskStatus.TODO.value, 0),
    )


async def _ensure_position_free(project_id: str, position: int, db: AsyncSession,
                                exclude_column_id: Optional[str] = None) -> None:
    stmt = select(KanbanColumn.id).where(
        KanbanColumn.project_id == project_id, KanbanColumn.position == position,
    )
    if exclude_column_id:
        stmt = stmt.where(KanbanColumn.id != exclude_column_id)
    if (await db.execute(stmt)).first():
        raise ValidationError(f"Position {position} is already used by another column")


# ============================================================
# BOARD
# ============================================================

@router.get("/board")
async def get_board(
    project_id: str = Query(...),
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Columns, tasks and labels for one project board"""
    await _get_project(project_id, db)
    columns = await _list_columns(project_id, db)
    tasks = (await db.execute(
        select(KanbanTask)
        .where(KanbanTask.project_id == project_id)
        .order_by(KanbanTask.position.asc(), KanbanTask.created_at.asc())
    )).scalars().all()
    labels = (await db.execute(select(KanbanLabel).order_by(KanbanLabel.name.asc()))).scalars().all()
    return {
        "columns": [_column_out(c).model_dump() for c in columns],
        "tasks": [_task_out(t).model_dump() for t in tasks],
        "labels": [_label_out(l).model_dump() for l in labels],
    }


# ============================================================
# PROJECTS
# ============================================================

@router.get("/projects")
async def list_projects(
    status: Optional[ProjectStatus] = None,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """List Kanban projects with task statistics"""
    stmt = select(KanbanProject).order_by(KanbanProject.created_at.desc())
    if status:
        stmt = stmt.where(KanbanProject.status == status)
    projects = (await db.execute(stmt)).scalars().all()
    out = []
    for p in projects:
        stats = await _project_stats(p.id, db)
        out.append(_project_out(p, stats=stats).model_dump())
    return {"projects": out}


@router.get("/projects/{project_id}")
async def get_project(
    project_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    project = await _get_project(project_id, db)
    columns = await _list_columns(project_id, db)
    stats = await _project_stats(project_id, db)
    return {"project": _project_out(project, columns).model_dump(), "stats": stats.model_dump()}


async def create_project_with_columns(
    db: AsyncSession,
    name: str,
    description: Optional[str] = None,
    submission_id: Optional[str] = None,
    github_repo_url: Optional[str] = None,
    github_repo_name: Optional[str] = None,
):
    """Insert a project and its four default columns. The caller commits."""
    project = KanbanProject(
        name=name,
        description=description,
        submission_id=submission_id,
        github_repo_url=github_repo_url,
        github_repo_name=github_repo_name,
        status=ProjectStatus.ACTIVE,
    )
    db.add(project)
    await db.flush()

    columns = []
    for col_def in DEFAULT_COLUMNS:
        col = KanbanColumn(
            project_id=project.id,
            name=col_def["name"],
            position=col_def["position"],
            color=col_def["color"],
        )
        db.add(col)
        columns.append(col)
    await db.flush()
    return project, columns


@router.post("/projects", status_code=201)
async def create_project(
    data: ProjectCreate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    client_factory: ClientFactory = Depends(github_client_factory),
):
    """Create a Kanban project with default columns, optionally alongside a GitHub repository"""
    name = data.name.strip()
    if not name:
        raise ValidationError("Project name is required")

    repo_url, repo_name = data.github_repo_url, data.github_repo_name
    if data.create_repo:
        token = await get_github_token(db)
        if not token:
            raise ValidationError("GitHub PAT is not configured")
        client: GitHubClient = client_factory(token)
        repo = await client.create_repo(
            (data.repo_name or name).lower().replace(" ", "-"),
            data.description,
        )
        repo_url, repo_name = repo["url"], repo["full_name"]

    project, columns = await create_project_with_columns(
        db, name, data.description, data.submission_id, repo_url, repo_name,
    )
    await db.commit()
    logger.info(f"Created Kanban project {project.id} ({project.name})")
    return {"project": _project_out(project, columns).model_dump()}


@router.patch("/projects/{project_id}")
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Rename, relink or archive/complete a project"""
    project = await _get_project(project_id, db)

    if data.name is not None:
        if not data.name.strip():
            raise ValidationError("Project name is required")
        project.name = data.name.strip()
    if data.description is not None:
        project.description = data.description
    if data.github_repo_url is not None:
        project.github_repo_url = data.github_repo_url
    if data.github_repo_name is not None:
        project.github_repo_name = data.github_repo_name
    if data.status is not None and data.status != project.status:
        # archived / completed are one-way exits from active
        if project.status in TERMINAL_PROJECT_STATUSES:
            raise ValidationError(f"Project is already {project.status.value}")
        project.status = data.status

    await db.commit()
    columns = await _list_columns(project_id, db)
    return {"project": _project_out(project, columns).model_dump()}


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a project together with its columns, tasks and quote"""
    project = await _get_project(project_id, db)
    await db.delete(project)
    await db.commit()
    return {"success": True}


# ============================================================
# COLUMNS
# ============================================================

@router.post("/projects/{project_id}/columns", status_code=201)
async def create_column(
    project_id: str,
    data: ColumnCreate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Add a column; without a position it goes to the right of the last one"""
    await _get_project(project_id, db)
    name = data.name.strip()
    if not name:
        raise ValidationError("Column name is required")

    if data.position is not None:
        await _ensure_position_free(project_id, data.position, db)
        position = data.position
    else:
        max_pos = (await db.execute(
            select(func.max(KanbanColumn.position)).where(KanbanColumn.project_id == project_id)
        )).scalar()
        position = 0 if max_pos is None else max_pos + 1

    col = KanbanColumn(project_id=project_id, name=name, position=position, color=data.color)
    db.add(col)
    await db.commit()
    return {"column": _column_out(col).model_dump()}


@router.patch("/columns/{column_id}")
async def update_column(
    column_id: str,
    data: ColumnUpdate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Rename, reposition or recolor a column.

    Renaming does not re-derive the status of tasks already in the column;
    status only follows a task when the task itself moves.
    """
    col = await _get_column(column_id, db)

    if data.name is not None:
        if not data.name.strip():
            raise ValidationError("Column name is required")
        col.name = data.name.strip()
    if data.position is not None and data.position != col.position:
        await _ensure_position_free(col.project_id, data.position, db, exclude_column_id=col.id)
        col.position = data.position
    if data.color is not None:
        col.color = data.color

    await db.commit()
    return {"column": _column_out(col).model_dump()}


@router.delete("/columns/{column_id}")
async def delete_column(
    column_id: str,
    move_tasks_to: Optional[str] = Query(None, description="Column ID to move tasks to"),
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a column. Its tasks are detached, or appended to another column."""
    col = await _get_column(column_id, db)

    if move_tasks_to:
        target = await _get_column(move_tasks_to, db, project_id=col.project_id)
        positions = await _column_positions(target.id, col.project_id, db)
        tasks = (await db.execute(
            select(KanbanTask)
            .where(KanbanTask.column_id == column_id)
            .order_by(KanbanTask.position.asc())
        )).scalars().all()
        for task in tasks:
            change = plan_column_change(target.id, target.name, positions, task.completed_at)
            task.column_id = change.column_id
            task.position = change.position
            task.status = change.status
            task.completed_at = change.completed_at
            positions.append(change.position)
    else:
        await db.execute(
            KanbanTask.__table__.update()
            .where(KanbanTask.column_id == column_id)
            .values(column_id=None)
        )

    # Moves must reach the DB first, or the delete would detach the moved tasks too
    await db.flush()
    await db.delete(col)
    await db.commit()
    return {"success": True, "column_id": column_id}


# ============================================================
# TASKS
# ============================================================

@router.post("/tasks", status_code=201)
async def create_task(
    data: TaskCreate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    mirror: TaskMirror = Depends(get_task_mirror),
):
    """Create a task at the end of its column, then mirror it to GitHub"""
    title = (data.title or "").strip()
    if not title:
        raise ValidationError("Title is required")

    project = await _get_project(data.project_id, db)

    if data.column_id:
        column = await _get_column(data.column_id, db, project_id=project.id)
    else:
        columns = await _list_columns(project.id, db)
        if not columns:
            raise NotFoundError("Column")
        column = columns[0]

    # New tasks start as todo wherever they land; only moves derive status
    position = next_position(await _column_positions(column.id, project.id, db))
    labels = await _resolve_labels(data.label_ids, db)

    task = KanbanTask(
        project_id=project.id,
        column_id=column.id,
        title=title,
        description=data.description,
        priority=data.priority,
        status=TaskStatus.TODO,
        position=position,
        assigned_to=data.assigned_to,
        due_date=data.due_date,
        estimated_hours=data.estimated_hours,
        submission_request_id=data.submission_request_id,
        auto_commit=data.auto_commit,
        labels=labels,
    )
    db.add(task)
    await db.commit()

    # The row is committed; mirroring can only add metadata to it
    applied = await mirror.mirror_task(db, task, project)
    if applied:
        await db.commit()

    return {"task": _task_out(task).model_dump()}


@router.patch("/tasks/{task_id}")
async def update_task(
    task_id: str,
    data: TaskUpdate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    mirror: TaskMirror = Depends(get_task_mirror),
):
    """Update task fields; a column change re-derives position and status"""
    task = await _get_task(task_id, db)
    previous_status = task.status

    if data.title is not None:
        if not data.title.strip():
            raise ValidationError("Title is required")
        task.title = data.title.strip()
    if data.description is not None:
        task.description = data.description
    if data.priority is not None:
        task.priority = data.priority
    if data.assigned_to is not None:
        task.assigned_to = data.assigned_to or None
    if data.due_date is not None:
        task.due_date = data.due_date
    if data.estimated_hours is not None:
        task.estimated_hours = data.estimated_hours
    if data.actual_hours is not None:
        task.actual_hours = data.actual_hours
    if data.auto_commit is not None:
        task.auto_commit = data.auto_commit
    if data.label_ids is not None:
        task.labels = await _resolve_labels(data.label_ids, db)

    if data.column_id is not None and data.column_id != task.column_id:
        target = await _get_column(data.column_id, db, project_id=task.project_id)
        positions = await _column_positions(target.id, task.project_id, db, exclude_task_id=task.id)
        change = plan_column_change(target.id, target.name, positions, task.completed_at)
        task.column_id = change.column_id
        task.position = change.position
        task.status = change.status
        task.completed_at = change.completed_at
    elif data.status is not None:
        task.status = data.status
        if data.status == TaskStatus.DONE and task.completed_at is None:
            task.completed_at = utcnow()

    await db.commit()

    if task.status != previous_status:
        project = await _get_project(task.project_id, db)
        await mirror.announce_status(db, task, project)

    return {"task": _task_out(task).model_dump()}


@router.post("/tasks/{task_id}/mirror")
async def retry_task_mirror(
    task_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
    mirror: TaskMirror = Depends(get_task_mirror),
):
    """Re-run GitHub mirroring for a task whose branch or issue is still missing"""
    task = await _get_task(task_id, db)
    project = await _get_project(task.project_id, db)
    if not TaskMirror.is_enabled(task, project):
        raise ValidationError("Mirroring is not enabled for this task")

    applied = await mirror.mirror_task(db, task, project)
    if applied:
        await db.commit()
    return {"task": _task_out(task).model_dump(), "applied": applied}


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    task = await _get_task(task_id, db)
    await db.delete(task)
    await db.commit()
    return {"success": True}


# ============================================================
# LABELS
# ============================================================

@router.get("/labels")
async def list_labels(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    labels = (await db.execute(select(KanbanLabel).order_by(KanbanLabel.name.asc()))).scalars().all()
    return {"labels": [_label_out(l).model_dump() for l in labels]}


@router.post("/labels", status_code=201)
async def create_label(
    data: LabelCreate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    label = KanbanLabel(name=data.name, color=data.color)
    db.add(label)
    await db.commit()
    return {"label": _label_out(label).model_dump()}


@router.delete("/labels/{label_id}")
async def delete_label(
    label_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    label = await db.get(KanbanLabel, label_id)
    if not label:
        raise NotFoundError("Label")
    await db.delete(label)
    await db.commit()
    return {"success": True}
