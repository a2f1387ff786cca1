# models.py — Database models for the 4Gears Platform
# Mirrors the hosted Postgres schema:
# - Profiles & invite codes (identity is issued by the hosted auth provider)
# - App projects built in the visual builder, their tiers and submissions
# - Kanban projects, columns, tasks and global labels
# - One quote per Kanban project
# - Key/value admin settings (GitHub token)

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, JSON, Boolean, Integer, Float,
    Enum as SQLEnum, ForeignKey, Text, Index, Table,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def isoformat_utc(dt):
    """ISO-8601 string for a stored timestamp; naive values are read as UTC (SQLite drops the offset)"""
    if dt is None:
        return None
    if not isinstance(dt, datetime):
        return str(dt)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def new_uuid():
    return str(uuid.uuid4())


def _values(enum_cls):
    return [e.value for e in enum_cls]


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, PyEnum):
    ADMIN = "admin"
    USER = "user"


class SubmissionStatus(str, PyEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ProjectStatus(str, PyEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    COMPLETED = "completed"


class TaskPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, PyEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class QuoteStatus(str, PyEnum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# ============================================================
# IDENTITY
# ============================================================

class Profile(Base):
    """Application profile for an account of the hosted auth provider"""
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)  # Same id as the auth subject
    email = Column(String, nullable=True, index=True)
    role = Column(SQLEnum(UserRole, values_callable=_values), default=UserRole.USER, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    projects = relationship("AppProject", back_populates="owner")


class InviteCode(Base):
    """Single-use signup invitation"""
    __tablename__ = "invite_codes"

    id = Column(String, primary_key=True, default=new_uuid)
    code = Column(String, unique=True, nullable=False, index=True)  # e.g. "4G-K3J9QX"
    used = Column(Boolean, default=False, nullable=False)
    used_by = Column(String, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    used_at = Column(DateTime(timezone=True), nullable=True)


# ============================================================
# APP BUILDER
# ============================================================

class AppProject(Base):
    """A team app configured in the visual builder"""
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    config = Column(JSON, nullable=False, default=dict)  # Branding, theme, feature toggles
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("Profile", back_populates="projects")
    tiers = relationship(
        "AppTier", back_populates="project",
        cascade="all, delete-orphan", order_by="AppTier.position",
    )
    submissions = relationship("SubmissionRequest", back_populates="project", cascade="all, delete-orphan")


class AppTier(Base):
    """Monetization tier offered inside a team app"""
    __tablename__ = "app_tiers"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    price = Column(Float, nullable=False, default=0)
    features = Column(JSON, default=list)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("AppProject", back_populates="tiers")


class SubmissionRequest(Base):
    """A customer's request to have their configured app built"""
    __tablename__ = "submission_requests"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    config = Column(JSON, nullable=False, default=dict)  # Snapshot at submission time
    notes = Column(Text, nullable=True)
    test_email = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    status = Column(
        SQLEnum(SubmissionStatus, values_callable=_values),
        default=SubmissionStatus.PENDING, nullable=False, index=True,
    )
    github_repo_url = Column(String, nullable=True)
    github_repo_name = Column(String, nullable=True)  # "owner/name"
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("AppProject", back_populates="submissions")
    user = relationship("Profile")
    checklist = relationship(
        "ChecklistItem", back_populates="submission",
        cascade="all, delete-orphan", order_by="ChecklistItem.created_at",
    )


class ChecklistItem(Base):
    """Lightweight admin to-do attached to a submission"""
    __tablename__ = "project_tasks"

    id = Column(String, primary_key=True, default=new_uuid)
    submission_id = Column(String, ForeignKey("submission_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    submission = relationship("SubmissionRequest", back_populates="checklist")


# ============================================================
# KANBAN
# ============================================================

kanban_task_labels = Table(
    "kanban_task_labels",
    Base.metadata,
    Column("task_id", String, ForeignKey("kanban_tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", String, ForeignKey("kanban_labels.id", ondelete="CASCADE"), primary_key=True),
)


class KanbanProject(Base):
    """Delivery board for an approved submission"""
    __tablename__ = "kanban_projects"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    submission_id = Column(String, ForeignKey("submission_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    github_repo_url = Column(String, nullable=True)
    github_repo_name = Column(String, nullable=True)
    status = Column(
        SQLEnum(ProjectStatus, values_callable=_values),
        default=ProjectStatus.ACTIVE, nullable=False, index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    columns = relationship(
        "KanbanColumn", back_populates="project",
        cascade="all, delete-orphan", order_by="KanbanColumn.position",
    )
    tasks = relationship("KanbanTask", back_populates="project", cascade="all, delete-orphan")
    quote = relationship("ProjectQuote", back_populates="project", uselist=False, cascade="all, delete-orphan")
    submission = relationship("SubmissionRequest")


class KanbanColumn(Base):
    """Workflow stage; its name drives status derivation"""
    __tablename__ = "kanban_columns"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("kanban_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    color = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("KanbanProject", back_populates="columns")
    tasks = relationship("KanbanTask", back_populates="column", order_by="KanbanTask.position")

    __table_args__ = (
        Index("idx_kcol_project_pos", "project_id", "position"),
    )


class KanbanLabel(Base):
    """Global label shared by every board"""
    __tablename__ = "kanban_labels"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    color = Column(String, default="#6366f1")
    created_at = Column(DateTime(timezone=True), default=utcnow)


class KanbanTask(Base):
    """Task card on a Kanban board"""
    __tablename__ = "kanban_tasks"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("kanban_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    column_id = Column(String, ForeignKey("kanban_columns.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(SQLEnum(TaskPriority, values_callable=_values), default=TaskPriority.MEDIUM, nullable=False)
    status = Column(SQLEnum(TaskStatus, values_callable=_values), default=TaskStatus.TODO, nullable=False)
    position = Column(Integer, nullable=False, default=0)  # Order within column

    assigned_to = Column(String, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)
    submission_request_id = Column(String, ForeignKey("submission_requests.id", ondelete="SET NULL"), nullable=True)

    # GitHub mirror
    git_branch = Column(String, nullable=True)
    github_issue_number = Column(Integer, nullable=True)
    auto_commit = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)  # Set once, never cleared

    project = relationship("KanbanProject", back_populates="tasks")
    column = relationship("KanbanColumn", back_populates="tasks")
    assignee = relationship("Profile")
    labels = relationship("KanbanLabel", secondary=kanban_task_labels, lazy="selectin")

    __table_args__ = (
        Index("idx_ktask_project_col", "project_id", "column_id"),
    )


class ProjectQuote(Base):
    """Price offer for a Kanban project (one per project)"""
    __tablename__ = "project_quotes"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("kanban_projects.id", ondelete="CASCADE"), nullable=False, unique=True)
    submission_id = Column(String, ForeignKey("submission_requests.id", ondelete="SET NULL"), nullable=True)
    total_amount = Column(Float, nullable=True)  # Seller's price
    hypothetical_market_price = Column(Float, nullable=True)  # Comparison figure
    notes = Column(Text, nullable=True)
    status = Column(SQLEnum(QuoteStatus, values_callable=_values), default=QuoteStatus.DRAFT, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("KanbanProject", back_populates="quote")


# ============================================================
# ADMIN SETTINGS
# ============================================================

class AdminSetting(Base):
    """Key/value store for admin configuration"""
    __tablename__ = "admin_settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=True)  # NOTE: stored in plaintext, like the hosted table
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
