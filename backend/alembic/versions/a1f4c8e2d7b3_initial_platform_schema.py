"""Initial platform schema (profiles, builder projects, submissions, kanban, quotes)

Revision ID: a1f4c8e2d7b3
Revises:
Create Date: 2026-03-02T09:14:27.512044
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = 'a1f4c8e2d7b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- profiles ---
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.Enum('admin', 'user', name='userrole'), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])

    # --- invite_codes ---
    op.create_table(
        'invite_codes',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('code', sa.String(), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('used_by', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invite_codes_code', 'invite_codes', ['code'], unique=True)

    # --- projects (app builder) ---
    op.create_table(
        'projects',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_projects_user_id', 'projects', ['user_id'])

    # --- app_tiers ---
    op.create_table(
        'app_tiers',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('features', sa.JSON(), nullable=True, server_default='[]'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_app_tiers_project_id', 'app_tiers', ['project_id'])

    # --- submission_requests ---
    op.create_table(
        'submission_requests',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('test_email', sa.String(), nullable=True),
        sa.Column('phone_number', sa.String(), nullable=True),
        sa.Column('status', sa.Enum('pending', 'in_progress', 'completed', 'rejected', name='submissionstatus'), nullable=False, server_default='pending'),
        sa.Column('github_repo_url', sa.String(), nullable=True),
        sa.Column('github_repo_name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_submission_requests_user_id', 'submission_requests', ['user_id'])
    op.create_index('ix_submission_requests_project_id', 'submission_requests', ['project_id'])
    op.create_index('ix_submission_requests_status', 'submission_requests', ['status'])

    # --- project_tasks (submission checklist) ---
    op.create_table(
        'project_tasks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('submission_id', sa.String(), sa.ForeignKey('submission_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_project_tasks_submission_id', 'project_tasks', ['submission_id'])

    # --- kanban_projects ---
    op.create_table(
        'kanban_projects',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('submission_id', sa.String(), sa.ForeignKey('submission_requests.id', ondelete='SET NULL'), nullable=True),
        sa.Column('github_repo_url', sa.String(), nullable=True),
        sa.Column('github_repo_name', sa.String(), nullable=True),
        sa.Column('status', sa.Enum('active', 'archived', 'completed', name='projectstatus'), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_kanban_projects_submission_id', 'kanban_projects', ['submission_id'])
    op.create_index('ix_kanban_projects_status', 'kanban_projects', ['status'])

    # --- kanban_columns ---
    op.create_table(
        'kanban_columns',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('kanban_projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('color', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_kanban_columns_project_id', 'kanban_columns', ['project_id'])
    op.create_index('idx_kcol_project_pos', 'kanban_columns', ['project_id', 'position'])

    # --- kanban_labels ---
    op.create_table(
        'kanban_labels',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('color', sa.String(), nullable=True, server_default='#6366f1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- kanban_tasks ---
    op.create_table(
        'kanban_tasks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('kanban_projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('column_id', sa.String(), sa.ForeignKey('kanban_columns.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('priority', sa.Enum('low', 'medium', 'high', 'urgent', name='taskpriority'), nullable=False, server_default='medium'),
        sa.Column('status', sa.Enum('todo', 'in_progress', 'review', 'done', name='taskstatus'), nullable=False, server_default='todo'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('assigned_to', sa.String(), sa.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('estimated_hours', sa.Float(), nullable=True),
        sa.Column('actual_hours', sa.Float(), nullable=True),
        sa.Column('submission_request_id', sa.String(), sa.ForeignKey('submission_requests.id', ondelete='SET NULL'), nullable=True),
        sa.Column('git_branch', sa.String(), nullable=True),
        sa.Column('github_issue_number', sa.Integer(), nullable=True),
        sa.Column('auto_commit', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_kanban_tasks_project_id', 'kanban_tasks', ['project_id'])
    op.create_index('ix_kanban_tasks_column_id', 'kanban_tasks', ['column_id'])
    op.create_index('idx_ktask_project_col', 'kanban_tasks', ['project_id', 'column_id'])

    # --- kanban_task_labels ---
    op.create_table(
        'kanban_task_labels',
        sa.Column('task_id', sa.String(), sa.ForeignKey('kanban_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label_id', sa.String(), sa.ForeignKey('kanban_labels.id', ondelete='CASCADE'), nullable=False),
        sa.PrimaryKeyConstraint('task_id', 'label_id'),
    )

    # --- project_quotes ---
    op.create_table(
        'project_quotes',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('kanban_projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('submission_id', sa.String(), sa.ForeignKey('submission_requests.id', ondelete='SET NULL'), nullable=True),
        sa.Column('total_amount', sa.Float(), nullable=True),
        sa.Column('hypothetical_market_price', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum('draft', 'sent', 'accepted', 'rejected', name='quotestatus'), nullable=False, server_default='draft'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', name='uq_project_quotes_project_id'),
    )

    # --- admin_settings ---
    op.create_table(
        'admin_settings',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    op.drop_table('admin_settings')
    op.drop_table('project_quotes')
    op.drop_table('kanban_task_labels')
    op.drop_index('idx_ktask_project_col', table_name='kanban_tasks')
    op.drop_index('ix_kanban_tasks_column_id', table_name='kanban_tasks')
    op.drop_index('ix_kanban_tasks_project_id', table_name='kanban_tasks')
    op.drop_table('kanban_tasks')
    op.drop_table('kanban_labels')
    op.drop_index('idx_kcol_project_pos', table_name='kanban_columns')
    op.drop_index('ix_kanban_columns_project_id', table_name='kanban_columns')
    op.drop_table('kanban_columns')
    op.drop_index('ix_kanban_projects_status', table_name='kanban_projects')
    op.drop_index('ix_kanban_projects_submission_id', table_name='kanban_projects')
    op.drop_table('kanban_projects')
    op.drop_index('ix_project_tasks_submission_id', table_name='project_tasks')
    op.drop_table('project_tasks')
    op.drop_index('ix_submission_requests_status', table_name='submission_requests')
    op.drop_index('ix_submission_requests_project_id', table_name='submission_requests')
    op.drop_index('ix_submission_requests_user_id', table_name='submission_requests')
    op.drop_table('submission_requests')
    op.drop_index('ix_app_tiers_project_id', table_name='app_tiers')
    op.drop_table('app_tiers')
    op.drop_index('ix_projects_user_id', table_name='projects')
    op.drop_table('projects')
    op.drop_index('ix_invite_codes_code', table_name='invite_codes')
    op.drop_table('invite_codes')
    op.drop_index('ix_profiles_email', table_name='profiles')
    op.drop_table('profiles')
    for enum_name in ('quotestatus', 'taskstatus', 'taskpriority', 'projectstatus', 'submissionstatus', 'userrole'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
