# mirroring.py — Best-effort mirror of Kanban tasks to GitHub
"""
On creation a task gets a branch and an issue in the project's repository;
on a status change its issue gets a comment. Nothing here may fail the
task mutation that triggered it: every GitHub error is logged and the
matching field (git_branch / github_issue_number) is simply left unset.
The caller commits the task afterwards.
"""
import logging
from typing import Callable, Dict, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from errors import GitHubError
from github_client import GitHubClient
from kanban_rules import branch_name_for, status_comment
from models import KanbanProject, KanbanTask
from settings_store import get_github_token

logger = logging.getLogger("fourgears.mirroring")

# Malformed GitHub payloads surface as KeyError/TypeError inside the client
MIRROR_ERRORS = (GitHubError, KeyError, TypeError)

ClientFactory = Callable[[str], GitHubClient]


class TaskMirror:
    def __init__(self, client_factory: ClientFactory = GitHubClient):
        self.client_factory = client_factory

    async def _client(self, db: AsyncSession) -> Optional[GitHubClient]:
        token = await get_github_token(db)
        if not token:
            logger.warning("⚠️ GitHub PAT not configured. Skipping task mirroring.")
            return None
        return self.client_factory(token)

    @staticmethod
    def is_enabled(task: KanbanTask, project: Optional[KanbanProject]) -> bool:
        return bool(task.auto_commit and project is not None and project.github_repo_name)

    async def mirror_task(self, db: AsyncSession, task: KanbanTask,
                          project: Optional[KanbanProject]) -> Dict[str, object]:
        """Create whichever of branch / issue the task is still missing.

        Returns the fields that were set. Used on creation and when an admin
        re-triggers mirroring by hand.
        """
        applied: Dict[str, object] = {}
        if not self.is_enabled(task, project):
            return applied
        client = await self._client(db)
        if client is None:
            return applied

        repo = project.github_repo_name
        if not task.git_branch:
            branch = branch_name_for(task.id, task.title)
            try:
                task.git_branch = await client.create_branch(repo, branch)
                applied["git_branch"] = task.git_branch
            except MIRROR_ERRORS as e:
                logger.error(f"❌ Error creating branch {branch} in {repo}: {e}")

        if task.github_issue_number is None:
            try:
                task.github_issue_number = await client.create_issue(repo, task.title, task.description or "")
                applied["github_issue_number"] = task.github_issue_number
            except MIRROR_ERRORS as e:
                logger.error(f"❌ Error creating GitHub issue for task {task.id}: {e}")

        return applied

    async def announce_status(self, db: AsyncSession, task: KanbanTask,
                              project: Optional[KanbanProject]) -> bool:
        """Comment the new status on the linked issue. Returns True when posted."""
        if not self.is_enabled(task, project) or task.github_issue_number is None:
            return False
        client = await self._client(db)
        if client is None:
            return False
        try:
            await client.comment_issue(project.github_repo_name, task.github_issue_number, status_comment(task.status))
        except MIRROR_ERRORS as e:
            logger.error(f"❌ Error commenting on issue #{task.github_issue_number}: {e}")
            return False
        logger.info(f"[Git] Task {task.id} moved to {task.status.value}")
        return True


def github_client_factory() -> ClientFactory:
    """FastAPI dependency; tests override it with a fake client"""
    return GitHubClient


def get_task_mirror(factory: ClientFactory = Depends(github_client_factory)) -> TaskMirror:
    return TaskMirror(factory)
