# github_client.py — Thin async client for the GitHub REST API
"""
Only the calls the platform needs: repository creation, branch creation
(resolving the default branch head first), file upload, issues and issue
comments. Every call is bounded by GITHUB_TIMEOUT_SECONDS; any transport
error, timeout or non-2xx response is raised as GitHubError.
"""
import os
import base64
import logging
from typing import Any, Dict, Optional

import httpx

from errors import GitHubError

logger = logging.getLogger("fourgears.github")

GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
GITHUB_TIMEOUT_SECONDS = float(os.getenv("GITHUB_TIMEOUT_SECONDS", "10"))
GITHUB_API_VERSION = "2022-11-28"


class GitHubClient:
    """Per-request client authenticated with the admin's personal access token."""

    def __init__(self, token: str, base_url: str = GITHUB_API_URL,
                 timeout: float = GITHUB_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._login: Optional[str] = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport,
            ) as client:
                resp = await client.request(method, path, headers=self._headers(), json=json)
        except httpx.TimeoutException as e:
            raise GitHubError(f"GitHub {method} {path} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise GitHubError(f"GitHub {method} {path} failed: {str(e)[:200]}") from e

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("message", resp.text)
            except ValueError:
                detail = resp.text
            raise GitHubError(f"GitHub: {detail}"[:300], status=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise GitHubError(f"GitHub {method} {path} returned a non-JSON body", status=resp.status_code) from e

    async def get_login(self) -> str:
        """Login of the token's owner; repositories are created under it."""
        if self._login is None:
            user = await self._request("GET", "/user")
            self._login = user["login"]
        return self._login

    async def _owner_repo(self, repo: str) -> str:
        # Accepts "owner/name" or a bare name owned by the token's user
        if "/" in repo:
            return repo
        return f"{await self.get_login()}/{repo}"

    async def create_repo(self, name: str, description: Optional[str] = None,
                          private: bool = True) -> Dict[str, Any]:
        data = await self._request("POST", "/user/repos", json={
            "name": name,
            "description": description or f"4Gears Project: {name}",
            "private": private,
            "auto_init": True,  # Initial commit with a README, so branches have a base
        })
        logger.info(f"Created GitHub repository {data['full_name']}")
        return {"url": data["html_url"], "full_name": data["full_name"], "name": data["name"]}

    async def create_branch(self, repo: str, branch: str) -> str:
        full = await self._owner_repo(repo)
        repo_data = await self._request("GET", f"/repos/{full}")
        default_branch = repo_data["default_branch"]
        ref = await self._request("GET", f"/repos/{full}/git/ref/heads/{default_branch}")
        await self._request("POST", f"/repos/{full}/git/refs", json={
            "ref": f"refs/heads/{branch}",
            "sha": ref["object"]["sha"],
        })
        return branch

    async def put_file(self, repo: str, path: str, content: str, message: str,
                       branch: str = "main") -> None:
        full = await self._owner_repo(repo)
        await self._request("PUT", f"/repos/{full}/contents/{path}", json={
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        })

    async def create_issue(self, repo: str, title: str, body: str = "") -> int:
        full = await self._owner_repo(repo)
        issue = await self._request("POST", f"/repos/{full}/issues", json={"title": title, "body": body})
        return issue["number"]

    async def comment_issue(self, repo: str, issue_number: int, body: str) -> None:
        full = await self._owner_repo(repo)
        await self._request("POST", f"/repos/{full}/issues/{issue_number}/comments", json={"body": body})
