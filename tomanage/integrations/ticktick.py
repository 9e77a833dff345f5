"""TickTick open API integration for toManage."""

import os
import logging
from typing import Any, Dict, List, Optional
import requests
from dotenv import load_dotenv

from tomanage.errors import ExternalServiceError
from tomanage.models.constants import DEFAULT_TICKTICK_TIMEOUT_SEC

load_dotenv()

logger = logging.getLogger(__name__)

TICKTICK_API_BASE = os.getenv("TICKTICK_API_BASE", "https://api.ticktick.com/open/v1")

# TickTick does not list the inbox as a project
INBOX_PROJECT_ID = "inbox"


class TickTickClient:
    """Client for the TickTick open API (bearer token auth)."""

    def __init__(self, access_token: str, timeout: Optional[float] = None, api_base: Optional[str] = None):
        """Initialize TickTick client.

        Args:
            access_token: OAuth access token for the user
            timeout: Per-request timeout in seconds (TICKTICK_TIMEOUT_SEC, default 10)
            api_base: API base URL (TICKTICK_API_BASE)
        """
        if not access_token:
            raise ValueError("TickTick access token is required.")

        self.api_base = (api_base or TICKTICK_API_BASE).rstrip("/")
        self.timeout = timeout or float(os.getenv("TICKTICK_TIMEOUT_SEC", str(DEFAULT_TICKTICK_TIMEOUT_SEC)))
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.api_base}{path}"
        try:
            response = requests.request(method, url, headers=self.headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            logger.error(f"TickTick {method} {path} failed: {type(e).__name__} ({status_code or 'no status'})")
            raise ExternalServiceError(f"TickTick request failed: {method} {path}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(f"TickTick returned invalid JSON for {method} {path}") from e

    def list_projects(self) -> List[Dict[str, Any]]:
        """Fetch all projects (lists) of the user."""
        return self._request("GET", "/project") or []

    def get_project_tasks(self, project_id: str) -> List[Dict[str, Any]]:
        """Fetch the tasks of one project."""
        data = self._request("GET", f"/project/{project_id}/data") or {}
        tasks = data.get("tasks") or []
        for task in tasks:
            task.setdefault("projectId", project_id)
        return tasks

    def list_tasks(self) -> List[Dict[str, Any]]:
        """Fetch tasks across every project plus the inbox.

        All-or-nothing: if any project call fails, ExternalServiceError
        propagates and no partial list is returned.

        Raises:
            ExternalServiceError: If any API call fails
        """
        project_ids = [p["id"] for p in self.list_projects() if p.get("id")]
        if INBOX_PROJECT_ID not in project_ids:
            project_ids.append(INBOX_PROJECT_ID)

        tasks: List[Dict[str, Any]] = []
        for project_id in project_ids:
            tasks.extend(self.get_project_tasks(project_id))

        logger.info(f"Fetched {len(tasks)} TickTick task(s) from {len(project_ids)} project(s)")
        return tasks

    def create_task(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a task; returns the TickTick record (with id and projectId)."""
        return self._request("POST", "/task", payload) or {}

    def update_task(self, task_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = {**payload, "id": task_id}
        return self._request("POST", f"/task/{task_id}", payload) or {}

    def complete_task(self, project_id: str, task_id: str) -> None:
        self._request("POST", f"/project/{project_id}/task/{task_id}/complete")

    def delete_task(self, project_id: str, task_id: str) -> None:
        self._request("DELETE", f"/project/{project_id}/task/{task_id}")
