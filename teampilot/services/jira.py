"""
Jira issue-tracker integration.
"""

from typing import Any, Dict, List, Optional
import logging

import httpx
from pydantic import BaseModel

from ..errors import IntegrationRequestFailed
from ..models.records import JiraCredential

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_KEY = "TASK"


class JiraTicket(BaseModel):
    key: str
    url: str
    summary: Optional[str] = None
    status: Optional[str] = None
    assignee: Optional[str] = None


def extract_jira_error(response: httpx.Response) -> str:
    """Turn a Jira error body into a readable message."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(data, dict):
        if data.get("errorMessages"):
            return ", ".join(data["errorMessages"])
        if data.get("errors"):
            return ", ".join(f"{field}: {message}" for field, message in data["errors"].items())
    return f"HTTP {response.status_code}"


class JiraService:
    """Jira REST client using basic auth (username + API token)."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client or httpx.AsyncClient(timeout=30)

    def _auth(self, credential: JiraCredential) -> httpx.BasicAuth:
        return httpx.BasicAuth(credential.username, credential.api_token)

    def _base_url(self, credential: JiraCredential) -> str:
        return credential.base_url.rstrip("/")

    async def _request(self, method: str, credential: JiraCredential, path: str, action: str, **kwargs) -> Dict[str, Any]:
        url = f"{self._base_url(credential)}{path}"
        try:
            response = await self.http_client.request(method, url, auth=self._auth(credential), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Jira request to {url} failed: {e}")
            raise IntegrationRequestFailed("jira", f"Failed to {action}: {e}") from e

        if response.status_code >= 400:
            message = extract_jira_error(response)
            logger.error(f"Jira returned {response.status_code} for {url}: {message}")
            raise IntegrationRequestFailed("jira", f"Failed to {action}: {message}", status_code=response.status_code)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Jira returned a non-JSON body for {url}: {e}")
            raise IntegrationRequestFailed("jira", f"Failed to {action}: unexpected response from Jira", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise IntegrationRequestFailed("jira", f"Failed to {action}: unexpected response from Jira", status_code=response.status_code)
        return data

    async def create_ticket(
        self,
        credential: JiraCredential,
        summary: str,
        description: str = "",
        project: Optional[str] = None,
        issue_type: str = "Task"
    ) -> JiraTicket:
        """Create an issue and return its key and browse URL."""
        project_key = project or credential.default_project or DEFAULT_PROJECT_KEY
        logger.info(f"Creating Jira ticket in project {project_key}: {summary}")

        data = await self._request(
            "POST",
            credential,
            "/rest/api/2/issue",
            "create Jira ticket",
            json={
                "fields": {
                    "project": {"key": project_key},
                    "summary": summary,
                    "description": description,
                    "issuetype": {"name": issue_type}
                }
            }
        )

        key = data.get("key")
        if not key:
            raise IntegrationRequestFailed("jira", "Failed to create Jira ticket: response did not include an issue key")

        logger.info(f"Jira ticket created successfully: {key}")
        return JiraTicket(key=key, url=f"{self._base_url(credential)}/browse/{key}", summary=summary)

    async def get_ticket(self, credential: JiraCredential, ticket_key: str) -> JiraTicket:
        data = await self._request("GET", credential, f"/rest/api/2/issue/{ticket_key}", "get Jira ticket")
        return self._to_ticket(credential, data)

    async def search_tickets(self, credential: JiraCredential, jql: str, max_results: int = 10) -> List[JiraTicket]:
        data = await self._request(
            "POST",
            credential,
            "/rest/api/2/search",
            "search Jira tickets",
            json={
                "jql": jql,
                "maxResults": max_results,
                "fields": ["key", "summary", "status", "assignee"]
            }
        )
        return [self._to_ticket(credential, issue) for issue in data.get("issues", [])]

    async def validate_credentials(self, credential: JiraCredential) -> bool:
        try:
            await self._request("GET", credential, "/rest/api/2/myself", "validate Jira credentials")
            return True
        except IntegrationRequestFailed as e:
            logger.warning(f"Jira credentials validation failed: {e}")
            return False

    def _to_ticket(self, credential: JiraCredential, issue: Dict[str, Any]) -> JiraTicket:
        if not issue.get("key"):
            raise IntegrationRequestFailed("jira", "Jira returned an issue without a key")
        fields = issue.get("fields") or {}
        assignee = fields.get("assignee") or {}
        status = fields.get("status") or {}
        return JiraTicket(
            key=issue["key"],
            url=f"{self._base_url(credential)}/browse/{issue['key']}",
            summary=fields.get("summary"),
            status=status.get("name"),
            assignee=assignee.get("displayName") or "Unassigned"
        )

    async def close(self) -> None:
        await self.http_client.aclose()
