"""
Structured-action execution against Jira and Salesforce.
"""

from typing import List, Optional
import logging

from pydantic import BaseModel

from .credentials import CredentialService
from .jira import JiraService, JiraTicket
from .retry import RefreshRetryPolicy
from .router import StructuredAction
from .salesforce import SalesforceRecord, SalesforceService
from ..errors import IntegrationNotConfigured, IntegrationRequestFailed
from ..models.records import JiraCredential

logger = logging.getLogger(__name__)


class ActionResult(BaseModel):
    system: str
    operation: str
    text: str
    url: Optional[str] = None


def _defaults_note(defaulted: List[str]) -> str:
    shown = [name for name in defaulted if name not in ("description", "project")]
    if not shown:
        return ""
    return f"\n_Default values were used for: {', '.join(shown)}._"


class ActionExecutor:
    """Runs a routed StructuredAction and formats the outcome for the user."""

    def __init__(self, credentials: CredentialService, jira: JiraService, salesforce: SalesforceService):
        self.credentials = credentials
        self.jira = jira
        self.salesforce = salesforce

    async def execute(self, action: StructuredAction, team_id: str, user_id: str) -> ActionResult:
        """
        Execute an action.

        Raises:
            IntegrationNotConfigured: no credential for the action's system
            IntegrationAuthExpired: the session is still rejected after one refresh
            IntegrationRequestFailed: the remote system answered 4xx/5xx
        """
        if action.system == "jira":
            return await self._execute_jira(action, team_id)
        if action.system == "salesforce":
            return await self._execute_salesforce(action, team_id, user_id)
        raise IntegrationRequestFailed(action.system, f"Unsupported integration: {action.system}")

    async def _jira_credential(self, team_id: str) -> JiraCredential:
        credential = await self.credentials.get_jira_credential(team_id)
        if credential is None:
            raise IntegrationNotConfigured("jira")
        return credential

    async def _execute_jira(self, action: StructuredAction, team_id: str) -> ActionResult:
        credential = await self._jira_credential(team_id)
        params = action.params

        if action.operation == "create_ticket":
            ticket = await self.jira.create_ticket(
                credential,
                summary=params["summary"],
                description=params.get("description") or "",
                project=params.get("project"),
                issue_type=params.get("issue_type") or "Task"
            )
            return ActionResult(
                system="jira",
                operation=action.operation,
                text=f"✅ Created Jira ticket <{ticket.url}|{ticket.key}>: {ticket.summary}{_defaults_note(action.defaulted)}",
                url=ticket.url
            )

        if action.operation == "get_ticket":
            ticket = await self.jira.get_ticket(credential, params["ticket_key"])
            return ActionResult(system="jira", operation=action.operation, text=_format_ticket(ticket), url=ticket.url)

        if action.operation == "search_tickets":
            tickets = await self.jira.search_tickets(credential, params["jql"])
            if not tickets:
                text = "No Jira tickets found."
            else:
                text = "\n".join([f"Found {len(tickets)} Jira ticket(s):"] + [
                    f"• <{ticket.url}|{ticket.key}> {ticket.summary or ''} ({ticket.status or 'Unknown'})"
                    for ticket in tickets
                ])
            return ActionResult(system="jira", operation=action.operation, text=text)

        raise IntegrationRequestFailed("jira", f"Unsupported Jira operation: {action.operation}")

    async def _execute_salesforce(self, action: StructuredAction, team_id: str, user_id: str) -> ActionResult:
        token = await self.credentials.get_token_pair(team_id, user_id)
        if token is None:
            raise IntegrationNotConfigured("salesforce")

        object_type = action.params["object_type"]
        fields = action.params.get("fields", {})
        current = {"token": token}

        async def attempt() -> SalesforceRecord:
            return await self.salesforce.create_record(current["token"], object_type, fields)

        async def refresh() -> None:
            refreshed = await self.salesforce.refresh_token(current["token"])
            await self.credentials.save_token_pair(team_id, user_id, refreshed)
            current["token"] = refreshed

        policy = RefreshRetryPolicy()
        record = await policy.run(attempt, refresh)
        if policy.refreshes:
            logger.info(f"Salesforce {object_type} created after {policy.refreshes} token refresh")

        return ActionResult(
            system="salesforce",
            operation=action.operation,
            text=f"✅ Created Salesforce {object_type} <{record.url}|{record.id}>{_defaults_note(action.defaulted)}",
            url=record.url
        )

    async def close(self) -> None:
        await self.jira.close()
        await self.salesforce.close()


def _format_ticket(ticket: JiraTicket) -> str:
    return (
        f"*<{ticket.url}|{ticket.key}>* {ticket.summary or ''}\n"
        f"Status: {ticket.status or 'Unknown'}\n"
        f"Assignee: {ticket.assignee or 'Unassigned'}"
    )
