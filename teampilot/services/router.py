"""
Intent routing: canned responses, structured integration actions, or a completion.

Detection is keyword based on the lower-cased message. Slot extraction is
regex based and best-effort; every slot that falls back to a default is
listed in ``ExtractionResult.defaulted``.
"""

from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Literal, Optional, Union
import logging
import re

from pydantic import BaseModel, Field

from .canned import CannedResponseService, render_canned_response
from .credentials import CredentialService
from ..models.records import ConversationWindow

logger = logging.getLogger(__name__)


class CannedReply(BaseModel):
    kind: Literal["canned"] = "canned"
    response_id: str
    text: str
    blocks: Optional[List[Dict[str, Any]]] = None


class StructuredAction(BaseModel):
    kind: Literal["structured"] = "structured"
    system: str
    operation: str
    params: Dict[str, Any] = Field(default_factory=dict)
    defaulted: List[str] = Field(default_factory=list)


class Completion(BaseModel):
    kind: Literal["completion"] = "completion"


Action = Union[CannedReply, StructuredAction, Completion]


class ExtractionResult(BaseModel):
    """Slots pulled out of free text, and which of them are defaults."""
    fields: Dict[str, Any] = Field(default_factory=dict)
    defaulted: List[str] = Field(default_factory=list)

    @property
    def used_defaults(self) -> bool:
        return bool(self.defaulted)

    def default(self, name: str, value: Any) -> None:
        if not self.fields.get(name):
            self.fields[name] = value
            self.defaulted.append(name)


EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
PHONE_PATTERN = re.compile(r"(?:phone|tel|mobile)[:\s]+(\+?\d[\d\s().-]{5,}\d)", re.IGNORECASE)
PERSON_PATTERN = re.compile(r"\b(?:for|named|called|name)\s+([A-Z][\w'-]*)(?:\s+([A-Z][\w'-]*))?")
COMPANY_PATTERN = re.compile(r"\b(?:at|from|company)\s+([A-Z0-9][\w&.'-]*(?:\s+[A-Z0-9][\w&.'-]*)*)")
QUOTED_PATTERN = re.compile(r"[\"“]([^\"”]+)[\"”]")
AMOUNT_PATTERN = re.compile(r"\$\s?([\d,]+(?:\.\d+)?)\s*([kKmM])?")
TICKET_KEY_PATTERN = re.compile(r"\b([A-Z][A-Z0-9]+-\d+)\b")
PROJECT_PATTERN = re.compile(r"\b(?:project|in)\s+([A-Z][A-Z0-9]{1,9})\b")
SUMMARY_PATTERN = re.compile(r"\b(?:titled|called|summary|about|for|to)\s*:?\s+(.+?)(?:\s+(?:description|desc)\s*:|$)", re.IGNORECASE)
DESCRIPTION_PATTERN = re.compile(r"\b(?:description|desc)\s*:\s*(.+)$", re.IGNORECASE | re.DOTALL)
SEARCH_TERM_PATTERN = re.compile(r"\b(?:for|about|matching|with)\s+(.+)$", re.IGNORECASE)
CRM_PATTERN = re.compile(r"\b(create|new|add)\s+(?:a\s+|an\s+)?(?:new\s+)?(lead|contact|opportunity|case|task|account)\b")

ISSUE_TYPES = {"bug": "Bug", "story": "Story", "task": "Task"}
SALESFORCE_OBJECTS = {
    "lead": "Lead",
    "contact": "Contact",
    "opportunity": "Opportunity",
    "case": "Case",
    "task": "Task",
    "account": "Account",
}


def _clean(value: str) -> str:
    return value.strip().strip(".,;!?\"'").strip()


def _extract_person(text: str, result: ExtractionResult) -> None:
    match = PERSON_PATTERN.search(text)
    if not match:
        return
    first, last = match.group(1), match.group(2)
    if last:
        result.fields["FirstName"] = _clean(first)
        result.fields["LastName"] = _clean(last)
    else:
        result.fields["LastName"] = _clean(first)


def _extract_contact_details(text: str, result: ExtractionResult) -> None:
    email = EMAIL_PATTERN.search(text)
    if email:
        result.fields["Email"] = _clean(email.group(0))
    phone = PHONE_PATTERN.search(text)
    if phone:
        result.fields["Phone"] = phone.group(1).strip()


def _extract_subject(text: str) -> Optional[str]:
    quoted = QUOTED_PATTERN.search(text)
    if quoted:
        return _clean(quoted.group(1))
    match = SUMMARY_PATTERN.search(text)
    if match:
        return _clean(match.group(1)) or None
    return None


def extract_lead_slots(text: str) -> ExtractionResult:
    """
    Pull lead fields out of a request such as
    "create lead for Jane Doe at Acme with email jane@acme.com".
    """
    result = ExtractionResult()
    _extract_person(text, result)
    company = COMPANY_PATTERN.search(text)
    if company:
        result.fields["Company"] = _clean(company.group(1))
    _extract_contact_details(text, result)

    result.default("LastName", "Lead from Slack")
    result.default("Company", "Unknown Company")
    return result


def extract_contact_slots(text: str) -> ExtractionResult:
    result = ExtractionResult()
    _extract_person(text, result)
    _extract_contact_details(text, result)
    result.default("LastName", "Contact from Slack")
    return result


def extract_account_slots(text: str) -> ExtractionResult:
    result = ExtractionResult()
    name = _extract_subject(text)
    if name:
        result.fields["Name"] = name
    phone = PHONE_PATTERN.search(text)
    if phone:
        result.fields["Phone"] = phone.group(1).strip()
    result.default("Name", "Account from Slack")
    return result


def extract_opportunity_slots(text: str, today: Optional[date] = None) -> ExtractionResult:
    result = ExtractionResult()
    name = _extract_subject(text)
    if name:
        result.fields["Name"] = AMOUNT_PATTERN.sub("", name).strip() or name

    amount = AMOUNT_PATTERN.search(text)
    if amount:
        value = float(amount.group(1).replace(",", ""))
        multiplier = {"k": 1_000, "m": 1_000_000}.get((amount.group(2) or "").lower(), 1)
        result.fields["Amount"] = value * multiplier

    result.default("Name", "Opportunity from Slack")
    result.default("StageName", "Prospecting")
    result.default("CloseDate", ((today or date.today()) + timedelta(days=30)).isoformat())
    return result


def extract_case_slots(text: str) -> ExtractionResult:
    result = ExtractionResult()
    subject = _extract_subject(text)
    if subject:
        result.fields["Subject"] = subject
    result.fields["Description"] = text.strip()
    result.fields["Origin"] = "Slack"
    result.default("Subject", "Case from Slack")
    result.default("Status", "New")
    return result


def extract_task_slots(text: str) -> ExtractionResult:
    result = ExtractionResult()
    subject = _extract_subject(text)
    if subject:
        result.fields["Subject"] = subject
    result.default("Subject", "Follow up from Slack")
    result.default("Status", "Not Started")
    result.default("Priority", "Normal")
    return result


SALESFORCE_EXTRACTORS: Dict[str, Callable[[str], ExtractionResult]] = {
    "Lead": extract_lead_slots,
    "Contact": extract_contact_slots,
    "Opportunity": extract_opportunity_slots,
    "Case": extract_case_slots,
    "Task": extract_task_slots,
    "Account": extract_account_slots,
}


def extract_ticket_slots(text: str, history: Optional[ConversationWindow] = None) -> ExtractionResult:
    """Summary, description, project and issue type for a Jira ticket."""
    result = ExtractionResult()
    lowered = text.lower()

    description = DESCRIPTION_PATTERN.search(text)
    if description:
        result.fields["description"] = description.group(1).strip()

    summary = _extract_subject(text)
    if summary:
        result.fields["summary"] = summary[:255]

    project = PROJECT_PATTERN.search(text)
    if project:
        result.fields["project"] = project.group(1)

    for keyword, issue_type in ISSUE_TYPES.items():
        if re.search(rf"\b{keyword}\b", lowered):
            result.fields["issue_type"] = issue_type
            break

    result.default("summary", text.strip()[:100] or "Ticket from Slack")
    if not result.fields.get("description"):
        result.fields["description"] = _transcript(history, text)
        result.defaulted.append("description")
    result.default("project", None)
    result.default("issue_type", "Task")
    return result


def extract_search_slots(text: str) -> ExtractionResult:
    result = ExtractionResult()
    match = SEARCH_TERM_PATTERN.search(text)
    if match:
        term = _clean(match.group(1)).replace('"', '\\"')
        if term:
            result.fields["query"] = term
            result.fields["jql"] = f'text ~ "{term}" ORDER BY updated DESC'
    result.default("query", "")
    result.default("jql", "ORDER BY updated DESC")
    return result


def _transcript(history: Optional[ConversationWindow], text: str) -> str:
    if history is None or not len(history):
        return text.strip()
    lines = [f"{message.role}: {message.content}" for message in history]
    lines.append(f"user: {text.strip()}")
    return "Conversation:\n" + "\n".join(lines)


def _mentions_ticket_creation(lowered: str) -> bool:
    return "create" in lowered and ("jira" in lowered or "ticket" in lowered or "issue" in lowered)


def _mentions_ticket_search(lowered: str) -> bool:
    return any(phrase in lowered for phrase in ("search jira", "find tickets", "search tickets", "find jira"))


class IntentRouter:
    """Decides, per turn, between a canned reply, a structured action and a completion."""

    def __init__(self, canned: CannedResponseService, credentials: CredentialService):
        self.canned = canned
        self.credentials = credentials

    async def route(self, message: str, team_id: str, user_id: str, history: Optional[ConversationWindow] = None) -> Action:
        """
        Route a message.

        Args:
            message: Cleaned message text in its original case
            team_id: Team the message belongs to
            user_id: Author of the message
            history: Conversation window assembled for this turn

        Returns:
            CannedReply, StructuredAction or Completion, in that priority
        """
        canned = await self.canned.find_match(team_id, message)
        if canned is not None:
            logger.info(f"Canned response {canned.id} matched for team {team_id}")
            reply = render_canned_response(canned.response_text)
            return CannedReply(response_id=canned.id, text=reply.text, blocks=reply.blocks)

        action = await self._structured_action(message, team_id, user_id, history)
        if action is not None:
            logger.info(f"Routing to {action.system}.{action.operation} (defaults: {action.defaulted})")
            return action

        return Completion()

    async def _structured_action(
        self,
        message: str,
        team_id: str,
        user_id: str,
        history: Optional[ConversationWindow]
    ) -> Optional[StructuredAction]:
        lowered = message.lower()

        if "jira" in lowered:
            action = await self._jira_action(message, lowered, team_id, history)
            if action is not None:
                return action

        crm = CRM_PATTERN.search(lowered)
        if crm and await self.credentials.get_token_pair(team_id, user_id) is not None:
            sobject = SALESFORCE_OBJECTS[crm.group(2)]
            slots = SALESFORCE_EXTRACTORS[sobject](message)
            return StructuredAction(
                system="salesforce",
                operation=f"create_{sobject.lower()}",
                params={"object_type": sobject, "fields": slots.fields},
                defaulted=slots.defaulted
            )

        if "jira" not in lowered:
            return await self._jira_action(message, lowered, team_id, history)
        return None

    async def _jira_action(
        self,
        message: str,
        lowered: str,
        team_id: str,
        history: Optional[ConversationWindow]
    ) -> Optional[StructuredAction]:
        ticket_key = TICKET_KEY_PATTERN.search(message)
        if ticket_key and ("status" in lowered or "show" in lowered):
            operation, slots = "get_ticket", ExtractionResult(fields={"ticket_key": ticket_key.group(1)})
        elif _mentions_ticket_search(lowered):
            operation, slots = "search_tickets", extract_search_slots(message)
        elif _mentions_ticket_creation(lowered):
            operation, slots = "create_ticket", extract_ticket_slots(message, history)
        else:
            return None

        if await self.credentials.get_jira_credential(team_id) is None:
            return None

        return StructuredAction(system="jira", operation=operation, params=slots.fields, defaulted=slots.defaulted)
