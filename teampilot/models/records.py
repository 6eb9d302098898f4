"""
Team-scoped configuration records persisted in the key-value store.
"""

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class Message(BaseModel):
    """One entry of a conversation window."""
    role: Literal["user", "assistant"]
    content: str

    def to_openai(self) -> dict:
        return {"role": self.role, "content": self.content}


class ConversationWindow(BaseModel):
    """Chronological (oldest first) conversation history for a single turn."""
    messages: List[Message] = Field(default_factory=list)
    cap: int = 20

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)

    def to_openai(self) -> List[dict]:
        return [message.to_openai() for message in self.messages]


class CannedResponse(BaseModel):
    """A trigger phrase mapped to a fixed reply that bypasses the language model."""
    id: str
    trigger_phrase: str
    response_text: str
    enabled: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_wildcard(self) -> bool:
        return self.trigger_phrase.strip().endswith("*")

    @property
    def normalized_trigger(self) -> str:
        """Lower-cased trigger without the trailing wildcard."""
        trigger = self.trigger_phrase.strip().lower()
        return trigger[:-1].rstrip() if trigger.endswith("*") else trigger

    def matches_exactly(self, text: str) -> bool:
        return not self.is_wildcard and text == self.normalized_trigger

    def matches_prefix(self, text: str) -> bool:
        return self.is_wildcard and text.startswith(self.normalized_trigger)


ResponseType = Literal["analytical", "summary", "questions", "insights"]


class ChannelMonitorConfig(BaseModel):
    """A channel the bot watches and answers in-thread."""
    channel_id: str
    channel_name: str
    response_type: ResponseType = "analytical"
    enabled: bool = True
    auto_create_ticket: bool = False
    added_at: Optional[datetime] = None
    added_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class UserBehaviorProfile(BaseModel):
    """Per (team, user) behavioural overrides injected into the system instruction."""
    tone: str = "professional"
    business_type: str = "general"
    company_name: Optional[str] = None
    additional_directions: Optional[str] = None
    welcome_message: Optional[str] = None


class JiraCredential(BaseModel):
    """Issue-tracker credentials for a team."""
    type: Literal["jira"] = "jira"
    base_url: str
    username: str
    api_token: str
    default_project: Optional[str] = None


class TokenPair(BaseModel):
    """CRM OAuth credentials for a (team, user) pair; refreshed in place."""
    access_token: str
    refresh_token: Optional[str] = None
    instance_url: str
    created_at: Optional[datetime] = None
