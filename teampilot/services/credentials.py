"""
Integration credentials and CRM token pairs.
"""

from datetime import datetime
from typing import List, Optional
import logging

from ..config import StoreConfig
from ..models.records import JiraCredential, TokenPair
from ..store import RecordStore, record_key

logger = logging.getLogger(__name__)

CREDENTIALS = "credentials"
SALESFORCE_TOKENS = "salesforce_tokens"


class CredentialService:
    """Reads and writes the records whose existence enables an integration."""

    def __init__(self, records: RecordStore, config: Optional[StoreConfig] = None):
        self.records = records
        self.config = config or StoreConfig()

    async def get_jira_credential(self, team_id: str) -> Optional[JiraCredential]:
        return await self.records.get_record(record_key(CREDENTIALS, team_id, "jira"), JiraCredential)

    async def save_jira_credential(self, team_id: str, credential: JiraCredential) -> bool:
        saved = await self.records.save_record(
            record_key(CREDENTIALS, team_id, "jira"), credential, self.config.credentials_ttl
        )
        if saved:
            logger.info(f"Stored Jira credentials for team {team_id}")
        return saved

    async def delete_credential(self, team_id: str, integration: str) -> bool:
        return await self.records.delete(record_key(CREDENTIALS, team_id, integration))

    async def list_integrations(self, team_id: str) -> List[str]:
        """Names of the integrations with a stored credential record."""
        prefix = record_key(CREDENTIALS, team_id, "")
        return [key[len(prefix):] for key in await self.records.list_keys(prefix)]

    async def get_token_pair(self, team_id: str, user_id: str) -> Optional[TokenPair]:
        return await self.records.get_record(record_key(SALESFORCE_TOKENS, team_id, user_id), TokenPair)

    async def save_token_pair(self, team_id: str, user_id: str, token: TokenPair) -> bool:
        if token.created_at is None:
            token = token.model_copy(update={"created_at": datetime.utcnow()})
        return await self.records.save_record(
            record_key(SALESFORCE_TOKENS, team_id, user_id), token, self.config.token_ttl
        )

    async def delete_token_pair(self, team_id: str, user_id: str) -> bool:
        return await self.records.delete(record_key(SALESFORCE_TOKENS, team_id, user_id))

    async def available_integrations(self, team_id: str, user_id: str) -> List[str]:
        """Team credentials plus Salesforce when this user holds a token pair."""
        integrations = await self.list_integrations(team_id)
        if "salesforce" not in integrations and await self.get_token_pair(team_id, user_id) is not None:
            integrations.append("salesforce")
        return integrations
