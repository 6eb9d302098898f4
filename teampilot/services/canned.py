"""
Canned-response repository and delivery rendering.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import json
import logging
import uuid

from pydantic import BaseModel

from ..config import StoreConfig
from ..models.records import CannedResponse
from ..store import RecordStore, record_key

logger = logging.getLogger(__name__)

CANNED_RESPONSE = "canned_response"

INVALID_BLOCKS_NOTICE = "_(This canned response looks like a block payload but is not valid JSON, so it was sent as plain text.)_"


class Reply(BaseModel):
    """Outgoing message content: plain text, optionally rendered as blocks."""
    text: str
    blocks: Optional[List[Dict[str, Any]]] = None


def render_canned_response(response_text: str) -> Reply:
    """
    Parse a canned response opportunistically.

    A JSON list of blocks, or an object with a ``blocks`` list, is delivered as
    blocks. Text that looks like JSON but does not parse is delivered as plain
    text with a notice appended; anything else is plain text.
    """
    stripped = response_text.strip()
    if not stripped or stripped[0] not in "[{":
        return Reply(text=response_text)

    try:
        payload = json.loads(stripped)
    except ValueError as e:
        logger.warning(f"Canned response is not valid JSON, sending as text: {e}")
        return Reply(text=f"{response_text}\n\n{INVALID_BLOCKS_NOTICE}")

    if isinstance(payload, dict):
        blocks = payload.get("blocks")
        fallback = payload.get("text")
    else:
        blocks = payload
        fallback = None

    if isinstance(blocks, list) and blocks and all(isinstance(block, dict) for block in blocks):
        return Reply(text=fallback or "Canned response", blocks=blocks)

    return Reply(text=response_text)


class CannedResponseService:
    """CRUD and trigger matching for a team's canned responses."""

    def __init__(self, records: RecordStore, config: Optional[StoreConfig] = None):
        self.records = records
        self.config = config or StoreConfig()

    async def list_responses(self, team_id: str) -> List[CannedResponse]:
        prefix = record_key(CANNED_RESPONSE, team_id, "")
        return [response for _, response in await self.records.list_records(prefix, CannedResponse)]

    async def list_enabled(self, team_id: str) -> List[CannedResponse]:
        return [response for response in await self.list_responses(team_id) if response.enabled]

    async def get_response(self, team_id: str, response_id: str) -> Optional[CannedResponse]:
        return await self.records.get_record(record_key(CANNED_RESPONSE, team_id, response_id), CannedResponse)

    async def create_response(self, team_id: str, trigger_phrase: str, response_text: str, enabled: bool = True) -> Optional[CannedResponse]:
        now = datetime.utcnow()
        response = CannedResponse(
            id=uuid.uuid4().hex,
            trigger_phrase=trigger_phrase.strip(),
            response_text=response_text,
            enabled=enabled,
            created_at=now,
            updated_at=now
        )
        if not await self._save(team_id, response):
            return None
        logger.info(f"Created canned response {response.id} for team {team_id}")
        return response

    async def update_response(self, team_id: str, response_id: str, **updates) -> Optional[CannedResponse]:
        existing = await self.get_response(team_id, response_id)
        if existing is None:
            return None

        changes = {field: value for field, value in updates.items() if value is not None}
        if "trigger_phrase" in changes:
            changes["trigger_phrase"] = changes["trigger_phrase"].strip()
        changes["updated_at"] = datetime.utcnow()
        response = existing.model_copy(update=changes)

        if not await self._save(team_id, response):
            return None
        return response

    async def delete_response(self, team_id: str, response_id: str) -> bool:
        return await self.records.delete(record_key(CANNED_RESPONSE, team_id, response_id))

    async def find_match(self, team_id: str, text: str) -> Optional[CannedResponse]:
        """
        Return the enabled response triggered by text.

        An exact trigger always beats a wildcard. Among wildcard triggers the
        longest prefix wins, and equal lengths are broken by ascending id.
        """
        normalized = text.strip().lower()
        if not normalized:
            return None

        responses = sorted(await self.list_enabled(team_id), key=lambda response: response.id)

        for response in responses:
            if response.matches_exactly(normalized):
                return response

        prefix_matches = [response for response in responses if response.matches_prefix(normalized)]
        if not prefix_matches:
            return None
        return min(prefix_matches, key=lambda response: (-len(response.normalized_trigger), response.id))

    async def _save(self, team_id: str, response: CannedResponse) -> bool:
        return await self.records.save_record(
            record_key(CANNED_RESPONSE, team_id, response.id), response, self.config.canned_response_ttl
        )

