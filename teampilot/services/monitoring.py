"""
Channel monitoring: per-team monitored channel configs and thread response counters.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from pydantic import BaseModel

from ..config import StoreConfig
from ..models.records import ChannelMonitorConfig
from ..store import RecordStore, record_key

logger = logging.getLogger(__name__)

CHANNEL_MONITOR = "channel_monitor"
THREAD_RESPONSE_COUNT = "thread_response_count"
DEFAULT_MAX_CHANNELS = 5

RESPONSE_TYPES = [
    {
        "value": "analytical",
        "label": "Analytical",
        "description": "Analyze messages for insights, patterns, and key points",
    },
    {
        "value": "summary",
        "label": "Summary",
        "description": "Provide concise summaries of recent activity",
    },
    {
        "value": "questions",
        "label": "Questions",
        "description": "Ask clarifying questions to facilitate discussion",
    },
    {
        "value": "insights",
        "label": "Insights",
        "description": "Share observations and actionable insights",
    },
]


class MonitorResult(BaseModel):
    success: bool
    error: Optional[str] = None
    channel: Optional[ChannelMonitorConfig] = None


class ChannelMonitorService:
    """Manages the channels a team has asked the bot to watch."""

    def __init__(self, records: RecordStore, config: Optional[StoreConfig] = None, max_channels: int = DEFAULT_MAX_CHANNELS):
        self.records = records
        self.config = config or StoreConfig()
        self.max_channels = max_channels

    def response_types(self) -> List[Dict[str, str]]:
        return [dict(response_type) for response_type in RESPONSE_TYPES]

    async def list_channels(self, team_id: str) -> List[ChannelMonitorConfig]:
        prefix = record_key(CHANNEL_MONITOR, team_id, "")
        return [channel for _, channel in await self.records.list_records(prefix, ChannelMonitorConfig)]

    async def get_channel(self, team_id: str, channel_id: str) -> Optional[ChannelMonitorConfig]:
        return await self.records.get_record(record_key(CHANNEL_MONITOR, team_id, channel_id), ChannelMonitorConfig)

    async def add_channel(
        self,
        team_id: str,
        channel_id: str,
        channel_name: str,
        response_type: str = "analytical",
        enabled: bool = True,
        auto_create_ticket: bool = False,
        added_by: Optional[str] = None
    ) -> MonitorResult:
        """Start monitoring a channel; rejected once the team is at its limit."""
        channels = await self.list_channels(team_id)

        if len(channels) >= self.max_channels:
            return MonitorResult(success=False, error=f"Maximum of {self.max_channels} channels can be monitored")

        if any(channel.channel_id == channel_id for channel in channels):
            return MonitorResult(success=False, error="Channel is already being monitored")

        channel = ChannelMonitorConfig(
            channel_id=channel_id,
            channel_name=channel_name,
            response_type=response_type,
            enabled=enabled,
            auto_create_ticket=auto_create_ticket,
            added_at=datetime.utcnow(),
            added_by=added_by
        )

        if not await self._save(team_id, channel):
            return MonitorResult(success=False, error="Channel monitor could not be saved")

        logger.info(f"Added monitored channel {channel_id} for team {team_id}")
        return MonitorResult(success=True, channel=channel)

    async def update_channel(self, team_id: str, channel_id: str, updates: Dict[str, Any]) -> MonitorResult:
        existing = await self.get_channel(team_id, channel_id)
        if existing is None:
            return MonitorResult(success=False, error="Channel not found")

        changes = {field: value for field, value in updates.items() if field not in ("channel_id", "added_at", "added_by")}
        changes["updated_at"] = datetime.utcnow()
        channel = ChannelMonitorConfig.model_validate({**existing.model_dump(), **changes})

        if not await self._save(team_id, channel):
            return MonitorResult(success=False, error="Channel monitor could not be saved")

        logger.info(f"Updated monitored channel {channel_id} for team {team_id}: {updates}")
        return MonitorResult(success=True, channel=channel)

    async def remove_channel(self, team_id: str, channel_id: str) -> MonitorResult:
        if await self.get_channel(team_id, channel_id) is None:
            return MonitorResult(success=False, error="Channel not found")

        if not await self.records.delete(record_key(CHANNEL_MONITOR, team_id, channel_id)):
            return MonitorResult(success=False, error="Channel monitor could not be removed")

        logger.info(f"Removed monitored channel {channel_id} for team {team_id}")
        return MonitorResult(success=True)

    async def find_enabled_channel(self, team_id: str, channel_id: str) -> Optional[ChannelMonitorConfig]:
        channel = await self.get_channel(team_id, channel_id)
        if channel is not None and channel.enabled:
            return channel
        return None

    async def get_thread_response_count(self, team_id: str, channel_id: str, thread_ts: str) -> int:
        value = await self.records.get_raw(record_key(THREAD_RESPONSE_COUNT, team_id, channel_id, thread_ts))
        try:
            return int(value) if value else 0
        except ValueError:
            logger.warning(f"Ignoring malformed thread response count {value!r}")
            return 0

    async def increment_thread_response_count(self, team_id: str, channel_id: str, thread_ts: str) -> int:
        """Bump the bot's response count for a thread; returns 0 if the store is down."""
        count = await self.get_thread_response_count(team_id, channel_id, thread_ts) + 1
        saved = await self.records.set_raw(
            record_key(THREAD_RESPONSE_COUNT, team_id, channel_id, thread_ts),
            str(count),
            self.config.thread_counter_ttl
        )
        if not saved:
            return 0
        logger.info(f"Thread {channel_id}/{thread_ts} response count is now {count}")
        return count

    async def _save(self, team_id: str, channel: ChannelMonitorConfig) -> bool:
        return await self.records.save_record(
            record_key(CHANNEL_MONITOR, team_id, channel.channel_id), channel, self.config.channel_monitor_ttl
        )
