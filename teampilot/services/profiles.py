"""
User behaviour profiles.
"""

from typing import Optional

from ..config import StoreConfig
from ..models.records import UserBehaviorProfile
from ..store import RecordStore, record_key

BEHAVIOR_PROFILE = "behavior_profile"


class ProfileService:
    def __init__(self, records: RecordStore, config: Optional[StoreConfig] = None):
        self.records = records
        self.config = config or StoreConfig()

    async def get_profile(self, team_id: str, user_id: str) -> Optional[UserBehaviorProfile]:
        return await self.records.get_record(record_key(BEHAVIOR_PROFILE, team_id, user_id), UserBehaviorProfile)

    async def save_profile(self, team_id: str, user_id: str, profile: UserBehaviorProfile) -> bool:
        return await self.records.save_record(
            record_key(BEHAVIOR_PROFILE, team_id, user_id), profile, self.config.profile_ttl
        )

    async def delete_profile(self, team_id: str, user_id: str) -> bool:
        return await self.records.delete(record_key(BEHAVIOR_PROFILE, team_id, user_id))
