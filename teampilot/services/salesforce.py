"""
Salesforce CRM integration.
"""

from datetime import datetime
from typing import Any, Dict, Optional
import logging

import httpx
from pydantic import BaseModel

from ..config import SalesforceConfig
from ..errors import IntegrationAuthExpired, IntegrationRequestFailed
from ..models.records import TokenPair

logger = logging.getLogger(__name__)

SESSION_EXPIRED_CODES = {"INVALID_SESSION_ID", "SESSION_EXPIRED"}


class SalesforceRecord(BaseModel):
    object_type: str
    id: str
    url: str


def extract_salesforce_error(response: httpx.Response) -> Dict[str, Optional[str]]:
    """Return the first ``{errorCode, message}`` of a Salesforce error body."""
    try:
        data = response.json()
    except ValueError:
        return {"errorCode": None, "message": response.text or f"HTTP {response.status_code}"}

    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        return {
            "errorCode": data.get("errorCode") or data.get("error"),
            "message": data.get("message") or data.get("error_description") or f"HTTP {response.status_code}",
        }
    return {"errorCode": None, "message": f"HTTP {response.status_code}"}


class SalesforceService:
    """Salesforce REST client for record creation and OAuth2 token refresh."""

    def __init__(self, config: SalesforceConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.http_client = http_client or httpx.AsyncClient(timeout=30)

    def _data_url(self, token: TokenPair) -> str:
        return f"{token.instance_url.rstrip('/')}/services/data/{self.config.api_version}"

    async def create_record(self, token: TokenPair, object_type: str, fields: Dict[str, Any]) -> SalesforceRecord:
        """Create an sObject record; raises IntegrationAuthExpired on an expired session."""
        url = f"{self._data_url(token)}/sobjects/{object_type}/"
        headers = {
            "Authorization": f"Bearer {token.access_token}",
            "Content-Type": "application/json"
        }

        try:
            response = await self.http_client.post(url, json=fields, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Salesforce request to {url} failed: {e}")
            raise IntegrationRequestFailed("salesforce", f"Failed to create {object_type}: {e}") from e

        if response.status_code >= 400:
            error = extract_salesforce_error(response)
            if response.status_code == 401 or error["errorCode"] in SESSION_EXPIRED_CODES:
                logger.warning(f"Salesforce session expired while creating {object_type}")
                raise IntegrationAuthExpired("salesforce", f"Salesforce session expired: {error['message']}")
            logger.error(f"Salesforce returned {response.status_code} creating {object_type}: {error}")
            raise IntegrationRequestFailed(
                "salesforce",
                f"Failed to create {object_type}: {error['message']}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        record_id = data.get("id") if isinstance(data, dict) else None
        if not record_id:
            logger.error(f"Salesforce answered {response.status_code} without a record id creating {object_type}: {response.text}")
            raise IntegrationRequestFailed(
                "salesforce",
                f"Failed to create {object_type}: Salesforce did not return a record id",
                status_code=response.status_code
            )

        logger.info(f"Created Salesforce {object_type} {record_id}")
        return SalesforceRecord(
            object_type=object_type,
            id=record_id,
            url=f"{token.instance_url.rstrip('/')}/lightning/r/{object_type}/{record_id}/view"
        )

    async def refresh_token(self, token: TokenPair) -> TokenPair:
        """Exchange the refresh token for a new access token."""
        if not token.refresh_token:
            raise IntegrationAuthExpired("salesforce", "Salesforce session expired and no refresh token is stored. Please reconnect Salesforce.")
        if not self.config.client_id or not self.config.client_secret:
            raise IntegrationAuthExpired("salesforce", "Salesforce session expired and token refresh is not configured.")

        try:
            response = await self.http_client.post(
                self.config.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": token.refresh_token,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error refreshing Salesforce token: {e}")
            raise IntegrationAuthExpired("salesforce", "Failed to refresh Salesforce token. Please reconnect Salesforce.") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict) or not data.get("access_token"):
            logger.error("Salesforce token refresh returned no access token")
            raise IntegrationAuthExpired("salesforce", "Failed to refresh Salesforce token. Please reconnect Salesforce.")
        logger.info("Refreshed Salesforce access token")
        return TokenPair(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or token.refresh_token,
            instance_url=data.get("instance_url") or token.instance_url,
            created_at=datetime.utcnow()
        )

    async def close(self) -> None:
        await self.http_client.aclose()
