"""
Admin JSON API for per-team configuration records.

All routes require HTTP basic credentials matching the ``admin`` config
section.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import logging
import secrets

from ..config import Config
from ..models.records import JiraCredential, ResponseType, TokenPair, UserBehaviorProfile

logger = logging.getLogger(__name__)

admin_router = APIRouter()
security = HTTPBasic()


class CannedResponseCreate(BaseModel):
    trigger_phrase: str
    response_text: str
    enabled: bool = True


class CannedResponseUpdate(BaseModel):
    trigger_phrase: Optional[str] = None
    response_text: Optional[str] = None
    enabled: Optional[bool] = None


class ChannelMonitorCreate(BaseModel):
    channel_id: str
    channel_name: str
    response_type: ResponseType = "analytical"
    enabled: bool = True
    auto_create_ticket: bool = False
    added_by: Optional[str] = None


class ChannelMonitorUpdate(BaseModel):
    channel_name: Optional[str] = None
    response_type: Optional[ResponseType] = None
    enabled: Optional[bool] = None
    auto_create_ticket: Optional[bool] = None


def verify_admin_credentials(config: Config, credentials: HTTPBasicCredentials) -> bool:
    """Verify admin credentials."""
    if not config.admin.enabled:
        return False

    if not config.admin.username or not config.admin.password:
        return False

    return (
        secrets.compare_digest(credentials.username, config.admin.username) and
        secrets.compare_digest(credentials.password, config.admin.password)
    )


async def require_admin(request: Request, credentials: HTTPBasicCredentials = Depends(security)) -> str:
    if not verify_admin_credentials(request.app.state.config, credentials):
        raise HTTPException(status_code=401, detail="Invalid credentials", headers={"WWW-Authenticate": "Basic"})
    return credentials.username


def _saved(result: bool, what: str) -> None:
    if not result:
        raise HTTPException(status_code=503, detail=f"Failed to save {what}: store unavailable")


# Canned responses

@admin_router.get("/teams/{team_id}/canned-responses")
async def list_canned_responses(team_id: str, request: Request, _: str = Depends(require_admin)):
    responses = await request.app.state.canned.list_responses(team_id)
    return [response.model_dump(mode="json") for response in responses]


@admin_router.post("/teams/{team_id}/canned-responses", status_code=201)
async def create_canned_response(team_id: str, body: CannedResponseCreate, request: Request, _: str = Depends(require_admin)):
    if not body.trigger_phrase.strip():
        raise HTTPException(status_code=400, detail="Trigger phrase must not be empty")
    response = await request.app.state.canned.create_response(team_id, body.trigger_phrase, body.response_text, body.enabled)
    if response is None:
        raise HTTPException(status_code=503, detail="Failed to save canned response: store unavailable")
    return response.model_dump(mode="json")


@admin_router.get("/teams/{team_id}/canned-responses/{response_id}")
async def get_canned_response(team_id: str, response_id: str, request: Request, _: str = Depends(require_admin)):
    response = await request.app.state.canned.get_response(team_id, response_id)
    if response is None:
        raise HTTPException(status_code=404, detail="Canned response not found")
    return response.model_dump(mode="json")


@admin_router.put("/teams/{team_id}/canned-responses/{response_id}")
async def update_canned_response(team_id: str, response_id: str, body: CannedResponseUpdate, request: Request, _: str = Depends(require_admin)):
    response = await request.app.state.canned.update_response(team_id, response_id, **body.model_dump())
    if response is None:
        raise HTTPException(status_code=404, detail="Canned response not found")
    return response.model_dump(mode="json")


@admin_router.delete("/teams/{team_id}/canned-responses/{response_id}")
async def delete_canned_response(team_id: str, response_id: str, request: Request, _: str = Depends(require_admin)):
    _saved(await request.app.state.canned.delete_response(team_id, response_id), "canned response")
    return {"status": "deleted"}


# Channel monitors

@admin_router.get("/channel-monitors/response-types")
async def list_response_types(request: Request, _: str = Depends(require_admin)) -> List[Dict[str, str]]:
    return request.app.state.monitors.response_types()


@admin_router.get("/teams/{team_id}/channel-monitors")
async def list_channel_monitors(team_id: str, request: Request, _: str = Depends(require_admin)):
    channels = await request.app.state.monitors.list_channels(team_id)
    return [channel.model_dump(mode="json") for channel in channels]


@admin_router.post("/teams/{team_id}/channel-monitors", status_code=201)
async def add_channel_monitor(team_id: str, body: ChannelMonitorCreate, request: Request, admin: str = Depends(require_admin)):
    result = await request.app.state.monitors.add_channel(
        team_id,
        body.channel_id,
        body.channel_name,
        response_type=body.response_type,
        enabled=body.enabled,
        auto_create_ticket=body.auto_create_ticket,
        added_by=body.added_by or admin
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result.channel.model_dump(mode="json")


@admin_router.put("/teams/{team_id}/channel-monitors/{channel_id}")
async def update_channel_monitor(team_id: str, channel_id: str, body: ChannelMonitorUpdate, request: Request, _: str = Depends(require_admin)):
    updates: Dict[str, Any] = body.model_dump(exclude_none=True)
    result = await request.app.state.monitors.update_channel(team_id, channel_id, updates)
    if not result.success:
        raise HTTPException(status_code=404 if result.error == "Channel not found" else 503, detail=result.error)
    return result.channel.model_dump(mode="json")


@admin_router.delete("/teams/{team_id}/channel-monitors/{channel_id}")
async def remove_channel_monitor(team_id: str, channel_id: str, request: Request, _: str = Depends(require_admin)):
    result = await request.app.state.monitors.remove_channel(team_id, channel_id)
    if not result.success:
        raise HTTPException(status_code=404 if result.error == "Channel not found" else 503, detail=result.error)
    return {"status": "deleted"}


# Behaviour profiles

@admin_router.get("/teams/{team_id}/profiles/{user_id}")
async def get_profile(team_id: str, user_id: str, request: Request, _: str = Depends(require_admin)):
    profile = await request.app.state.profiles.get_profile(team_id, user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile.model_dump(mode="json")


@admin_router.put("/teams/{team_id}/profiles/{user_id}")
async def save_profile(team_id: str, user_id: str, body: UserBehaviorProfile, request: Request, _: str = Depends(require_admin)):
    _saved(await request.app.state.profiles.save_profile(team_id, user_id, body), "profile")
    return body.model_dump(mode="json")


@admin_router.delete("/teams/{team_id}/profiles/{user_id}")
async def delete_profile(team_id: str, user_id: str, request: Request, _: str = Depends(require_admin)):
    _saved(await request.app.state.profiles.delete_profile(team_id, user_id), "profile")
    return {"status": "deleted"}


# Integrations

@admin_router.get("/teams/{team_id}/integrations")
async def list_integrations(team_id: str, request: Request, _: str = Depends(require_admin)):
    return {"integrations": await request.app.state.credentials.list_integrations(team_id)}


@admin_router.get("/teams/{team_id}/integrations/jira")
async def get_jira_integration(team_id: str, request: Request, _: str = Depends(require_admin)):
    credential = await request.app.state.credentials.get_jira_credential(team_id)
    if credential is None:
        raise HTTPException(status_code=404, detail="Jira is not configured")
    return credential.model_dump(mode="json", exclude={"api_token"})


@admin_router.put("/teams/{team_id}/integrations/jira")
async def save_jira_integration(team_id: str, body: JiraCredential, request: Request, _: str = Depends(require_admin)):
    if not await request.app.state.jira.validate_credentials(body):
        raise HTTPException(status_code=400, detail="Invalid Jira credentials: authentication with Jira failed")
    _saved(await request.app.state.credentials.save_jira_credential(team_id, body), "Jira credentials")
    logger.info(f"Jira integration configured for team {team_id}")
    return body.model_dump(mode="json", exclude={"api_token"})


@admin_router.delete("/teams/{team_id}/integrations/{integration}")
async def delete_integration(team_id: str, integration: str, request: Request, _: str = Depends(require_admin)):
    _saved(await request.app.state.credentials.delete_credential(team_id, integration), "credentials")
    return {"status": "deleted"}


@admin_router.put("/teams/{team_id}/users/{user_id}/salesforce-token")
async def save_salesforce_token(team_id: str, user_id: str, body: TokenPair, request: Request, _: str = Depends(require_admin)):
    _saved(await request.app.state.credentials.save_token_pair(team_id, user_id, body), "Salesforce token")
    return {"status": "saved", "instance_url": body.instance_url}


@admin_router.delete("/teams/{team_id}/users/{user_id}/salesforce-token")
async def delete_salesforce_token(team_id: str, user_id: str, request: Request, _: str = Depends(require_admin)):
    _saved(await request.app.state.credentials.delete_token_pair(team_id, user_id), "Salesforce token")
    return {"status": "deleted"}
