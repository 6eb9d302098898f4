"""
Tests for integration credentials, token pairs and behaviour profiles.
"""

import pytest

from teampilot.models.records import JiraCredential, TokenPair, UserBehaviorProfile


@pytest.fixture
def jira_credential():
    return JiraCredential(
        base_url="https://acme.atlassian.net",
        username="bot@acme.com",
        api_token="secret",
        default_project="OPS"
    )


@pytest.mark.asyncio
async def test_jira_credential_round_trip(credential_service, jira_credential):
    """Test storing and reading Jira credentials."""
    assert await credential_service.get_jira_credential("T1") is None

    assert await credential_service.save_jira_credential("T1", jira_credential) is True
    assert await credential_service.get_jira_credential("T1") == jira_credential
    assert await credential_service.list_integrations("T1") == ["jira"]

    assert await credential_service.delete_credential("T1", "jira") is True
    assert await credential_service.list_integrations("T1") == []


@pytest.mark.asyncio
async def test_token_pair_gets_creation_time(credential_service):
    """Test a token pair without a timestamp is stamped on save."""
    await credential_service.save_token_pair("T1", "U1", TokenPair(access_token="a", instance_url="https://acme.my.salesforce.com"))

    token = await credential_service.get_token_pair("T1", "U1")
    assert token.access_token == "a"
    assert token.created_at is not None
    assert await credential_service.get_token_pair("T1", "U2") is None


@pytest.mark.asyncio
async def test_available_integrations(credential_service, jira_credential):
    """Test integrations combine team credentials and the user's token pair."""
    assert await credential_service.available_integrations("T1", "U1") == []

    await credential_service.save_jira_credential("T1", jira_credential)
    await credential_service.save_token_pair("T1", "U1", TokenPair(access_token="a", instance_url="https://acme.my.salesforce.com"))

    assert await credential_service.available_integrations("T1", "U1") == ["jira", "salesforce"]
    assert await credential_service.available_integrations("T1", "U2") == ["jira"]


@pytest.mark.asyncio
async def test_profile_round_trip(profile_service):
    """Test saving, reading and deleting a behaviour profile."""
    profile = UserBehaviorProfile(
        tone="casual",
        business_type="healthcare",
        company_name="Clinic Co",
        additional_directions="Avoid jargon.",
        welcome_message="Welcome!"
    )

    assert await profile_service.save_profile("T1", "U1", profile) is True
    assert await profile_service.get_profile("T1", "U1") == profile
    assert await profile_service.get_profile("T1", "U2") is None

    assert await profile_service.delete_profile("T1", "U1") is True
    assert await profile_service.get_profile("T1", "U1") is None
