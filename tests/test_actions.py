"""
Tests for structured-action execution.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from teampilot.errors import IntegrationAuthExpired, IntegrationNotConfigured
from teampilot.models.records import JiraCredential, TokenPair
from teampilot.services.actions import ActionExecutor
from teampilot.services.jira import JiraService, JiraTicket
from teampilot.services.router import StructuredAction
from teampilot.services.salesforce import SalesforceRecord, SalesforceService


@pytest.fixture
def jira():
    service = Mock(spec=JiraService)
    service.create_ticket = AsyncMock(return_value=JiraTicket(
        key="OPS-7", url="https://acme.atlassian.net/browse/OPS-7", summary="Login broken"
    ))
    return service


@pytest.fixture
def salesforce():
    service = Mock(spec=SalesforceService)
    service.create_record = AsyncMock(return_value=SalesforceRecord(
        object_type="Lead", id="00Q1", url="https://acme.my.salesforce.com/lightning/r/Lead/00Q1/view"
    ))
    service.refresh_token = AsyncMock(return_value=TokenPair(
        access_token="new-access", refresh_token="refresh-1", instance_url="https://acme.my.salesforce.com"
    ))
    return service


@pytest.fixture
def executor(credential_service, jira, salesforce):
    return ActionExecutor(credential_service, jira, salesforce)


def _lead_action():
    return StructuredAction(
        system="salesforce",
        operation="create_lead",
        params={"object_type": "Lead", "fields": {"LastName": "Doe", "Company": "Unknown Company"}},
        defaulted=["Company"]
    )


async def _save_token(credential_service):
    await credential_service.save_token_pair("T1", "U1", TokenPair(
        access_token="old-access", refresh_token="refresh-1", instance_url="https://acme.my.salesforce.com"
    ))


@pytest.mark.asyncio
async def test_jira_create_ticket(executor, credential_service, jira):
    """Test Jira ticket creation and the reply text."""
    await credential_service.save_jira_credential("T1", JiraCredential(
        base_url="https://acme.atlassian.net", username="bot", api_token="secret"
    ))
    action = StructuredAction(
        system="jira",
        operation="create_ticket",
        params={"summary": "Login broken", "description": "details", "project": None, "issue_type": "Bug"},
        defaulted=["project"]
    )

    result = await executor.execute(action, "T1", "U1")

    assert result.url == "https://acme.atlassian.net/browse/OPS-7"
    assert "<https://acme.atlassian.net/browse/OPS-7|OPS-7>" in result.text
    assert "Default values" not in result.text
    kwargs = jira.create_ticket.call_args.kwargs
    assert kwargs["summary"] == "Login broken"
    assert kwargs["issue_type"] == "Bug"


@pytest.mark.asyncio
async def test_missing_credentials_raise_not_configured(executor, jira, salesforce):
    """Test actions without credentials fail before any remote call."""
    with pytest.raises(IntegrationNotConfigured) as exc_info:
        await executor.execute(StructuredAction(system="jira", operation="create_ticket", params={"summary": "x"}), "T1", "U1")
    assert "Jira credentials not configured" in str(exc_info.value)

    with pytest.raises(IntegrationNotConfigured):
        await executor.execute(_lead_action(), "T1", "U1")

    jira.create_ticket.assert_not_awaited()
    salesforce.create_record.assert_not_awaited()


@pytest.mark.asyncio
async def test_salesforce_create_lists_defaults(executor, credential_service, salesforce):
    """Test Salesforce creation reports which values were defaulted."""
    await _save_token(credential_service)

    result = await executor.execute(_lead_action(), "T1", "U1")

    assert "Created Salesforce Lead" in result.text
    assert "Default values were used for: Company" in result.text
    salesforce.refresh_token.assert_not_awaited()


@pytest.mark.asyncio
async def test_salesforce_refreshes_and_persists_token(executor, credential_service, salesforce):
    """Test an expired session is refreshed once and the new token is stored."""
    await _save_token(credential_service)
    salesforce.create_record.side_effect = [IntegrationAuthExpired("salesforce", "expired"), SalesforceRecord(
        object_type="Lead", id="00Q1", url="https://acme.my.salesforce.com/lightning/r/Lead/00Q1/view"
    )]

    result = await executor.execute(_lead_action(), "T1", "U1")

    assert result.url.endswith("/Lead/00Q1/view")
    assert salesforce.refresh_token.await_count == 1
    assert salesforce.create_record.await_count == 2
    retried_token = salesforce.create_record.await_args_list[1].args[0]
    assert retried_token.access_token == "new-access"
    assert (await credential_service.get_token_pair("T1", "U1")).access_token == "new-access"


@pytest.mark.asyncio
async def test_salesforce_second_expiry_is_final(executor, credential_service, salesforce):
    """Test a second expiry after refresh surfaces without another retry."""
    await _save_token(credential_service)
    salesforce.create_record.side_effect = IntegrationAuthExpired("salesforce", "Salesforce session expired: still invalid")

    with pytest.raises(IntegrationAuthExpired):
        await executor.execute(_lead_action(), "T1", "U1")

    assert salesforce.create_record.await_count == 2
    assert salesforce.refresh_token.await_count == 1
