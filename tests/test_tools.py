"""Tool handler table with a fake Graph client."""

import asyncio
import json

import pytest

from fb_insights_mcp.errors import ConfigurationError, TransportFailure, UnknownToolError
from fb_insights_mcp.graph import GraphApiOutcome
from fb_insights_mcp.helpers import result_text
from fb_insights_mcp.tools import HANDLERS, ToolName, ToolRegistry


class FakeGraphClient:
    """Records every request and answers with a fixed outcome or fault."""

    def __init__(self, outcome=None, fault=None):
        self.outcome = outcome or GraphApiOutcome(http_status=200, payload={"data": []})
        self.fault = fault
        self.calls = []

    async def request(self, endpoint, method="GET", query_params=None, body=None):
        self.calls.append({"endpoint": endpoint, "method": method, "query": query_params, "body": body})
        if self.fault is not None:
            raise self.fault
        return self.outcome


def call(name, arguments=None, **client_kwargs):
    client = FakeGraphClient(**client_kwargs)
    result = asyncio.run(ToolRegistry(client).call(name, arguments))
    return result, client


def test_every_tool_name_has_a_handler():
    assert set(HANDLERS) == set(ToolName)
    names = [tool.name for tool in ToolRegistry(FakeGraphClient()).definitions()]
    assert names == [name.value for name in ToolName]


def test_input_schemas_use_wire_names():
    definitions = {t.name: t for t in ToolRegistry(FakeGraphClient()).definitions()}

    insights = definitions["facebook-insights-get"].inputSchema
    assert set(insights["required"]) == {"accountId", "metrics"}
    assert insights["properties"]["metrics"]["type"] == "array"

    adsets = definitions["facebook-adsets"].inputSchema
    assert "campaignId" in adsets["properties"]
    assert adsets["required"] == ["accountId"]

    assert definitions["facebook-list-ad-accounts"].inputSchema["properties"] == {}


def test_list_ad_accounts_needs_no_arguments():
    result, client = call("facebook-list-ad-accounts")

    assert not result.isError
    assert client.calls == [{
        "endpoint": "me/adaccounts",
        "method": "GET",
        "query": {"fields": "id,name,account_id,account_status"},
        "body": None,
    }]
    assert result_text(result).startswith("Contas de anúncios: ")


def test_account_info_formats_payload():
    outcome = GraphApiOutcome(http_status=200, payload={"id": "act_123", "name": "Test"})

    result, client = call("facebook-account-info", {"accountId": "act_123"}, outcome=outcome)

    assert client.calls[0]["endpoint"] == "act_123"
    assert "currency" in client.calls[0]["query"]["fields"]
    text = result_text(result)
    assert text.startswith("Informações da conta: ")
    assert json.loads(text.split(": ", 1)[1]) == {"id": "act_123", "name": "Test"}
    assert len(result.content) == 1


def test_insights_joins_metrics_and_applies_defaults():
    result, client = call("facebook-insights-get", {"accountId": "act_1", "metrics": ["impressions", "spend"]})

    assert not result.isError
    assert client.calls[0]["endpoint"] == "act_1/insights"
    assert client.calls[0]["query"] == {"fields": "impressions,spend", "date_preset": "last_30d", "time_increment": 1}


def test_insights_requires_metrics():
    result, client = call("facebook-insights-get", {"accountId": "act_1", "metrics": []})

    assert result.isError
    assert result_text(result).startswith("Erro: ")
    assert "metrics" in result_text(result)
    assert client.calls == []


@pytest.mark.parametrize("tool", ["facebook-campaigns", "facebook-adsets", "facebook-ads"])
def test_status_all_omits_filter(tool):
    _, client = call(tool, {"accountId": "act_1", "status": "ALL"})
    assert "status" not in client.calls[0]["query"]


@pytest.mark.parametrize("tool", ["facebook-campaigns", "facebook-adsets", "facebook-ads"])
def test_status_active_is_sent(tool):
    _, client = call(tool, {"accountId": "act_1", "status": "ACTIVE"})
    assert client.calls[0]["query"]["status"] == "ACTIVE"


def test_status_defaults_to_active_and_is_case_insensitive():
    _, client = call("facebook-campaigns", {"accountId": "act_1"})
    assert client.calls[0]["query"]["status"] == "ACTIVE"

    _, client = call("facebook-campaigns", {"accountId": "act_1", "status": "paused"})
    assert client.calls[0]["query"]["status"] == "PAUSED"


def test_invalid_status_is_rejected():
    result, client = call("facebook-ads", {"accountId": "act_1", "status": "DELETED"})
    assert result.isError
    assert "status" in result_text(result)
    assert client.calls == []


def test_adsets_prefer_campaign_over_account():
    _, client = call("facebook-adsets", {"accountId": "act_1", "campaignId": "23850"})
    assert client.calls[0]["endpoint"] == "23850/adsets"

    _, client = call("facebook-adsets", {"accountId": "act_1"})
    assert client.calls[0]["endpoint"] == "act_1/adsets"


def test_ads_prefer_adset_over_account():
    _, client = call("facebook-ads", {"accountId": "act_1", "adsetId": "777"})
    assert client.calls[0]["endpoint"] == "777/ads"


def test_passthrough_forwards_request_verbatim():
    arguments = {
        "endpoint": "act_1/insights",
        "method": "post",
        "queryParams": {"level": "campaign"},
        "body": {"name": "x"},
    }

    result, client = call("facebook-insights", arguments)

    assert not result.isError
    assert client.calls[0] == {
        "endpoint": "act_1/insights",
        "method": "POST",
        "query": {"level": "campaign"},
        "body": {"name": "x"},
    }


def test_passthrough_get_drops_body():
    _, client = call("facebook-insights", {"endpoint": "me", "body": {"ignored": True}})
    assert client.calls[0]["method"] == "GET"
    assert client.calls[0]["body"] is None
    assert client.calls[0]["query"] == {}


@pytest.mark.parametrize("endpoint", ["https://attacker.example/collect", "//attacker.example/collect"])
def test_passthrough_rejects_absolute_urls(endpoint):
    result, client = call("facebook-insights", {"endpoint": endpoint})
    assert result.isError
    assert "endpoint" in result_text(result)
    assert client.calls == []


def test_api_error_payload_is_reported():
    error_body = {"error": {"message": "Unsupported get request.", "code": 100}}
    outcome = GraphApiOutcome(http_status=400, error_payload=error_body)

    result, _ = call("facebook-account-info", {"accountId": "act_404"}, outcome=outcome)

    assert result.isError
    text = result_text(result)
    assert text.startswith("Erro: ")
    assert json.loads(text[len("Erro: "):]) == error_body


@pytest.mark.parametrize("fault", [
    ConfigurationError("FB_ACCESS_TOKEN não configurado"),
    TransportFailure("Falha ao contactar a Graph API: timeout"),
])
def test_client_faults_become_error_results(fault):
    result, _ = call("facebook-list-ad-accounts", {}, fault=fault)
    assert result.isError
    assert result_text(result) == f"Erro: {fault.message}"


def test_extra_arguments_are_ignored():
    result, client = call("facebook-list-ad-accounts", {"sessionId": "n8n-123"})
    assert not result.isError
    assert len(client.calls) == 1


def test_non_object_arguments_are_a_validation_error():
    result, client = call("facebook-account-info", ["act_1"])
    assert result.isError
    assert client.calls == []


def test_unknown_tool_raises():
    with pytest.raises(UnknownToolError) as exc_info:
        call("facebook-delete-everything", {})
    assert "facebook-delete-everything" in exc_info.value.message
