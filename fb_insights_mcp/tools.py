"""
Tool handler table.

Each tool is a ``ToolHandler`` subclass keyed by a member of the closed
``ToolName`` enum. A handler validates its arguments, derives one Graph API
request from them, and turns the outcome into an MCP tool result. Faults
raised by the Graph client never escape ``ToolHandler.execute``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from mcp.types import CallToolResult, Tool
from pydantic import ValidationError

from .errors import ApiError, FacebookMCPError, UnknownToolError
from .helpers import dump_json, error_result, format_validation_error, text_result
from .models import (
    ToolInput, ListAdAccountsInput, AccountInfoInput, InsightsGetInput,
    CampaignsInput, AdSetsInput, AdsInput, GraphCallInput,
)

logger = logging.getLogger("fb_insights_mcp.tools")

AD_ACCOUNT_FIELDS = "id,name,account_id,account_status"
ACCOUNT_INFO_FIELDS = (
    "id,name,account_id,account_status,age,amount_spent,balance,business,currency,"
    "min_campaign_group_spend_cap"
)
CAMPAIGN_FIELDS = (
    "id,name,status,objective,spend_cap,budget_remaining,daily_budget,lifetime_budget,"
    "start_time,stop_time"
)
ADSET_FIELDS = (
    "id,name,status,campaign_id,daily_budget,lifetime_budget,targeting,optimization_goal,"
    "bid_amount"
)
AD_FIELDS = "id,name,status,adset_id,creative,tracking_specs,bid_amount"


class ToolName(str, Enum):
    LIST_AD_ACCOUNTS = "facebook-list-ad-accounts"
    ACCOUNT_INFO = "facebook-account-info"
    INSIGHTS_GET = "facebook-insights-get"
    CAMPAIGNS = "facebook-campaigns"
    ADSETS = "facebook-adsets"
    ADS = "facebook-ads"
    GRAPH_CALL = "facebook-insights"


@dataclass(frozen=True)
class GraphRequest:
    """One outbound Graph API call, as derived from tool arguments."""

    endpoint: str
    method: str = "GET"
    query_params: Dict[str, Any] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


def status_filter(status: str) -> Dict[str, str]:
    """Query fragment for a status filter; ``ALL`` means no filter at all."""
    if status == "ALL":
        return {}
    return {"status": status}


# =============================================================================
# Handler base
# =============================================================================

class ToolHandler:
    """A single tool: ``execute(arguments) -> CallToolResult``.

    ``client`` is anything with the ``GraphClient.request`` coroutine
    signature.
    """

    name: ToolName
    description: str
    input_model: Type[ToolInput]
    label: str

    def __init__(self, client):
        self.client = client

    @classmethod
    def definition(cls) -> Tool:
        return Tool(
            name=cls.name.value,
            description=cls.description,
            inputSchema=cls.input_model.model_json_schema(by_alias=True),
        )

    def build_request(self, params: ToolInput) -> GraphRequest:
        raise NotImplementedError

    async def execute(self, arguments: Optional[Dict[str, Any]]) -> CallToolResult:
        try:
            params = self.input_model.model_validate(arguments if arguments is not None else {})
        except ValidationError as e:
            logger.info("Invalid arguments for %s: %s", self.name.value, e.error_count())
            return error_result(format_validation_error(e))

        request = self.build_request(params)
        logger.info("Executing %s -> %s %s", self.name.value, request.method, request.endpoint)

        try:
            outcome = await self.client.request(
                request.endpoint,
                method=request.method,
                query_params=request.query_params,
                body=request.body,
            )
            payload = outcome.raise_for_error()
        except ApiError as e:
            return error_result(dump_json(e.payload))
        except FacebookMCPError as e:
            logger.warning("%s failed: %s", self.name.value, e.message)
            return error_result(e.message)

        return text_result(f"{self.label}: {dump_json(payload)}")


# =============================================================================
# Tools
# =============================================================================

class ListAdAccounts(ToolHandler):
    name = ToolName.LIST_AD_ACCOUNTS
    description = "Lista todas as contas de anúncios do Facebook disponíveis"
    input_model = ListAdAccountsInput
    label = "Contas de anúncios"

    def build_request(self, params: ListAdAccountsInput) -> GraphRequest:
        return GraphRequest("me/adaccounts", query_params={"fields": AD_ACCOUNT_FIELDS})


class AccountInfo(ToolHandler):
    name = ToolName.ACCOUNT_INFO
    description = "Obtém informações detalhadas sobre uma conta específica do Facebook"
    input_model = AccountInfoInput
    label = "Informações da conta"

    def build_request(self, params: AccountInfoInput) -> GraphRequest:
        return GraphRequest(params.account_id, query_params={"fields": ACCOUNT_INFO_FIELDS})


class InsightsGet(ToolHandler):
    name = ToolName.INSIGHTS_GET
    description = "Recupera dados de insights para uma conta específica do Facebook"
    input_model = InsightsGetInput
    label = "Insights da conta"

    def build_request(self, params: InsightsGetInput) -> GraphRequest:
        return GraphRequest(
            f"{params.account_id}/insights",
            query_params={
                "fields": ",".join(params.metrics),
                "date_preset": params.date_preset,
                "time_increment": params.time_increment,
            },
        )


class Campaigns(ToolHandler):
    name = ToolName.CAMPAIGNS
    description = "Obtém campanhas para uma conta específica do Facebook"
    input_model = CampaignsInput
    label = "Campanhas"

    def build_request(self, params: CampaignsInput) -> GraphRequest:
        return GraphRequest(
            f"{params.account_id}/campaigns",
            query_params={"fields": CAMPAIGN_FIELDS, **status_filter(params.status)},
        )


class AdSets(ToolHandler):
    name = ToolName.ADSETS
    description = "Obtém conjuntos de anúncios para uma campanha ou conta do Facebook"
    input_model = AdSetsInput
    label = "Conjuntos de anúncios"

    def build_request(self, params: AdSetsInput) -> GraphRequest:
        root = params.campaign_id or params.account_id
        return GraphRequest(
            f"{root}/adsets",
            query_params={"fields": ADSET_FIELDS, **status_filter(params.status)},
        )


class Ads(ToolHandler):
    name = ToolName.ADS
    description = "Obtém anúncios para um conjunto de anúncios ou conta do Facebook"
    input_model = AdsInput
    label = "Anúncios"

    def build_request(self, params: AdsInput) -> GraphRequest:
        root = params.adset_id or params.account_id
        return GraphRequest(
            f"{root}/ads",
            query_params={"fields": AD_FIELDS, **status_filter(params.status)},
        )


class GraphCall(ToolHandler):
    name = ToolName.GRAPH_CALL
    description = "Handler genérico para fazer chamadas personalizadas à API do Facebook"
    input_model = GraphCallInput
    label = "Resposta da API do Facebook"

    def build_request(self, params: GraphCallInput) -> GraphRequest:
        return GraphRequest(
            params.endpoint,
            method=params.method,
            query_params=dict(params.query_params),
            body=params.body if params.method != "GET" else None,
        )


HANDLERS: Dict[ToolName, Type[ToolHandler]] = {
    handler.name: handler
    for handler in (ListAdAccounts, AccountInfo, InsightsGet, Campaigns, AdSets, Ads, GraphCall)
}


# =============================================================================
# Registry
# =============================================================================

class ToolRegistry:
    """Name-indexed view of the handler table bound to one Graph client."""

    def __init__(self, client):
        missing = [name.value for name in ToolName if name not in HANDLERS]
        if missing:
            raise RuntimeError(f"No handler registered for: {', '.join(missing)}")
        self._handlers = {name: HANDLERS[name](client) for name in ToolName}
        self._definitions = [HANDLERS[name].definition() for name in ToolName]

    def definitions(self) -> List[Tool]:
        return list(self._definitions)

    def names(self) -> List[str]:
        return [name.value for name in ToolName]

    def resolve(self, name: Any) -> ToolHandler:
        try:
            return self._handlers[ToolName(name)]
        except ValueError:
            raise UnknownToolError(name) from None

    async def call(self, name: Any, arguments: Optional[Dict[str, Any]] = None) -> CallToolResult:
        """Run one tool. Raises ``UnknownToolError`` for names outside the table."""
        return await self.resolve(name).execute(arguments)
