"""Pydantic input models for all tools.

The JSON schema of each model is published as the tool's ``inputSchema``.
"""

from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator, ConfigDict

StatusFilter = Literal["ACTIVE", "PAUSED", "ARCHIVED", "ALL"]
HttpMethod = Literal["GET", "POST", "DELETE"]

ACCOUNT_ID_DESCRIPTION = "ID da conta do Facebook (formato: act_XXXXXXXXX)"


class ToolInput(BaseModel):
    """Base for tool inputs: camelCase on the wire, undeclared keys ignored."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", populate_by_name=True)


class StatusFilteredInput(ToolInput):
    status: StatusFilter = Field(
        default="ACTIVE",
        description="Status dos objetos a serem recuperados (ACTIVE, PAUSED, ARCHIVED, ALL)",
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class ListAdAccountsInput(ToolInput):
    """Input for listing ad accounts (no parameters)."""


class AccountInfoInput(ToolInput):
    """Input for fetching one ad account."""

    account_id: str = Field(..., alias="accountId", description=ACCOUNT_ID_DESCRIPTION, min_length=1)


class InsightsGetInput(ToolInput):
    """Input for account-level insights."""

    account_id: str = Field(..., alias="accountId", description=ACCOUNT_ID_DESCRIPTION, min_length=1)
    metrics: List[str] = Field(
        ...,
        description="Lista de métricas a serem recuperadas (ex: impressions, clicks, spend)",
        min_length=1,
    )
    date_preset: str = Field(
        default="last_30d",
        description="Período de tempo predefinido (ex: today, yesterday, last_7d, last_30d)",
    )
    time_increment: int = Field(
        default=1,
        description="Incremento de tempo em dias (1 = diário, 7 = semanal, 30 = mensal)",
        ge=1,
    )

    @field_validator("metrics")
    @classmethod
    def validate_metrics(cls, v: List[str]) -> List[str]:
        metrics = [m.strip() for m in v if m.strip()]
        if not metrics:
            raise ValueError("metrics must contain at least one non-empty metric name")
        return metrics


class CampaignsInput(StatusFilteredInput):
    """Input for listing campaigns."""

    account_id: str = Field(..., alias="accountId", description=ACCOUNT_ID_DESCRIPTION, min_length=1)


class AdSetsInput(StatusFilteredInput):
    """Input for listing ad sets of a campaign or an account."""

    account_id: str = Field(..., alias="accountId", description=ACCOUNT_ID_DESCRIPTION, min_length=1)
    campaign_id: Optional[str] = Field(
        default=None, alias="campaignId", description="ID da campanha (opcional)"
    )


class AdsInput(StatusFilteredInput):
    """Input for listing ads of an ad set or an account."""

    account_id: str = Field(..., alias="accountId", description=ACCOUNT_ID_DESCRIPTION, min_length=1)
    adset_id: Optional[str] = Field(
        default=None, alias="adsetId", description="ID do conjunto de anúncios (opcional)"
    )


class GraphCallInput(ToolInput):
    """Input for the generic Graph API passthrough."""

    endpoint: str = Field(
        ...,
        description="Endpoint da API do Facebook (ex: me/adaccounts, act_XXXXXXXXX/insights)",
        min_length=1,
    )
    method: HttpMethod = Field(default="GET", description="Método HTTP (GET, POST, DELETE)")
    query_params: Dict[str, Any] = Field(
        default_factory=dict, alias="queryParams", description="Parâmetros de consulta para a API"
    )
    body: Optional[Dict[str, Any]] = Field(
        default=None, description="Corpo da requisição para métodos POST"
    )

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme or parts.netloc or v.startswith("//"):
            raise ValueError("endpoint must be a Graph API path, not an absolute URL")
        return v

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("query_params", mode="before")
    @classmethod
    def default_query_params(cls, v: Any) -> Any:
        return {} if v is None else v
