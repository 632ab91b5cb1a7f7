"""Facebook Graph API client."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .config import FacebookConfig
from .errors import ApiError, ConfigurationError, TransportFailure

USER_AGENT = "fb-insights-mcp/1.0"
REQUEST_TIMEOUT = 30.0

logger = logging.getLogger("fb_insights_mcp.graph")


# =============================================================================
# Outcome
# =============================================================================

@dataclass(frozen=True)
class GraphApiOutcome:
    """Result of one Graph API call.

    The status decides success; ``error_payload`` holds the body of an HTTP
    error response, which is returned here rather than raised, so
    callers must check ``is_error`` (or call ``raise_for_error``).
    """

    http_status: int
    payload: Any = None
    error_payload: Any = None

    @property
    def is_error(self) -> bool:
        return not 200 <= self.http_status < 300

    def raise_for_error(self) -> Any:
        if self.is_error:
            raise ApiError(self.http_status, self.error_payload)
        return self.payload


def _encode_param(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def _redact(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("***TOKEN***" if k == "access_token" else v) for k, v in params.items()}


# =============================================================================
# Graph API Client
# =============================================================================

class GraphClient:
    """Async HTTP client for the Facebook Graph API.

    The access token is taken from the configuration given at construction
    and appended to every request as the ``access_token`` query parameter.
    """

    def __init__(self, config: FacebookConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.graph_base_url,
                timeout=REQUEST_TIMEOUT,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        query_params: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> GraphApiOutcome:
        """Call ``{base_url}/{endpoint}`` and normalize the response.

        Raises:
            ConfigurationError: the access token is empty; no request is made.
            TransportFailure: connection problems, timeouts or a non-JSON body.
        """
        if not self.config.access_token:
            raise ConfigurationError(
                "FB_ACCESS_TOKEN não configurado. Defina a variável de ambiente FB_ACCESS_TOKEN."
            )

        method = method.upper()
        params = {k: _encode_param(v) for k, v in (query_params or {}).items() if v is not None}
        params["access_token"] = self.config.access_token
        path = endpoint.lstrip("/")
        url = f"{self.config.graph_base_url}/{path}"

        logger.debug("Graph request: %s %s params=%s", method, path, _redact(params))

        client = await self._get_client()
        try:
            response = await client.request(
                method,
                url,
                params=params,
                json=body if method != "GET" and body is not None else None,
            )
        except httpx.HTTPError as e:
            logger.error("Graph request %s %s failed: %s", method, path, e)
            raise TransportFailure(f"Falha ao contactar a Graph API: {str(e) or type(e).__name__}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise TransportFailure(
                f"Resposta inválida da Graph API (HTTP {response.status_code}): corpo não é JSON"
            ) from e

        logger.debug("Graph response: %s %s -> %s", method, path, response.status_code)

        if response.is_success:
            return GraphApiOutcome(http_status=response.status_code, payload=data)

        logger.warning("Graph API error on %s %s: HTTP %s", method, path, response.status_code)
        return GraphApiOutcome(http_status=response.status_code, error_payload=data)
