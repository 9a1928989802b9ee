"""Async client for the Magento 2 Admin REST API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from magento_admin_mcp.errors import ErrorCodes, MagentoMCPError, NotAuthenticatedError
from magento_admin_mcp.signing.oauth1 import OAuth1Signer, OAuthCredentials

logger = logging.getLogger(__name__)

ADMIN_TOKEN_ENDPOINT = "/V1/integration/admin/token"


class MagentoApiError(MagentoMCPError):
    """Non-2xx response from Magento, with the status and platform parameters kept."""

    code = ErrorCodes.MAGENTO_API_ERROR

    def __init__(
        self,
        status_code: int,
        message: str,
        parameters: Any = None,
    ) -> None:
        details: dict[str, object] = {"status_code": status_code}
        if parameters is not None:
            details["parameters"] = parameters
        super().__init__(f"Magento API Error ({status_code}): {message}", details)
        self.status_code = status_code
        self.api_message = message
        self.parameters = parameters


@dataclass
class SearchFilter:
    field: str
    value: str
    condition_type: str | None = None


@dataclass
class SortOrder:
    field: str
    direction: Literal["ASC", "DESC"] = "ASC"


@dataclass
class SearchCriteria:
    """Structured ``searchCriteria``. Filters inside a group are OR-ed, groups are AND-ed."""

    filter_groups: list[list[SearchFilter]] = field(default_factory=list)
    sort_orders: list[SortOrder] = field(default_factory=list)
    page_size: int | None = None
    current_page: int | None = None

    def add_filter(
        self, field_name: str, value: object, condition_type: str | None = None
    ) -> SearchCriteria:
        self.filter_groups.append(
            [SearchFilter(field_name, filter_value(value), condition_type)]
        )
        return self


def filter_value(value: object) -> str:
    """Booleans become Magento's 1/0 flag values."""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def build_search_params(criteria: SearchCriteria) -> dict[str, str]:
    params: dict[str, str] = {}
    for gi, group in enumerate(criteria.filter_groups):
        for fi, search_filter in enumerate(group):
            prefix = f"searchCriteria[filterGroups][{gi}][filters][{fi}]"
            params[f"{prefix}[field]"] = search_filter.field
            params[f"{prefix}[value]"] = search_filter.value
            if search_filter.condition_type:
                params[f"{prefix}[conditionType]"] = search_filter.condition_type
    for i, sort in enumerate(criteria.sort_orders):
        params[f"searchCriteria[sortOrders][{i}][field]"] = sort.field
        params[f"searchCriteria[sortOrders][{i}][direction]"] = sort.direction
    if criteria.page_size is not None:
        params["searchCriteria[pageSize]"] = str(criteria.page_size)
    if criteria.current_page is not None:
        params["searchCriteria[currentPage]"] = str(criteria.current_page)
    return params


class MagentoRestClient:
    """Signed access to ``<base>/rest[/<store_code>]/V1/...``.

    OAuth credentials win over a bearer token when both are set. Without
    either, every authenticated call raises ``NotAuthenticatedError`` before
    any request is sent.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        credentials: OAuthCredentials | None = None,
        signer: OAuth1Signer | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._credentials = credentials
        self._signer = signer or OAuth1Signer()
        self._timeout = timeout
        self._transport = transport

    def set_token(self, token: str) -> None:
        self._token = token

    def set_credentials(self, credentials: OAuthCredentials) -> None:
        self._credentials = credentials

    @property
    def is_authenticated(self) -> bool:
        return self._credentials is not None or bool(self._token)

    def build_url(self, endpoint: str, store_code: str | None = None) -> str:
        scope = f"/{store_code}" if store_code else ""
        return f"{self.base_url}/rest{scope}{endpoint}"

    async def get_admin_token(self, username: str, password: str) -> str:
        token = await self.post(
            ADMIN_TOKEN_ENDPOINT,
            {"username": username, "password": password},
            require_auth=False,
        )
        if not isinstance(token, str) or not token:
            raise MagentoApiError(200, "Unexpected admin token response")
        return token

    async def get(
        self,
        endpoint: str,
        params: dict[str, str] | None = None,
        store_code: str | None = None,
    ) -> Any:
        return await self._request("GET", endpoint, params=params, store_code=store_code)

    async def search(
        self,
        endpoint: str,
        criteria: SearchCriteria,
        store_code: str | None = None,
    ) -> Any:
        return await self.get(endpoint, build_search_params(criteria), store_code)

    async def post(
        self,
        endpoint: str,
        body: Any,
        *,
        require_auth: bool = True,
        store_code: str | None = None,
    ) -> Any:
        return await self._request(
            "POST", endpoint, body=body, require_auth=require_auth, store_code=store_code
        )

    async def put(self, endpoint: str, body: Any, store_code: str | None = None) -> Any:
        return await self._request("PUT", endpoint, body=body, store_code=store_code)

    async def delete(self, endpoint: str, store_code: str | None = None) -> Any:
        return await self._request("DELETE", endpoint, store_code=store_code)

    def _auth_header(self, method: str, url: str, params: dict[str, str] | None) -> str:
        if self._credentials is not None:
            return self._signer.sign(method, url, params, self._credentials)
        if not self._token:
            raise NotAuthenticatedError(
                "No auth token or OAuth credentials set. Call auth_login first."
            )
        return f"Bearer {self._token}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        body: Any = None,
        require_auth: bool = True,
        store_code: str | None = None,
    ) -> Any:
        url = self.build_url(endpoint, store_code)
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if require_auth:
            headers["Authorization"] = self._auth_header(method, url, params)

        content = json.dumps(body) if body is not None else None
        logger.debug("Magento %s %s", method, url)
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.request(
                method, url, params=params or None, headers=headers, content=content
            )
        return _handle_response(response)


def _handle_response(response: httpx.Response) -> Any:
    text = response.text
    try:
        data = json.loads(text) if text else None
    except ValueError:
        if not response.is_success:
            raise MagentoApiError(response.status_code, text) from None
        return text

    if not response.is_success:
        message = text
        parameters = None
        if isinstance(data, dict):
            message = str(data.get("message") or text)
            parameters = data.get("parameters")
        raise MagentoApiError(response.status_code, message, parameters)
    return data
