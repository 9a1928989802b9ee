"""Thin Fastly purge client."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from magento_admin_mcp.errors import ErrorCodes, MagentoMCPError

FASTLY_API_BASE = "https://api.fastly.com"


class FastlyApiError(MagentoMCPError):
    code = ErrorCodes.FASTLY_API_ERROR


@dataclass
class PurgeResult:
    status: int
    ok: bool
    id: str | None = None


class FastlyClient:
    def __init__(
        self,
        service_id: str,
        api_token: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.service_id = service_id
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    async def purge_url(self, url: str) -> PurgeResult:
        return await self._send("PURGE", url, {"Fastly-Key": self._api_token})

    async def purge_surrogate_key(self, key: str) -> PurgeResult:
        url = f"{FASTLY_API_BASE}/service/{self.service_id}/purge/{key}"
        return await self._send(
            "POST", url, {"Fastly-Key": self._api_token, "Accept": "application/json"}
        )

    async def purge_surrogate_keys(self, keys: list[str]) -> PurgeResult:
        url = f"{FASTLY_API_BASE}/service/{self.service_id}/purge"
        headers = {
            "Fastly-Key": self._api_token,
            "Surrogate-Key": " ".join(keys),
            "Accept": "application/json",
        }
        return await self._send("POST", url, headers)

    async def _send(self, method: str, url: str, headers: dict[str, str]) -> PurgeResult:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.request(method, url, headers=headers)
        except httpx.HTTPError as exc:
            raise FastlyApiError(f"Fastly request failed: {exc}") from exc

        purge_id = None
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("id"), str):
            purge_id = data["id"]
        if not response.is_success:
            raise FastlyApiError(
                f"Fastly purge failed ({response.status_code})",
                {"status_code": response.status_code},
            )
        return PurgeResult(status=response.status_code, ok=True, id=purge_id)
