from __future__ import annotations

from dataclasses import dataclass

import httpx

from whisker.app.upstream.contracts import FetchError, InvalidResponseError


@dataclass(frozen=True)
class CatFactsClient:
    base_url: str
    client: httpx.AsyncClient

    @property
    def _fact_url(self) -> str:
        # e.g. https://catfact.ninja/fact
        return f"{self.base_url.rstrip('/')}/fact"

    async def fetch(self) -> str:
        try:
            response = await self.client.get(self._fact_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchError("Failed to make request") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise InvalidResponseError("Invalid response returned") from exc

        fact = payload.get("fact") if isinstance(payload, dict) else None
        if not isinstance(fact, str):
            raise InvalidResponseError("Invalid response returned: missing 'fact'")
        return fact
