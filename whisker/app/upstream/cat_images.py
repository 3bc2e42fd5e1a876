from __future__ import annotations

from dataclasses import dataclass

import httpx

from whisker.app.upstream.contracts import (
    EmptyResultsError,
    FetchError,
    InvalidResponseError,
)


@dataclass(frozen=True)
class CatImagesClient:
    base_url: str
    client: httpx.AsyncClient

    @property
    def _search_url(self) -> str:
        # e.g. https://api.thecatapi.com/v1/images/search
        return f"{self.base_url.rstrip('/')}/v1/images/search"

    async def fetch(self) -> str:
        try:
            response = await self.client.get(self._search_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchError("Failed to make request") from exc

        try:
            rows = response.json()
        except ValueError as exc:
            raise InvalidResponseError("Invalid response returned") from exc

        if not isinstance(rows, list):
            raise InvalidResponseError("Invalid response returned: expected a list")
        if not rows:
            raise EmptyResultsError("Empty array of results returned")

        first = rows[0]
        url = first.get("url") if isinstance(first, dict) else None
        if not isinstance(url, str):
            raise InvalidResponseError("Invalid response returned: missing 'url'")
        return url
