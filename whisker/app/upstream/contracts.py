from __future__ import annotations

from typing import Protocol


class FetchError(Exception):
    pass


class InvalidResponseError(FetchError):
    pass


class EmptyResultsError(FetchError):
    pass


class UpstreamSource(Protocol):
    async def fetch(self) -> str: ...
