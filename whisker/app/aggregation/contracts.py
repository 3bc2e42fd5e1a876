from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

from whisker.app.upstream.contracts import FetchError


@dataclass(frozen=True)
class CompositeResult:
    fact: str
    image_url: str


class CatFactAndPicture(BaseModel):
    fact: str
    image_url: str


class AggregationError(Exception):
    source: str = "unknown"
    summary: str = "Failed to aggregate upstream results"

    def __init__(self, cause: FetchError) -> None:
        super().__init__(f"{self.summary}: {cause}")
        self.cause = cause


class FactSourceFailed(AggregationError):
    source = "fact"
    summary = "Failed to get a cat fact"


class ImageSourceFailed(AggregationError):
    source = "image"
    summary = "Failed to get a cat image url"
