from __future__ import annotations

import asyncio
import json
import logging

from whisker.app.aggregation.contracts import (
    AggregationError,
    CompositeResult,
    FactSourceFailed,
    ImageSourceFailed,
)
from whisker.app.upstream.contracts import FetchError, UpstreamSource

LOGGER = logging.getLogger(__name__)


async def aggregate(
    fact_source: UpstreamSource,
    image_source: UpstreamSource,
) -> CompositeResult:
    """Fetch a fact and an image URL concurrently and combine them.

    Both fetches run to completion. Failures are reported fact first, so the
    raised error does not depend on which fetch finished first.
    """
    fact_result, image_result = await asyncio.gather(
        fact_source.fetch(),
        image_source.fetch(),
        return_exceptions=True,
    )
    fact = _unwrap(fact_result, FactSourceFailed)
    image_url = _unwrap(image_result, ImageSourceFailed)
    return CompositeResult(fact=fact, image_url=image_url)


def _unwrap(
    result: str | BaseException,
    error_type: type[AggregationError],
) -> str:
    if isinstance(result, FetchError):
        error = error_type(result)
        LOGGER.warning(
            "aggregation_failed %s",
            json.dumps(
                {
                    "source": error.source,
                    "error_class": result.__class__.__name__,
                },
                sort_keys=True,
            ),
        )
        raise error from result
    if isinstance(result, BaseException):
        raise result
    return result
