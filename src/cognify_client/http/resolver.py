"""Endpoint fallback resolver."""

from collections.abc import Callable, Sequence
from typing import Any

import httpx
import structlog

from cognify_client.errors import EndpointUnavailableError
from cognify_client.http.pipeline import RequestPipeline, response_json
from cognify_client.http.routes import EndpointCandidate

logger = structlog.get_logger()

# Wrapper fields checked, in order, when a body is an object
WRAPPER_FIELDS = ("items", "data", "results", "subjects", "modules", "assessments", "submissions")
IDENTITY_FIELDS = ("id", "_id", "uid")

Normalizer = Callable[[Any], list[Any]]


def normalize_list(body: Any) -> list[Any]:
    """Extract a list from a heterogeneous response body.

    Checks, in order: a top-level array, a known wrapper field holding an
    array (or an object that itself normalizes to one), and finally a single
    object carrying an identifier, which is wrapped in a list.
    """
    if isinstance(body, list):
        return body
    if not isinstance(body, dict):
        return []
    for name in WRAPPER_FIELDS:
        value = body.get(name)
        if isinstance(value, list):
            return value
        if isinstance(value, dict):
            nested = normalize_list(value)
            if nested:
                return nested
    if any(body.get(name) not in (None, "") for name in IDENTITY_FIELDS):
        return [body]
    return []


class EndpointResolver:
    """Tries candidate endpoints in order and keeps the first usable answer.

    Each candidate is tried at most once per call. ``SessionExpiredError``
    from the pipeline is never treated as a candidate failure.

    Args:
        pipeline: Authenticated request pipeline.
    """

    def __init__(self, pipeline: RequestPipeline):
        self.pipeline = pipeline

    async def resolve_list(
        self,
        candidates: Sequence[EndpointCandidate],
        normalizer: Normalizer = normalize_list,
    ) -> list[Any]:
        """Return the first non-empty normalized list.

        Returns an empty list when every candidate failed with an HTTP status
        or answered with nothing usable.

        Raises:
            httpx.TransportError: If every candidate raised and at least one
                could not reach the server.
        """
        network_error: httpx.TransportError | None = None
        failures = 0
        for candidate in candidates:
            try:
                response = await self.pipeline.execute(
                    candidate.method, candidate.path, params=candidate.params or None
                )
                items = normalizer(response_json(response))
            except httpx.TransportError as e:
                logger.debug("endpoint_unreachable", endpoint=str(candidate), error=str(e))
                network_error = e
                failures += 1
                continue
            except (httpx.HTTPStatusError, ValueError) as e:
                logger.debug("endpoint_candidate_failed", endpoint=str(candidate), error=str(e))
                failures += 1
                continue
            if items:
                return items
            logger.debug("endpoint_candidate_empty", endpoint=str(candidate))

        if network_error is not None and failures == len(candidates):
            raise network_error
        return []

    async def resolve_one(self, candidates: Sequence[EndpointCandidate]) -> dict[str, Any] | None:
        """First object found by ``resolve_list``, for detail lookups."""
        items = await self.resolve_list(candidates)
        first = items[0] if items else None
        return first if isinstance(first, dict) else None

    async def resolve_write(self, candidates: Sequence[EndpointCandidate], payload: Any) -> Any:
        """Send ``payload`` to the first candidate that accepts it.

        Raises:
            EndpointUnavailableError: If every candidate failed.
        """
        last_error: Exception | None = None
        for candidate in candidates:
            try:
                response = await self.pipeline.execute(
                    candidate.method,
                    candidate.path,
                    json=payload,
                    params=candidate.params or None,
                )
            except httpx.HTTPError as e:
                logger.debug("endpoint_write_failed", endpoint=str(candidate), error=str(e))
                last_error = e
                continue
            logger.info("endpoint_write_succeeded", endpoint=str(candidate))
            try:
                return response_json(response)
            except ValueError:
                return None

        logger.warning("endpoint_write_exhausted", candidates=len(candidates))
        raise EndpointUnavailableError() from last_error
