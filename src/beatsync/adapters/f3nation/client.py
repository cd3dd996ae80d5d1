"""HTTP client for the F3 Nation API."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from beatsync.adapters.http_resilience import ResilientClient
from beatsync.config.f3nation import F3NationConfig, get_f3nation_config
from beatsync.domain.ports.fetching import (
    UpstreamError,
    UpstreamFeed,
    UpstreamFetcher,
    UpstreamNotFoundError,
    UpstreamRateLimitError,
)

from .schema import (
    ErrorResponse,
    EventPayload,
    EventResponse,
    EventsResponse,
    LocationPayload,
    LocationResponse,
    LocationsResponse,
)
from .translator import parse_event, parse_location

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx
    from pydantic import BaseModel

    from beatsync.config.http_resilience import ResilienceConfig
    from beatsync.domain.model import UpstreamEvent, UpstreamLocation

log = getLogger(__name__)

EVENTS_PATH = "/v1/event"
LOCATIONS_PATH = "/v1/location"
EVENTS_PAGE_SIZE = 10000

_WAIT_HINT = re.compile(r"try again in (\d+)s", re.IGNORECASE)


class F3NationAPIError(UpstreamError):
    """Raised when the F3 Nation API returns an unexpected response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def parse_wait_hint(message: str, default: float) -> float:
    """Seconds to wait according to a rate-limit message like "Try again in 7s"."""

    match = _WAIT_HINT.search(message)
    if match is None:
        return default
    return float(match.group(1))


def _rate_limit_wait(response: httpx.Response, default: float) -> float:
    try:
        body = ErrorResponse.model_validate(response.json())
    except ValueError:
        body = ErrorResponse()
    if _WAIT_HINT.search(body.message):
        return parse_wait_hint(body.message, default)
    retry_after = response.headers.get("Retry-After")
    if retry_after is not None:
        try:
            return float(retry_after)
        except ValueError:
            pass
    return default


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _validate_items[M: BaseModel](
    model: type[M], items: list[Any], path: str
) -> tuple[list[M], int]:
    """Validate listing items one by one, skipping the ones that do not fit ``model``."""

    valid: list[M] = []
    rejected = 0
    for item in items:
        try:
            valid.append(model.model_validate(item))
        except ValidationError as exc:
            rejected += 1
            item_id = item.get("id") if isinstance(item, dict) else None
            log.warning(
                f"Skipping malformed record {item_id!r} from {path}: "
                f"{exc.error_count()} validation errors"
            )
    return valid, rejected


@dataclass(slots=True)
class F3NationFetcher:
    """Fetch events and locations through the public F3 Nation API."""

    config: F3NationConfig | None = None
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    @property
    def settings(self) -> F3NationConfig:
        """The API configuration, read from the environment on first use."""

        if self.config is None:
            self.config = get_f3nation_config()
        return self.config

    @property
    def resilience(self) -> ResilienceConfig:
        return self.settings.resilience

    def fetch_feed(self) -> UpstreamFeed:
        return asyncio.run(self._fetch_feed_async())

    def fetch_events(self) -> list[UpstreamEvent]:
        events, _ = asyncio.run(self._with_client(self._fetch_events_async))
        return events

    def fetch_locations(self) -> list[UpstreamLocation]:
        locations, _ = asyncio.run(self._with_client(self._fetch_locations_async))
        return locations

    def fetch_event(self, event_id: int) -> UpstreamEvent:
        async def fetch(client: ResilientClient) -> UpstreamEvent:
            response = await self._get(
                client, f"{EVENTS_PATH}/id/{event_id}", EventResponse, single=True
            )
            return parse_event(response.event)

        return asyncio.run(self._with_client(fetch))

    def fetch_location(self, location_id: int) -> UpstreamLocation:
        async def fetch(client: ResilientClient) -> UpstreamLocation:
            response = await self._get(
                client, f"{LOCATIONS_PATH}/id/{location_id}", LocationResponse, single=True
            )
            return parse_location(response.location)

        return asyncio.run(self._with_client(fetch))

    async def _with_client[T](self, func: Callable[[ResilientClient], Awaitable[T]]) -> T:
        async with self.client_factory(self.resilience) as client:
            return await func(client)

    async def _fetch_feed_async(self) -> UpstreamFeed:
        async with self.client_factory(self.resilience) as client:
            (events, rejected_events), (locations, rejected_locations) = await asyncio.gather(
                self._fetch_events_async(client),
                self._fetch_locations_async(client),
            )
        return UpstreamFeed(
            events=events,
            locations=locations,
            rejected_events=rejected_events,
            rejected_locations=rejected_locations,
        )

    async def _fetch_events_async(
        self, client: ResilientClient
    ) -> tuple[list[UpstreamEvent], int]:
        response = await self._get(
            client, EVENTS_PATH, EventsResponse, params={"pageSize": EVENTS_PAGE_SIZE}
        )
        payloads, rejected = _validate_items(EventPayload, response.events, EVENTS_PATH)
        log.info(f"Fetched {len(payloads)} events ({rejected} rejected)")
        return [parse_event(payload) for payload in payloads], rejected

    async def _fetch_locations_async(
        self, client: ResilientClient
    ) -> tuple[list[UpstreamLocation], int]:
        response = await self._get(client, LOCATIONS_PATH, LocationsResponse)
        payloads, rejected = _validate_items(LocationPayload, response.locations, LOCATIONS_PATH)
        log.info(f"Fetched {len(payloads)} locations ({rejected} rejected)")
        return [parse_location(payload) for payload in payloads], rejected

    async def _get[M: BaseModel](
        self,
        client: ResilientClient,
        path: str,
        model: type[M],
        *,
        params: dict[str, int | str] | None = None,
        single: bool = False,
    ) -> M:
        settings = self.settings
        attempt = 0
        while True:
            response = await client.get(path, params=params, headers=settings.headers)
            if response.status_code != 429:
                break
            if attempt >= settings.rate_limit_max_retries:
                log.error(
                    f"Rate limit exceeded; max retries ({settings.rate_limit_max_retries}) "
                    f"reached for {path}"
                )
                raise UpstreamRateLimitError(
                    f"Rate limit exceeded after {settings.rate_limit_max_retries} retries"
                )
            attempt += 1
            wait = _rate_limit_wait(response, settings.rate_limit_default_wait)
            log.warning(
                f"Rate limit exceeded ({path}); waiting {wait:g}s before retry "
                f"{attempt}/{settings.rate_limit_max_retries}"
            )
            await self.sleep(wait)

        if single and response.status_code == 404:
            raise UpstreamNotFoundError(f"{path} not found")
        if response.is_error:
            raise F3NationAPIError(
                f"HTTP {response.status_code} from {path}", status_code=response.status_code
            )

        try:
            return model.model_validate(response.json())
        except ValueError as exc:
            raise F3NationAPIError(f"Unexpected F3 Nation response payload from {path}") from exc


if TYPE_CHECKING:
    _fetcher_check: UpstreamFetcher = F3NationFetcher()
