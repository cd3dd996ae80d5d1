from __future__ import annotations

from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from beatsync.adapters.f3nation import (
    F3NationAPIError,
    F3NationFetcher,
    parse_event,
    parse_wait_hint,
    parse_webhook_notification,
)
from beatsync.adapters.f3nation.schema import EventPayload
from beatsync.adapters.http_resilience import ResilientClient
from beatsync.config.f3nation import F3NationConfig, build_f3nation_resilience
from beatsync.config.http_resilience import ResilienceConfig  # noqa: TC001
from beatsync.domain.ports.fetching import UpstreamNotFoundError, UpstreamRateLimitError

BASE_URL = "https://api.f3.test"

EVENT_JSON: dict[str, object] = {
    "id": 9,
    "name": "Gauntlet",
    "description": "",
    "isActive": True,
    "isPrivate": False,
    "locationId": 5,
    "dayOfWeek": "monday",
    "startTime": "0530",
    "endTime": "0615",
    "locationName": "Riverside Park",
    "locationAddress": None,
    "regions": [{"regionId": 1, "regionName": "River City"}],
    "location": "1 Main St, Jacksonville, FL",
}
LOCATION_JSON: dict[str, object] = {
    "id": 5,
    "locationName": "Riverside Park",
    "isActive": True,
    "regionName": "River City",
    "latitude": 30.1,
    "longitude": -81.6,
    "addressStreet": "1 Main St",
    "addressCity": "Jacksonville",
    "addressState": "FL",
    "addressZip": "32202",
    "meta": {"ignored": True},
}


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(async_handler))

    return factory


def _make_fetcher(
    handler: Callable[[httpx.Request], httpx.Response],
    waits: list[float] | None = None,
) -> F3NationFetcher:
    recorded = waits if waits is not None else []

    async def fake_sleep(seconds: float) -> None:
        recorded.append(seconds)

    config = F3NationConfig(
        api_key="secret",
        client_name="f3nearme",
        resilience=build_f3nation_resilience(BASE_URL),
    )
    return F3NationFetcher(
        config=config, client_factory=_make_client_factory(handler), sleep=fake_sleep
    )


def test_fetch_feed_requests_events_and_locations() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/v1/event":
            return httpx.Response(200, json={"events": [EVENT_JSON]})
        if request.url.path == "/v1/location":
            return httpx.Response(200, json={"locations": [LOCATION_JSON], "totalCount": 1})
        return httpx.Response(404)

    feed = _make_fetcher(handler).fetch_feed()

    assert [event.id for event in feed.events] == [9]
    assert [location.id for location in feed.locations] == [5]
    event_request = next(request for request in requests if request.url.path == "/v1/event")
    assert event_request.url.params["pageSize"] == "10000"
    assert event_request.headers["Authorization"] == "Bearer secret"
    assert event_request.headers["client"] == "f3nearme"


def test_malformed_listing_items_are_skipped_and_counted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/event":
            return httpx.Response(
                200, json={"events": [EVENT_JSON, {**EVENT_JSON, "id": 10, "locationId": None}]}
            )
        if request.url.path == "/v1/location":
            return httpx.Response(
                200, json={"locations": [LOCATION_JSON, {"locationName": "No id"}]}
            )
        return httpx.Response(404)

    feed = _make_fetcher(handler).fetch_feed()

    assert [event.id for event in feed.events] == [9]
    assert feed.rejected_events == 1
    assert [location.id for location in feed.locations] == [5]
    assert feed.rejected_locations == 1


def test_fetch_single_event_and_location() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/event/id/9":
            return httpx.Response(
                200,
                json={"event": {**EVENT_JSON, "eventTypes": [{"eventTypeName": "Bootcamp"}]}},
            )
        if request.url.path == "/v1/location/id/5":
            return httpx.Response(200, json={"location": LOCATION_JSON})
        return httpx.Response(404)

    fetcher = _make_fetcher(handler)
    event = fetcher.fetch_event(9)
    location = fetcher.fetch_location(5)

    assert event.event_types == ("Bootcamp",)
    assert location.latitude == pytest.approx(30.1)
    assert location.address_zip == "32202"


def test_not_found_on_single_fetch() -> None:
    fetcher = _make_fetcher(lambda _request: httpx.Response(404, json={"message": "missing"}))

    with pytest.raises(UpstreamNotFoundError):
        fetcher.fetch_location(77)


def test_rate_limit_waits_for_hint_then_retries() -> None:
    responses = iter(
        [
            httpx.Response(429, json={"message": "Rate limit exceeded. Try again in 7s"}),
            httpx.Response(200, json={"location": LOCATION_JSON}),
        ]
    )
    waits: list[float] = []

    location = _make_fetcher(lambda _request: next(responses), waits).fetch_location(5)

    assert location.id == 5
    assert waits == [7.0]


def test_rate_limit_falls_back_to_retry_after_header() -> None:
    responses = iter(
        [
            httpx.Response(429, headers={"Retry-After": "3"}, text="slow down"),
            httpx.Response(200, json={"location": LOCATION_JSON}),
        ]
    )
    waits: list[float] = []

    _make_fetcher(lambda _request: next(responses), waits).fetch_location(5)

    assert waits == [3.0]


def test_rate_limit_gives_up_after_three_retries() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(429, json={"message": "Too many requests"})

    waits: list[float] = []

    with pytest.raises(UpstreamRateLimitError):
        _make_fetcher(handler, waits).fetch_events()

    assert waits == [10.0, 10.0, 10.0]
    assert len(calls) == 4


def test_http_error_on_bulk_fetch_raises_api_error() -> None:
    fetcher = _make_fetcher(lambda _request: httpx.Response(403, json={"message": "nope"}))

    with pytest.raises(F3NationAPIError) as exc:
        fetcher.fetch_events()

    assert exc.value.status_code == 403


def test_unexpected_payload_raises_api_error() -> None:
    fetcher = _make_fetcher(lambda _request: httpx.Response(200, json={"items": []}))

    with pytest.raises(F3NationAPIError):
        fetcher.fetch_events()


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Rate limit exceeded. Try again in 7s", 7.0),
        ("try again in 12s", 12.0),
        ("Too many requests", 10.0),
    ],
)
def test_parse_wait_hint(message: str, expected: float) -> None:
    assert parse_wait_hint(message, 10.0) == expected


def test_parse_event_maps_nested_names() -> None:
    payload = EventPayload.model_validate(
        {
            **EVENT_JSON,
            "regions": [{"regionName": ""}, {"regionName": "River City"}],
            "eventTypes": None,
        }
    )

    event = parse_event(payload)

    assert event.regions == ("River City",)
    assert event.event_types == ()
    assert event.description is None
    assert event.location_name == "Riverside Park"


def test_parse_webhook_notification() -> None:
    notification = parse_webhook_notification(
        {
            "action": "map.updated",
            "channel": "prod",
            "data": {"eventId": 9, "orgId": 3},
            "timestamp": "2025-03-01T12:00:00Z",
        }
    )

    assert notification.event_id == 9
    assert notification.location_id is None
    assert notification.org_id == 3
    assert notification.timestamp is not None
    assert notification.payload["channel"] == "prod"
