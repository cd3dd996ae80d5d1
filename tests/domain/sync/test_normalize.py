from __future__ import annotations

import pytest

from beatsync.domain.sync import NormalizationError, format_time, normalize
from tests.helpers.beatdowns import make_event, make_location


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("0530", "5:30 am"),
        ("0000", "12:00 am"),
        ("1200", "12:00 pm"),
        ("1345", "1:45 pm"),
        ("930", "9:30 am"),
        ("", ""),
        (None, ""),
        ("5:30", ""),
    ],
)
def test_format_time(raw: str | None, expected: str) -> None:
    assert format_time(raw) == expected


def test_normalize_flattens_event_and_location() -> None:
    record = normalize(make_location(), make_event())

    assert record.day_of_week == "monday"
    assert record.time_string == "5:30 am - 6:15 am"
    assert record.region == "River City"
    assert record.name == "Gauntlet"
    assert record.lat == pytest.approx(30.1)
    assert record.long == pytest.approx(-81.6)
    assert record.event_id == 9
    assert record.location_id == 5
    assert record.website == ""
    assert record.type == "Unknown"


def test_normalize_lowercases_day_of_week() -> None:
    record = normalize(make_location(), make_event(day_of_week="Tuesday"))

    assert record.day_of_week == "tuesday"


def test_region_falls_back_to_location_then_placeholder() -> None:
    from_location = normalize(make_location(region_name="Bold Coast"), make_event(regions=()))
    unknown = normalize(make_location(region_name=None), make_event(regions=()))

    assert from_location.region == "Bold Coast"
    assert unknown.region == "Unknown Region"


def test_name_falls_back_to_location_names() -> None:
    event = make_event(name=None, location_name="Riverside Park")
    record = normalize(make_location(location_name="The Yard"), event)

    assert record.name == "Riverside Park"
    assert normalize(make_location(location_name="The Yard"), make_event(name=" ")).name == (
        "The Yard"
    )


def test_address_prefers_composed_string_then_parts() -> None:
    composed = make_event(location="1 Main St, Jacksonville, FL")
    from_event_parts = make_event(
        location_address="1 Main St", location_city="Jacksonville", location_state="FL"
    )
    location = make_location(address_street="2 Side St", address_city="Orange Park")

    assert normalize(location, composed).address == "1 Main St, Jacksonville, FL"
    assert normalize(location, from_event_parts).address == "1 Main St, Jacksonville, FL"
    assert normalize(location, make_event()).address == "2 Side St, Orange Park"


def test_event_type_uses_first_listed_type() -> None:
    record = normalize(make_location(), make_event(event_types=("Bootcamp", "Run")))

    assert record.type == "Bootcamp"


def test_notes_default_to_empty() -> None:
    assert normalize(make_location(), make_event()).notes == ""
    assert normalize(make_location(), make_event(description=" Bring a coupon ")).notes == (
        "Bring a coupon"
    )


def test_missing_coordinates_are_rejected() -> None:
    with pytest.raises(NormalizationError):
        normalize(make_location(latitude=None), make_event())
