from __future__ import annotations

from beatsync.domain.sync import IdScheme, clean_identifier, derive_id, normalize
from tests.helpers.beatdowns import make_event, make_location


def test_current_id_matches_reference_example() -> None:
    record = normalize(make_location(), make_event())

    assert derive_id(record) == "river-city_gauntlet_monday_9"
    assert derive_id(record, IdScheme.CURRENT) == "river-city_gauntlet_monday_9"


def test_legacy_id_replaces_every_invalid_character() -> None:
    record = normalize(make_location(), make_event())

    assert derive_id(record, IdScheme.LEGACY) == "river-city-gauntlet-monday"


def test_legacy_id_keeps_repeated_hyphens() -> None:
    record = normalize(make_location(), make_event(name="The  Pit!"))

    assert derive_id(record, IdScheme.LEGACY) == "river-city-the--pit--monday"


def test_current_id_collapses_and_trims_hyphens() -> None:
    record = normalize(
        make_location(),
        make_event(name="  The  Pit ", regions=("(River City",), event_id=12),
    )

    assert derive_id(record) == "river-city_the-pit_monday_12"


def test_current_ids_differ_for_events_sharing_legacy_id() -> None:
    location = make_location()
    first = normalize(location, make_event(event_id=1))
    second = normalize(location, make_event(event_id=2))

    assert derive_id(first, IdScheme.LEGACY) == derive_id(second, IdScheme.LEGACY)
    assert derive_id(first) != derive_id(second)


def test_clean_identifier() -> None:
    assert clean_identifier("--a---b-") == "a-b"
    assert clean_identifier("a_b") == "a_b"
