import pytest

from shopbot.services.address import (
    AddressResolver,
    is_valid_manual_address,
    looks_detailed,
    merge_with_pending,
)
from shopbot.services.geocoding import (
    GeocodedAddress,
    NominatimGeocoder,
    confidence_for,
    format_delivery_address,
    parse_nominatim,
)
from tests.fixtures_data import FakeGeocoder

NOMINATIM_RESPONSE = {
    "display_name": "Sunrise Apartments, Banjara Hills, Hyderabad, Telangana, 500034, India",
    "address": {
        "house_number": "8-2-293",
        "road": "Road No. 12",
        "suburb": "Banjara Hills",
        "city": "Hyderabad",
        "state": "Telangana",
        "postcode": "500034",
        "country": "India",
    },
}


@pytest.mark.parametrize(
    "text,expected",
    [
        ("x" * 19, False),
        ("x" * 20, True),
        ("   " + "x" * 19 + "   ", False),
        ("!" * 25, False),
        ("", False),
        (None, False),
        ("12 MG Road, Bengaluru 560", True),
    ],
)
def test_manual_address_needs_twenty_characters(text, expected):
    assert is_valid_manual_address(text) is expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Flat 4B, Sunrise Apartments", True),
        ("Road No. 12 near the big temple gate", True),
        ("Banjara Hills, Hyderabad Telangana India", True),
        ("Hyderabad", False),
        ("Hyderabad, Telangana", False),
        ("", False),
    ],
)
def test_looks_detailed(text, expected):
    assert looks_detailed(text) is expected


def test_merge_prefixes_detail_to_pending_address():
    merged = merge_with_pending("  Flat 4B ", "Sunrise Apartments, Hyderabad, Telangana, PIN: 500040")
    assert merged == "Flat 4B, Sunrise Apartments, Hyderabad, Telangana, PIN: 500040"


def test_detailed_address_from_whatsapp_skips_geocoding():
    geocoder = FakeGeocoder(GeocodedAddress(formatted_address="unused"))
    resolver = AddressResolver(geocoder)

    result = resolver.extract_from_location(
        {"latitude": 17.4, "longitude": 78.4, "address": "Plot 21, Jubilee Hills, Hyderabad 500033"}
    )

    assert result == ("Plot 21, Jubilee Hills, Hyderabad 500033", "provided")
    assert geocoder.calls == []


def test_vague_location_name_falls_back_to_geocoding():
    geocoder = FakeGeocoder(GeocodedAddress(formatted_address="Hyderabad, Telangana, PIN: 500034", confidence="medium"))
    resolver = AddressResolver(geocoder)

    result = resolver.extract_from_location({"latitude": 17.41, "longitude": 78.43, "name": "Home"})

    assert result == ("Hyderabad, Telangana, PIN: 500034", "medium")
    assert geocoder.calls == [(17.41, 78.43)]


def test_geocoding_failure_uses_vague_name_as_last_resort():
    resolver = AddressResolver(FakeGeocoder(None))

    assert resolver.extract_from_location({"latitude": 1, "longitude": 2, "name": "Office"}) == ("Office", "low")
    assert resolver.extract_from_location({"latitude": 1, "longitude": 2}) is None


def test_parse_nominatim_builds_delivery_address():
    result = parse_nominatim(NOMINATIM_RESPONSE)

    assert result.formatted_address == "8-2-293 Road No. 12, Hyderabad, Telangana, PIN: 500034"
    assert result.locality == "Hyderabad"
    assert result.confidence == "high"


def test_parse_nominatim_without_address_returns_none():
    assert parse_nominatim({"error": "Unable to geocode"}) is None


def test_foreign_country_is_kept_in_formatted_address():
    formatted = format_delivery_address(
        street_address="1 Marina Blvd",
        locality="Singapore",
        admin_area=None,
        postcode="018989",
        country="Singapore",
    )
    assert formatted == "1 Marina Blvd, Singapore, PIN: 018989, Singapore"


@pytest.mark.parametrize(
    "street,locality,postcode,expected",
    [
        ("Road 12", "Hyderabad", "500034", "high"),
        (None, "Hyderabad", "500034", "medium"),
        ("Road 12", "Hyderabad", None, "medium"),
        (None, "Hyderabad", None, "low"),
        ("Road 12", None, "500034", "low"),
    ],
)
def test_confidence_levels(street, locality, postcode, expected):
    assert confidence_for(street, locality, postcode) == expected


def test_geocoder_spaces_requests_at_least_one_second_apart():
    now = [100.0]
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        now[0] += seconds

    geocoder = NominatimGeocoder(min_interval_seconds=1.0, clock=lambda: now[0], sleep=sleep)

    geocoder._throttle()
    now[0] += 0.25
    geocoder._throttle()
    now[0] += 5
    geocoder._throttle()

    assert sleeps == [pytest.approx(0.75)]
