import itertools

from deal_harvester import identifiers


def test_flight_id_is_deterministic_and_normalised():
    first = identifiers.flight_id("OS123", "VIE", "WAW", "202510100715")
    second = identifiers.flight_id("OS123", "VIE", "WAW", "202510100715")
    assert first == second == "flight_os123viewaw202510100715"


def test_bundle_id_ignores_order():
    ids = ["flight_a1", "flight_b2", "flight_c3"]
    expected = identifiers.bundle_id(ids)
    assert expected.startswith("bundle_")
    assert len(expected) == len("bundle_") + 8
    for perm in itertools.permutations(ids):
        assert identifiers.bundle_id(perm) == expected
    assert identifiers.bundle_id(reversed(ids)) == expected


def test_bundle_id_differs_for_different_sets():
    assert identifiers.bundle_id(["flight_a"]) != identifiers.bundle_id(["flight_b"])


def test_booking_option_id_layout():
    oid = identifiers.booking_option_id(
        "https://a.example/book/1", "Agency A!", "bundle_1234abcd"
    )
    prefix, link_hash, agency, target = oid.split("_")
    assert prefix == "booking"
    assert len(link_hash) == 8
    assert agency == "agencya"
    assert target == "1234abcd"


def test_deal_id_strips_target_prefix():
    assert identifiers.deal_id("bundle_1234abcd") == "deal_1234abcd"
    assert identifiers.deal_id("flight_xyz") == "deal_xyz"
