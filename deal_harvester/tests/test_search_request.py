import logging

import pytest
from pydantic import ValidationError

from deal_harvester.search_request import SearchRequest


def test_defaults_and_normalisation():
    req = SearchRequest(origin=" vie", destination="waw", outbound_date="2099-10-10", currency="pln")
    assert (req.origin, req.destination) == ("VIE", "WAW")
    assert req.trip_type == "oneway"
    assert req.cabin_class == "Economy"
    assert (req.adults, req.children, req.infants) == (1, 0, 0)
    assert req.currency == "PLN"
    assert req.portals == ["sky", "kiwi"]


def test_inbound_date_makes_round_trip():
    req = SearchRequest(
        origin="VIE", destination="WAW", outbound_date="2099-10-10", inbound_date="2099-10-17"
    )
    assert req.trip_type == "roundtrip"
    assert req.portal_params()["inbounddate"] == "2099-10-17"
    assert req.portal_params("kiwi")["inbounddate"] == "17/10/2099"


@pytest.mark.parametrize(
    "overrides",
    [
        {"outbound_date": "10/10/2099"},
        {"inbound_date": "2099-10-09"},
        {"inbound_date": "2099-10-10"},
        {"cabin_class": "Luxury"},
        {"adults": 0},
        {"children": -1},
        {"trip_type": "multicity"},
        {"portals": []},
        {"portals": ["expedia"]},
        {"origin": "VIENNA"},
    ],
)
def test_invalid_requests(overrides):
    params = dict(origin="VIE", destination="WAW", outbound_date="2099-10-10")
    params.update(overrides)
    with pytest.raises(ValidationError):
        SearchRequest(**params)


def test_past_outbound_date_only_warns(caplog):
    caplog.set_level(logging.WARNING)
    req = SearchRequest(origin="VIE", destination="WAW", outbound_date="2001-01-01")
    assert req.outbound_date == "2001-01-01"
    assert any("in the past" in r.getMessage() for r in caplog.records)


def test_duplicate_portals_are_collapsed():
    req = SearchRequest(
        origin="VIE", destination="WAW", outbound_date="2099-10-10", portals=["kiwi", "kiwi"]
    )
    assert req.portals == ["kiwi"]
