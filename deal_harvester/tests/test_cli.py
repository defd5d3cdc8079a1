import json
from unittest.mock import patch

import pandas as pd
from click.testing import CliRunner

from deal_harvester.cli import cli
from deal_harvester.markup_extractor import extract_flight_data
from deal_harvester.models import FlightData, SearchOutcome

from markup_samples import vie_waw_item


@patch("deal_harvester.cli.run_search")
def test_search_prints_summary(mock_run, airports):
    mock_run.return_value = SearchOutcome(
        data=extract_flight_data(vie_waw_item(), "sky", airports)
    )

    result = CliRunner().invoke(
        cli, ["search", "vie", "waw", "--outbound", "2099-10-10", "--portal", "sky"]
    )

    assert result.exit_code == 0, result.output
    assert "VIE -> WAW: success" in result.output
    assert "99.99 EUR" in result.output
    request = mock_run.call_args.args[0]
    assert request.portals == ["sky"]
    assert request.origin == "VIE"


@patch("deal_harvester.cli.run_search")
def test_search_json_and_csv(mock_run, airports, tmp_path):
    mock_run.return_value = SearchOutcome(
        data=extract_flight_data(vie_waw_item(), "sky", airports)
    )
    csv_path = tmp_path / "offers.csv"

    result = CliRunner().invoke(
        cli,
        ["search", "VIE", "WAW", "--outbound", "2099-10-10", "--json", "--csv", str(csv_path)],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["status"] == "success"
    assert payload["data"]["flightData"]["summary"]["totalBundles"] == 1
    assert len(pd.read_csv(csv_path)) == 2


@patch("deal_harvester.cli.run_search")
def test_search_failure_exit_code(mock_run):
    mock_run.return_value = SearchOutcome(
        data=FlightData(), errors=["Sky portal error: Failed to fetch initial page data for sky"]
    )

    result = CliRunner().invoke(cli, ["search", "VIE", "WAW", "--outbound", "2099-10-10"])

    assert result.exit_code == 1
    assert "failure" in result.output


@patch("deal_harvester.cli.run_search")
def test_search_rejects_invalid_request(mock_run):
    result = CliRunner().invoke(
        cli,
        ["search", "VIE", "WAW", "--outbound", "2099-10-10", "--inbound", "2099-10-01"],
    )
    assert result.exit_code == 2
    assert "Inbound date must be after outbound date" in result.output
    mock_run.assert_not_called()


@patch("deal_harvester.cli.run_search")
def test_search_csv_deals(mock_run, airports, tmp_path):
    mock_run.return_value = SearchOutcome(
        data=extract_flight_data(vie_waw_item(), "sky", airports)
    )
    csv_path = tmp_path / "deals.csv"

    result = CliRunner().invoke(
        cli,
        ["search", "VIE", "WAW", "--outbound", "2099-10-10", "--csv", str(csv_path), "--deals"],
    )

    assert result.exit_code == 0, result.output
    written = pd.read_csv(csv_path)
    assert list(written["price"]) == [99.99]
    assert list(written["airline"]) == ["Austrian"]
