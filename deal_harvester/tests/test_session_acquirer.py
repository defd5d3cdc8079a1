import asyncio
from unittest.mock import patch

import requests

from deal_harvester.search_request import SearchRequest
from deal_harvester.session_acquirer import (
    build_portal_url,
    extract_session_cookie,
    extract_session_tokens,
    fetch_session,
    REQUIRED_TOKENS,
)

from markup_samples import response


SKY_PAGE = """
<html><head>
<script src="/js/app.js"></script>
<script>
  var cfg = { theme: 'dark' };
</script>
<script>
  $.ajax({
    url: '/portal/sky/poll',
    data: {
      '_token': 'tok123',
      'session': 'sess-1',
      'suuid': 'uuid-9',
      'deeplink': 'https://deep.example/?a=1',
      'noc': 0
    }
  });
</script>
</head><body></body></html>
"""

KIWI_PAGE = """
<script>
  fetchResults({ data: { '_token': 'kiwitok', 'type': '' } });
</script>
"""

COOKIES = (
    "XSRF-TOKEN=abc; expires=Wed, 01 Oct 2025 10:00:00 GMT; path=/, "
    "flightsfinder_session=s3cr3t; path=/; httponly"
)


def make_request(**overrides):
    params = dict(origin="vie", destination="waw", outbound_date="2025-10-10")
    params.update(overrides)
    return SearchRequest(**params)


def test_build_portal_url_uses_iso_dates():
    url = build_portal_url("kiwi", make_request(inbound_date="2025-10-17"), "https://portal.test/")
    assert url.startswith("https://portal.test/kiwi?")
    assert "originplace=VIE" in url
    assert "outbounddate=2025-10-10" in url
    assert "inbounddate=2025-10-17" in url
    assert "cabinclass=Economy" in url
    assert "currency=EUR" in url


def test_extract_session_cookie_exact_key():
    assert extract_session_cookie(COOKIES, "flightsfinder_session") == "flightsfinder_session=s3cr3t"
    assert extract_session_cookie("xflightsfinder_session=1; path=/", "flightsfinder_session") == ""
    assert extract_session_cookie(None, "flightsfinder_session") == ""


def test_extract_session_tokens_sky():
    tokens = extract_session_tokens(SKY_PAGE, REQUIRED_TOKENS["sky"])
    assert tokens is not None
    assert tokens["_token"] == "tok123"
    assert tokens["session"] == "sess-1"
    assert tokens["suuid"] == "uuid-9"
    assert tokens["deeplink"] == "https://deep.example/?a=1"


def test_extract_session_tokens_missing_field():
    assert extract_session_tokens(KIWI_PAGE, REQUIRED_TOKENS["sky"]) is None
    assert extract_session_tokens(KIWI_PAGE, REQUIRED_TOKENS["kiwi"])["_token"] == "kiwitok"
    assert extract_session_tokens("", REQUIRED_TOKENS["kiwi"]) is None


@patch("requests.get")
def test_fetch_session_success(mock_get, settings):
    mock_get.return_value = response(SKY_PAGE, cookie=COOKIES)

    session = asyncio.run(fetch_session("sky", make_request(), settings))

    assert session is not None
    assert session.cookie == "flightsfinder_session=s3cr3t"
    assert session.tokens["suuid"] == "uuid-9"
    assert session.referer.startswith("https://portal.test/sky?")
    args, kwargs = mock_get.call_args
    assert args[0] == session.referer
    assert "Mozilla" in kwargs["headers"]["User-Agent"]
    assert kwargs["timeout"] == settings.http_timeout_s


@patch("requests.get")
def test_fetch_session_without_cookie_is_not_fatal(mock_get, settings):
    mock_get.return_value = response(KIWI_PAGE)
    session = asyncio.run(fetch_session("kiwi", make_request(), settings))
    assert session is not None
    assert session.cookie == ""


@patch("requests.get")
def test_fetch_session_missing_tokens(mock_get, settings):
    mock_get.return_value = response(KIWI_PAGE, cookie=COOKIES)
    assert asyncio.run(fetch_session("sky", make_request(), settings)) is None


@patch("requests.get")
def test_fetch_session_http_error(mock_get, settings):
    mock_get.return_value = response("Server error", status=503)
    assert asyncio.run(fetch_session("sky", make_request(), settings)) is None
    assert mock_get.call_count == 1


@patch("requests.get")
def test_fetch_session_transport_error(mock_get, settings):
    mock_get.side_effect = requests.ConnectionError("unreachable")
    assert asyncio.run(fetch_session("kiwi", make_request(), settings)) is None
    assert mock_get.call_count == 1
