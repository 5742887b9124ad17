import pytest

from flockcli.domain.models.common import Page, StreamFilter
from flockcli.domain.models.errors import ConfigurationError, RemoteFetchError


def test_parse_round_trips_to_locations_param():
    box = StreamFilter.parse(" -122.75, 36.8,-121.75 ,37.8")
    assert box.as_tuple() == (-122.75, 36.8, -121.75, 37.8)
    assert box.as_locations_param() == "-122.75,36.8,-121.75,37.8"


@pytest.mark.parametrize("text", ["1,2,3", "a,b,c,d", "1,2,3,4,5"])
def test_parse_rejects_malformed_boxes(text):
    with pytest.raises(ConfigurationError):
        StreamFilter.parse(text)


@pytest.mark.parametrize("coordinates", [
    (-190.0, 0.0, 10.0, 10.0),
    (0.0, -95.0, 10.0, 10.0),
    (10.0, 0.0, 0.0, 10.0),
    (0.0, 10.0, 10.0, 10.0),
])
def test_invalid_boxes_are_rejected(coordinates):
    with pytest.raises(ConfigurationError):
        StreamFilter(*coordinates)


def test_page_is_last_without_cursor_or_items():
    assert Page(items=[1], next_cursor=None).is_last
    assert Page(items=[], next_cursor=5).is_last
    assert not Page(items=[1], next_cursor=5).is_last


def test_remote_fetch_error_message_names_status_and_endpoint():
    error = RemoteFetchError("Rate limit exceeded", status_code=429, endpoint="/friends/ids.json")
    assert str(error) == "Rate limit exceeded (HTTP 429 from /friends/ids.json)"
    assert str(RemoteFetchError("offline")) == "offline"
