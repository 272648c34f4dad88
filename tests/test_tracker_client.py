import json

import pytest
import requests

from scent_tracker.errors import (
    TrackerAPIError,
    TrackerNotFoundError,
    TrackerPermissionError,
)
from scent_tracker.models import SessionMode
from scent_tracker.tracker_client import (
    LiveSessionSink,
    TrackerClient,
    create_default_session,
    get_default_session,
)


class FakeResp:
    """Minimal fake response matching needed parts of requests.Response."""

    def __init__(self, status_code=200, data=None, text=None):
        self.status_code = status_code
        self._data = data
        self.text = text if text is not None else json.dumps(data)
        self.url = "http://tracker.test"

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "headers": headers, "json": json, "timeout": timeout}
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(*responses, token="secret"):
    session = FakeSession(*responses)
    client = TrackerClient("http://tracker.test/", token, session=session, timeout=3)
    return client, session


def test_create_live_session_posts_dog_and_type():
    client, session = _client(FakeResp(200, {"session": {"id": "QWERTY12"}}))
    assert client.create_live_session("rex", SessionMode.TRACKING) == "QWERTY12"
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "http://tracker.test/live-sessions"
    assert call["json"] == {"dogId": "rex", "type": "tracking"}
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["timeout"] == 3


def test_missing_session_id_is_an_error():
    client, _ = _client(FakeResp(200, {"session": {}}))
    with pytest.raises(TrackerAPIError):
        client.create_live_session(None, SessionMode.TRAIL)


def test_no_token_means_no_authorization_header():
    client, session = _client(FakeResp(200, {"tracks": []}), token="")
    assert client.list_tracks() == []
    assert "Authorization" not in session.calls[0]["headers"]


@pytest.mark.parametrize(
    "status, error_type",
    [
        (401, TrackerPermissionError),
        (403, TrackerPermissionError),
        (404, TrackerNotFoundError),
        (500, TrackerAPIError),
    ],
)
def test_error_status_mapping(status, error_type):
    client, _ = _client(FakeResp(status, {"error": "Session not found"}))
    with pytest.raises(error_type) as excinfo:
        client.end_live_session("NOPE")
    assert "Session not found" in str(excinfo.value)


def test_plain_text_error_body_is_reported():
    client, _ = _client(FakeResp(502, None, text="Bad gateway"))
    with pytest.raises(TrackerAPIError, match="Bad gateway"):
        client.list_tracks()


def test_network_failure_is_wrapped():
    client, _ = _client(requests.ConnectionError("refused"))
    with pytest.raises(TrackerAPIError, match="refused"):
        client.get_track("t1")


def test_invalid_json_payload():
    client, _ = _client(FakeResp(200, None, text="<html>"))
    with pytest.raises(TrackerAPIError, match="invalid JSON"):
        client.list_tracks()


def test_live_session_reads_are_cached_until_update():
    client, session = _client(
        FakeResp(200, {"session": {"id": "A", "points": []}}),
        FakeResp(200, {"session": {"id": "A", "points": [1]}}),
        FakeResp(200, {"session": {"id": "A", "points": [1]}}),
        FakeResp(200, {"session": {"id": "A", "points": [1]}}),
    )
    first = client.get_live_session("A")
    again = client.get_live_session("A")
    assert first is again
    assert len(session.calls) == 1

    client.update_live_session("A", {"points": [1], "objects": [], "active": True})
    refreshed = client.get_live_session("A")
    assert refreshed["points"] == [1]
    assert client.get_live_session("A", use_cache=False)["points"] == [1]
    assert len(session.calls) == 4
    assert session.calls[1]["url"] == "http://tracker.test/live-sessions/A/update"


def test_track_endpoints():
    record = {"id": "t1", "dogId": "rex"}
    client, session = _client(
        FakeResp(200, {"track": {**record, "userId": "u1"}}),
        FakeResp(200, {"tracks": [record, "junk"]}),
        FakeResp(200, {"track": record}),
    )
    assert client.create_track(record)["userId"] == "u1"
    assert client.list_tracks() == [record]
    assert client.get_track("t1") == record
    assert [c["method"] for c in session.calls] == ["POST", "GET", "GET"]
    assert session.calls[2]["url"] == "http://tracker.test/tracks/t1"


def test_live_session_sink_delegates_to_client():
    client, session = _client(
        FakeResp(200, {"session": {"id": "S1"}}),
        FakeResp(200, {"session": {"id": "S1"}}),
        FakeResp(200, {"session": {"id": "S1", "active": False}}),
    )
    sink = LiveSessionSink(client)
    assert sink.create("rex", SessionMode.TRAIL) == "S1"
    sink.push("S1", {"points": [], "objects": [], "active": True, "type": "trail"})
    sink.end("S1")
    assert [c["url"].rsplit("/", 1)[-1] for c in session.calls] == [
        "live-sessions",
        "update",
        "end",
    ]


def test_default_session_retries_reads_only():
    session = create_default_session(pool_maxsize=4)
    adapter = session.get_adapter("https://tracker.test/tracks")
    retry = adapter.max_retries
    assert retry.is_retry("GET", 503)
    assert not retry.is_retry("POST", 503)
    assert not retry.is_retry("GET", 500)
    assert get_default_session() is get_default_session()
