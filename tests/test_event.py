from datetime import datetime, timezone

from headless.context import ContextKey
from headless.event import Event, new_event, new_event_from_error


def _ctx():
    return {ContextKey.DEVICE_ID: "device-a", ContextKey.CLIENT_VERSION: "1.0.0"}


def test_new_event_takes_context_values():
    event = new_event(_ctx(), "update_available")
    assert event.device_id == "device-a"
    assert event.client_version == "1.0.0"
    assert event.type == "update_available"
    assert event.is_error is False
    assert event.message == ""
    assert event.data is None


def test_new_event_without_context():
    event = new_event(None, "started")
    assert event.device_id == ""
    assert event.client_version == ""


def test_new_event_ids_are_unique():
    ids = {new_event(None, "x").id for _ in range(50)}
    assert len(ids) == 50


def test_new_event_timestamp_is_now():
    before = datetime.now(timezone.utc)
    event = new_event(None, "x")
    after = datetime.now(timezone.utc)
    assert before <= event.timestamp <= after


def test_new_event_message_and_data():
    payload = {"manifest": "v2"}
    event = new_event(None, "x", message="hello", data=payload)
    assert event.message == "hello"
    assert event.data == {"manifest": "v2"}
    payload["manifest"] = "changed"
    assert event.data == {"manifest": "v2"}


def test_error_sets_flag_and_message():
    event = new_event(None, "x", error=ValueError("boom"))
    assert event.is_error is True
    assert event.message == "boom"


def test_new_event_from_error():
    event = new_event_from_error(_ctx(), "update_applied", RuntimeError("failed"), data={"k": 1})
    assert event.is_error is True
    assert event.message == "failed"
    assert event.data == {"k": 1}
    assert event.device_id == "device-a"


def test_explicit_message_overrides_error_text():
    event = new_event_from_error(None, "x", RuntimeError("failed"), message="custom")
    assert event.is_error is True
    assert event.message == "custom"


def test_to_dict_keys_and_values():
    event = new_event(_ctx(), "update_started", message="m", data={"k": "v"})
    result = event.to_dict()
    assert list(result) == [
        "id",
        "deviceId",
        "clientVersion",
        "timestamp",
        "source",
        "type",
        "message",
        "data",
        "isError",
    ]
    assert result["id"] == event.id
    assert result["deviceId"] == "device-a"
    assert result["clientVersion"] == "1.0.0"
    assert result["type"] == "update_started"
    assert result["data"] == {"k": "v"}
    assert result["isError"] is False
    assert datetime.fromisoformat(result["timestamp"]) == event.timestamp


def test_to_dict_omits_empty_data():
    assert "data" not in Event(message="a").to_dict()
    assert "data" not in Event(message="a", data={}).to_dict()