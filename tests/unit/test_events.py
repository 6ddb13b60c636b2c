import json

import httpx

from domains.file_ingest.processors.events import EventEmitter


def enabled_settings(settings, **overrides):
    values = {
        "analytics_enabled": True,
        "analytics_url": "https://analytics.example.com/rest/v1/events",
        "analytics_api_key": "anon-key",
        "analytics_batch_size": 100,
        "analytics_max_queue": 5,
    }
    values.update(overrides)
    return settings.model_copy(update=values)


def test_disabled_emitter_records_but_never_sends(settings):
    def handler(request):
        raise AssertionError("must not send")

    emitter = EventEmitter(settings, transport=httpx.MockTransport(handler))

    event = emitter.emit("group_completed", expected_parts=3, file_count=12)

    assert event.event_data == {"expected_parts": 3, "file_count": 12}
    assert emitter.pending() == 0
    assert emitter.flush() is True
    assert [e.event_type for e in emitter.recent()] == ["group_completed"]


def test_recent_limit(settings):
    emitter = EventEmitter(settings)
    for parts in (1, 2, 3):
        emitter.emit("group_created", expected_parts=parts)

    assert [e.event_data["expected_parts"] for e in emitter.recent(2)] == [2, 3]
    assert emitter.recent(0) == []
    assert emitter.recent(-1) == []


def test_nested_payloads_are_rejected_without_raising(settings):
    emitter = EventEmitter(settings)

    assert emitter.emit("group_created", parts={"a": 1}) is None
    assert emitter.emit("group_created", parts=[1, 2]) is None
    assert emitter.recent() == []


def test_none_values_are_dropped(settings):
    emitter = EventEmitter(settings)

    event = emitter.emit("classification_resolved", method="heuristic", genre=None)

    assert event.event_data == {"method": "heuristic"}


def test_flush_posts_batch(settings):
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append((request.headers, json.loads(request.content)))
        return httpx.Response(201)

    emitter = EventEmitter(enabled_settings(settings), transport=httpx.MockTransport(handler))
    emitter.emit("group_created", expected_parts=2)
    emitter.emit("group_completed", expected_parts=2, file_count=4)

    assert emitter.flush() is True
    assert emitter.pending() == 0

    headers, rows = received[0]
    assert headers["apikey"] == "anon-key"
    assert [row["event_type"] for row in rows] == ["group_created", "group_completed"]
    assert rows[1]["event_data"] == {"expected_parts": 2, "file_count": 4}
    assert rows[0]["anonymous_id"] == "anonymous"


def test_failed_flush_requeues_and_caps_queue(settings):
    emitter = EventEmitter(
        enabled_settings(settings),
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    for index in range(4):
        emitter.emit("classification_resolved", index=index)

    assert emitter.flush() is False
    assert emitter.pending() == 4

    for index in range(4, 8):
        emitter.emit("classification_resolved", index=index)

    assert emitter.pending() == 5
    assert emitter.flush() is False
    assert emitter.pending() == 5


def test_unreachable_endpoint_does_not_raise(settings):
    def handler(request):
        raise httpx.ConnectError("no route", request=request)

    emitter = EventEmitter(enabled_settings(settings), transport=httpx.MockTransport(handler))
    emitter.emit("group_abandoned", received_parts=1)

    assert emitter.flush() is False
    assert emitter.pending() == 1


def test_queue_survives_restart(settings):
    config = enabled_settings(settings)
    failing = httpx.MockTransport(lambda request: httpx.Response(500))

    first = EventEmitter(config, transport=failing)
    first.emit("extraction_failed", reason="corrupt")
    first.flush()
    first.stop()

    second = EventEmitter(config, transport=failing)

    assert second.pending() == 1


def test_listener_errors_are_swallowed(settings):
    emitter = EventEmitter(settings)
    seen = []

    def broken(event):
        raise RuntimeError("listener bug")

    emitter.subscribe(broken)
    emitter.subscribe(seen.append)

    assert emitter.emit("group_created", expected_parts=1) is not None
    assert len(seen) == 1
