import json

from backoffice.telemetry.tracing import emit_event, emit_metric


def _last_payload(caplog):
    assert caplog.records
    return json.loads(caplog.records[-1].message)


def test_emit_event_includes_actor_and_record(caplog):
    caplog.set_level("INFO", logger="backoffice.telemetry")

    returned = emit_event("record.updated", "Load", "l" * 24, actor_id="a" * 24, fields=["status"])

    payload = _last_payload(caplog)
    assert payload == returned
    assert payload == {
        "type": "event",
        "name": "record.updated",
        "entity": "Load",
        "recordId": "l" * 24,
        "actorId": "a" * 24,
        "attributes": {"fields": ["status"]},
    }


def test_emit_event_without_record_id(caplog):
    caplog.set_level("INFO", logger="backoffice.telemetry")

    emit_event("record.bulk_deleted", "Customer", count=3)

    payload = _last_payload(caplog)
    assert "recordId" not in payload
    assert payload["actorId"] is None
    assert payload["attributes"] == {"count": 3}


def test_emit_metric_includes_value(caplog):
    caplog.set_level("INFO", logger="backoffice.telemetry")

    emit_metric("records.list.total", 12, "Customer", page=2)

    payload = _last_payload(caplog)
    assert payload["type"] == "metric"
    assert payload["value"] == 12
    assert payload["entity"] == "Customer"
    assert payload["attributes"] == {"page": 2}
