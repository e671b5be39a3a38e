from __future__ import annotations

import asyncio
from typing import Any

from fakes import FakeConnection, make_session

from mcp_servers.page_devtools.errors import CdpConnectionError
from mcp_servers.page_devtools.network_recorder import NetworkRecorder, NetworkRequestRecord, filter_requests


def _request(request_id: str, url: str, method: str = "GET", type: str = "Document") -> dict[str, Any]:
    return {
        "requestId": request_id,
        "request": {"url": url, "method": method, "headers": {"Accept": "*/*"}},
        "type": type,
        "initiator": {"type": "parser"},
        "timestamp": 100.0,
        "wallTime": 1_700_000_000.0,
    }


def _response(request_id: str, status: int, url: str = "", type: str | None = None) -> dict[str, Any]:
    params: dict[str, Any] = {
        "requestId": request_id,
        "response": {
            "url": url,
            "status": status,
            "statusText": "OK" if status < 400 else "Internal Server Error",
            "mimeType": "text/html",
            "headers": {"Content-Type": "text/html"},
            "fromDiskCache": False,
        },
    }
    if type:
        params["type"] = type
    return params


def _started() -> tuple[NetworkRecorder, FakeConnection]:
    session, conns = make_session()
    recorder = NetworkRecorder(session)
    asyncio.run(recorder.start())
    return recorder, conns[0]


def test_start_enables_network_domain() -> None:
    recorder, conn = _started()

    assert recorder.capturing
    assert ("Network.enable", {}) in conn.calls


def test_events_merge_into_one_record() -> None:
    recorder, conn = _started()

    conn.emit("Network.requestWillBeSent", _request("1", "https://example.test/"))
    conn.emit("Network.responseReceived", _response("1", 200, url="https://example.test/"))
    conn.emit("Network.loadingFinished", {"requestId": "1", "timestamp": 100.25, "encodedDataLength": 512})

    (record,) = recorder.get_requests()
    assert record.url == "https://example.test/"
    assert record.method == "GET"
    assert record.status == 200
    assert record.statusText == "OK"
    assert record.resourceType == "Document"
    assert record.initiatorType == "parser"
    assert record.requestHeaders == {"Accept": "*/*"}
    assert record.responseHeaders == {"Content-Type": "text/html"}
    assert record.fromCache is False
    assert record.encodedDataLength == 512
    assert record.endTime == 100.25
    assert not record.failed


def test_response_before_request_keeps_fields_from_both() -> None:
    recorder, conn = _started()

    conn.emit("Network.responseReceived", _response("r1", 302, url="https://example.test/redirected", type="XHR"))
    conn.emit("Network.requestWillBeSent", _request("r1", "https://example.test/first", method="POST", type="XHR"))

    records = recorder.get_requests()
    assert len(records) == 1
    record = records[0]
    assert record.status == 302
    assert record.method == "POST"
    assert record.url == "https://example.test/first"
    assert record.resourceType == "XHR"
    assert record.startTime == 100.0


def test_absent_fields_do_not_overwrite() -> None:
    recorder, conn = _started()

    conn.emit("Network.requestWillBeSent", _request("1", "https://example.test/", method="PUT"))
    conn.emit("Network.responseReceived", {"requestId": "1", "response": {"status": 204}})

    (record,) = recorder.get_requests()
    assert record.method == "PUT"
    assert record.url == "https://example.test/"
    assert record.resourceType == "Document"
    assert record.fromCache is None


def test_stop_ignores_further_events_and_keeps_records() -> None:
    recorder, conn = _started()

    conn.emit("Network.requestWillBeSent", _request("1", "https://example.test/a"))
    recorder.stop()
    conn.emit("Network.requestWillBeSent", _request("2", "https://example.test/b"))
    conn.emit("Network.loadingFailed", {"requestId": "1", "errorText": "net::ERR_ABORTED"})

    assert [r.requestId for r in recorder.get_requests()] == ["1"]
    assert recorder.get_requests()[0].errorText is None


def test_start_again_resets_records_without_stop() -> None:
    recorder, conn = _started()

    conn.emit("Network.requestWillBeSent", _request("1", "https://example.test/a"))
    asyncio.run(recorder.start())

    assert recorder.get_requests() == []
    assert recorder.capturing
    assert recorder.session.events.listener_count("Network.requestWillBeSent") == 1


def test_clear_empties_records_while_capturing() -> None:
    recorder, conn = _started()

    conn.emit("Network.requestWillBeSent", _request("1", "https://example.test/a"))
    recorder.clear()
    conn.emit("Network.requestWillBeSent", _request("2", "https://example.test/b"))

    assert [r.requestId for r in recorder.get_requests()] == ["2"]


def test_loading_failed_without_text_uses_default() -> None:
    recorder, conn = _started()

    conn.emit("Network.loadingFailed", {"requestId": "9"})

    (record,) = recorder.get_requests()
    assert record.errorText == "Request failed"
    assert record.url == ""
    assert record.method == "GET"
    assert record.failed


def test_only_failed_returns_the_failing_post() -> None:
    recorder, conn = _started()

    conn.emit("Network.requestWillBeSent", _request("a", "https://example.test/a", method="GET"))
    conn.emit("Network.responseReceived", _response("a", 200))
    conn.emit("Network.loadingFinished", {"requestId": "a", "encodedDataLength": 10})
    conn.emit("Network.requestWillBeSent", _request("b", "https://example.test/b", method="POST"))
    conn.emit("Network.responseReceived", _response("b", 500))
    conn.emit("Network.loadingFailed", {"requestId": "b", "errorText": "net::ERR_FAILED"})

    failed = filter_requests(recorder.get_requests(), only_failed=True)

    assert [r.url for r in failed] == ["https://example.test/b"]
    assert failed[0].errorText == "net::ERR_FAILED"
    assert failed[0].status == 500


def test_filter_by_method_type_and_limit_keeps_first_seen_order() -> None:
    records = [
        NetworkRequestRecord(requestId="1", method="GET", resourceType="Document"),
        NetworkRequestRecord(requestId="2", method="POST", resourceType="XHR"),
        NetworkRequestRecord(requestId="3", method="GET", resourceType="XHR"),
        NetworkRequestRecord(requestId="4", method="GET", resourceType="XHR"),
    ]

    assert [r.requestId for r in filter_requests(records, methods=["get"])] == ["1", "3", "4"]
    assert [r.requestId for r in filter_requests(records, resource_types=["XHR"])] == ["2", "3", "4"]
    assert [r.requestId for r in filter_requests(records, methods=["GET"], resource_types=["XHR"], limit=1)] == ["3"]
    assert filter_requests(records, limit=0) == []


def test_bodies_are_fetched_on_demand_and_failures_return_none() -> None:
    session, conns = make_session(
        {
            "Network.getResponseBody": {"body": "aGVsbG8=", "base64Encoded": True},
            "Network.getRequestPostData": CdpConnectionError("No post data available for the request"),
        }
    )
    recorder = NetworkRecorder(session)

    async def run() -> tuple:
        return await recorder.get_response_body("1"), await recorder.get_request_post_data("1")

    body, post = asyncio.run(run())

    assert body == {"body": "aGVsbG8=", "base64Encoded": True}
    assert post is None
    assert not recorder.capturing


def test_record_to_dict_drops_absent_fields() -> None:
    record = NetworkRequestRecord(requestId="1", url="https://example.test/", status=404)
    data = record.to_dict()

    assert data["status"] == 404
    assert "errorText" not in data
    assert record.failed


def test_disposing_the_session_stops_capture() -> None:
    recorder, conn = _started()

    asyncio.run(recorder.session.dispose())

    assert not recorder.capturing
    conn.sink("Network.requestWillBeSent", _request("late", "https://example.test/late"))
    assert recorder.get_requests() == []
