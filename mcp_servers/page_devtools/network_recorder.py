"""Network request capture correlated by CDP requestId.

Lifecycle events can arrive in any order (a redirect can deliver
``responseReceived`` before the matching ``requestWillBeSent``). Every event
looks up or creates the record for its request id and merges only the fields
it actually carries.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from .best_effort import best_effort

if TYPE_CHECKING:
    from .page_session import PageSession

logger = logging.getLogger("mcp.page_devtools.network")

REQUEST_WILL_BE_SENT = "Network.requestWillBeSent"
RESPONSE_RECEIVED = "Network.responseReceived"
LOADING_FINISHED = "Network.loadingFinished"
LOADING_FAILED = "Network.loadingFailed"


@dataclass(slots=True)
class NetworkRequestRecord:
    requestId: str
    url: str = ""
    method: str = "GET"
    startTime: float = 0.0
    resourceType: str | None = None
    initiatorType: str | None = None
    wallTime: float | None = None
    status: int | None = None
    statusText: str | None = None
    mimeType: str | None = None
    encodedDataLength: float | None = None
    requestHeaders: dict[str, Any] | None = None
    responseHeaders: dict[str, Any] | None = None
    fromCache: bool | None = None
    endTime: float | None = None
    errorText: str | None = None
    requestBodySize: int | None = None
    responseBodySize: float | None = None

    @property
    def failed(self) -> bool:
        return bool(self.errorText) or (isinstance(self.status, int) and self.status >= 400)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def _merge(record: NetworkRequestRecord, **fields: Any) -> None:
    """Set fields that are present; absent (None) values never overwrite."""
    for name, value in fields.items():
        if value is not None:
            setattr(record, name, value)


def _num(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class NetworkRecorder:
    def __init__(self, session: PageSession) -> None:
        self.session = session
        self._capturing = False
        # Insertion order is first-seen order.
        self._requests: dict[str, NetworkRequestRecord] = {}

    async def start(self) -> None:
        self._attach()
        await self.session.enable_domain("Network", {})
        self._requests.clear()
        self._capturing = True
        logger.info("network_capture_started")

    @property
    def capturing(self) -> bool:
        """False once the session dropped our listeners, even without ``stop()``."""
        return self._capturing and self.session.events.is_registered(REQUEST_WILL_BE_SENT, ("network", REQUEST_WILL_BE_SENT))

    def stop(self) -> None:
        self._capturing = False
        logger.info("network_capture_stopped requests=%s", len(self._requests))

    def clear(self) -> None:
        self._requests.clear()

    def get_requests(self) -> list[NetworkRequestRecord]:
        return list(self._requests.values())

    async def get_response_body(self, request_id: str) -> dict[str, Any] | None:
        """Return ``{"body", "base64Encoded"}`` or None when the body is unavailable."""
        res = await best_effort(
            "Network.getResponseBody",
            self.session.send_command("Network.getResponseBody", {"requestId": request_id}),
            log=logger,
        )
        if not res.ok or not isinstance(res.value, dict):
            return None
        return {"body": str(res.value.get("body") or ""), "base64Encoded": bool(res.value.get("base64Encoded"))}

    async def get_request_post_data(self, request_id: str) -> str | None:
        res = await best_effort(
            "Network.getRequestPostData",
            self.session.send_command("Network.getRequestPostData", {"requestId": request_id}),
            log=logger,
        )
        if not res.ok or not isinstance(res.value, dict):
            return None
        data = res.value.get("postData")
        return data if isinstance(data, str) else None

    # ─────────────────────────────────────────────────────────────────────────
    # Event ingestion
    # ─────────────────────────────────────────────────────────────────────────

    def _attach(self) -> None:
        events = self.session.events
        events.register(REQUEST_WILL_BE_SENT, self._on_request_will_be_sent, key=("network", REQUEST_WILL_BE_SENT))
        events.register(RESPONSE_RECEIVED, self._on_response_received, key=("network", RESPONSE_RECEIVED))
        events.register(LOADING_FINISHED, self._on_loading_finished, key=("network", LOADING_FINISHED))
        events.register(LOADING_FAILED, self._on_loading_failed, key=("network", LOADING_FAILED))

    def _ensure_record(self, request_id: str) -> NetworkRequestRecord:
        record = self._requests.get(request_id)
        if record is None:
            record = NetworkRequestRecord(requestId=request_id, startTime=time.time())
            self._requests[request_id] = record
        return record

    def _record_for(self, params: dict[str, Any]) -> NetworkRequestRecord | None:
        if not self.capturing:
            return None
        request_id = params.get("requestId")
        if not isinstance(request_id, str) or not request_id:
            return None
        return self._ensure_record(request_id)

    def _on_request_will_be_sent(self, params: dict[str, Any]) -> None:
        record = self._record_for(params)
        if record is None:
            return
        request = params.get("request") if isinstance(params.get("request"), dict) else {}
        initiator = params.get("initiator") if isinstance(params.get("initiator"), dict) else {}
        post_data = request.get("postData")
        _merge(
            record,
            url=request.get("url") or None,
            method=request.get("method") or None,
            resourceType=params.get("type"),
            initiatorType=initiator.get("type"),
            startTime=_num(params.get("timestamp")),
            wallTime=_num(params.get("wallTime")),
            requestHeaders=request.get("headers") if isinstance(request.get("headers"), dict) else None,
            requestBodySize=len(post_data) if request.get("hasPostData") and isinstance(post_data, str) else None,
        )

    def _on_response_received(self, params: dict[str, Any]) -> None:
        record = self._record_for(params)
        if record is None:
            return
        response = params.get("response") if isinstance(params.get("response"), dict) else {}
        status = response.get("status")
        from_cache = None
        if "fromDiskCache" in response or "fromServiceWorker" in response:
            from_cache = bool(response.get("fromDiskCache") or response.get("fromServiceWorker"))
        _merge(
            record,
            url=None if record.url else (response.get("url") or None),
            resourceType=None if record.resourceType else params.get("type"),
            status=int(status) if isinstance(status, (int, float)) and not isinstance(status, bool) else None,
            statusText=response.get("statusText"),
            mimeType=response.get("mimeType"),
            responseHeaders=response.get("headers") if isinstance(response.get("headers"), dict) else None,
            fromCache=from_cache,
        )

    def _on_loading_finished(self, params: dict[str, Any]) -> None:
        record = self._record_for(params)
        if record is None:
            return
        size = _num(params.get("encodedDataLength"))
        _merge(record, encodedDataLength=size, responseBodySize=size, endTime=_num(params.get("timestamp")))

    def _on_loading_failed(self, params: dict[str, Any]) -> None:
        record = self._record_for(params)
        if record is None:
            return
        _merge(
            record,
            errorText=params.get("errorText") or "Request failed",
            endTime=_num(params.get("timestamp")),
        )


def filter_requests(
    records: Iterable[NetworkRequestRecord],
    *,
    limit: int = 20,
    methods: Iterable[str] | None = None,
    resource_types: Iterable[str] | None = None,
    only_failed: bool = False,
) -> list[NetworkRequestRecord]:
    """Apply the listing filters, keep first-seen order, truncate to ``limit``."""
    wanted_methods = {m.upper() for m in methods or () if isinstance(m, str) and m}
    wanted_types = {t for t in resource_types or () if isinstance(t, str) and t}
    out: list[NetworkRequestRecord] = []
    for record in records:
        if len(out) >= max(0, int(limit)):
            break
        if wanted_methods and (record.method or "").upper() not in wanted_methods:
            continue
        if wanted_types and record.resourceType not in wanted_types:
            continue
        if only_failed and not record.failed:
            continue
        out.append(record)
    return out


__all__ = ["NetworkRecorder", "NetworkRequestRecord", "filter_requests"]
