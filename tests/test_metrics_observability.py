from __future__ import annotations

import pytest
from fastapi import Request, Response

import app.main as main_module
from app.core.enums import ReservationStatusEnum
from app.core.metrics import (
    build_metrics_response,
    instrument_http_request,
    record_sync_failure,
    record_transition,
)


def _make_request(path: str) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "client": ("127.0.0.1", 12345),
        "scheme": "http",
        "server": ("testserver", 80),
        "query_string": b"",
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_http_metrics_instrumentation_tracks_status_and_path() -> None:
    async def _no_content(_: Request) -> Response:
        return Response(status_code=204)

    request = _make_request("/health")
    await instrument_http_request(request, _no_content)

    payload = build_metrics_response().body.decode("utf-8")
    assert "classbooking_http_requests_total" in payload
    assert 'path="/health"' in payload
    assert 'status_code="204"' in payload


def test_transition_and_sync_counters_use_plain_labels() -> None:
    record_transition(ReservationStatusEnum.PENDING, ReservationStatusEnum.CONFIRMED)
    record_sync_failure("sheets", "append")

    payload = build_metrics_response().body.decode("utf-8")
    assert 'from_status="pending",to_status="confirmed"' in payload
    assert 'adapter="sheets",operation="append"' in payload


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_prometheus_payload() -> None:
    response = await main_module.metrics_endpoint(_make_request("/metrics"))
    payload = response.body.decode("utf-8")

    assert response.status_code == 200
    assert "classbooking_http_requests_total" in payload
    assert "classbooking_capacity_rejections_total" in payload
