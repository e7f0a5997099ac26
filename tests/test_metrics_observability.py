from __future__ import annotations

import pytest
from fastapi import Request, Response

import tutorslots.main as main_module
from tutorslots.core.metrics import build_metrics_response, instrument_http_request, record_booking_attempt


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
    assert "tutorslots_http_requests_total" in payload
    assert 'path="/health"' in payload
    assert 'status_code="204"' in payload


def test_booking_attempts_are_labelled_by_type_and_outcome() -> None:
    record_booking_attempt("weekly", "capacity_exceeded")

    payload = build_metrics_response().body.decode("utf-8")
    assert "tutorslots_booking_attempts_total" in payload
    assert 'booking_type="weekly"' in payload
    assert 'outcome="capacity_exceeded"' in payload


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_prometheus_payload() -> None:
    response = await main_module.metrics_endpoint(_make_request("/metrics"))
    payload = response.body.decode("utf-8")

    assert response.status_code == 200
    assert "tutorslots_http_requests_total" in payload
    assert "tutorslots_slot_cascade_cancellations_total" in payload
