"""HTTP contract tests: routing, auth, status codes and error bodies."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, date, datetime
from types import SimpleNamespace
from uuid import UUID, uuid4

import httpx
import pytest
import pytest_asyncio

from tutorslots.core.enums import BookingStatusEnum, BookingTypeEnum, RoleEnum
from tutorslots.core.security import create_access_token
from tutorslots.main import app
from tutorslots.modules.booking.service import WeeklyBookingOutcome, get_booking_service
from tutorslots.shared.exceptions import CapacityExceededException, SlotHasFutureBookingsException

API = "/api/v1"
STAMP = datetime(2025, 3, 1, 0, 0, tzinfo=UTC)


def make_booking(**overrides) -> SimpleNamespace:
    values = {
        "id": uuid4(),
        "slot_id": uuid4(),
        "enrollment_id": uuid4(),
        "session_date": date(2025, 3, 4),
        "starts_at": datetime(2025, 3, 3, 23, 0, tzinfo=UTC),
        "status": BookingStatusEnum.BOOKED,
        "booking_type": BookingTypeEnum.SINGLE,
        "weekly_end_date": None,
        "attendance_marked": False,
        "notes": None,
        "cancelled_by": None,
        "cancellation_reason": None,
        "cancelled_at": None,
        "created_at": STAMP,
        "updated_at": STAMP,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class StubBookingService:
    def __init__(self) -> None:
        self.book_result: object = None
        self.book_error: Exception | None = None
        self.calls: list[tuple[str, object]] = []

    async def book(self, payload, actor):
        self.calls.append(("book", actor))
        if self.book_error is not None:
            raise self.book_error
        return self.book_result

    async def deactivate_slot(self, slot_id: UUID, force: bool, actor):
        self.calls.append(("deactivate", force))
        raise SlotHasFutureBookingsException(3)

    async def list_my_bookings(self, actor, status, upcoming, limit, offset):
        self.calls.append(("my", (status, upcoming, limit, offset)))
        return [make_booking(), make_booking()], 5


def auth_headers(user_id: UUID, role: RoleEnum) -> dict[str, str]:
    token = create_access_token(subject=str(user_id), role=role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def stub_service() -> AsyncIterator[StubBookingService]:
    service = StubBookingService()
    app.dependency_overrides[get_booking_service] = lambda: service
    try:
        yield service
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(stub_service: StubBookingService) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


def booking_body(**overrides) -> dict:
    body = {"slot_id": str(uuid4()), "enrollment_id": str(uuid4()), "session_date": "2025-03-04"}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_single_booking_returns_201(client: httpx.AsyncClient, stub_service: StubBookingService) -> None:
    student_id = uuid4()
    stub_service.book_result = make_booking()

    response = await client.post(f"{API}/booking", json=booking_body(), headers=auth_headers(student_id, RoleEnum.STUDENT))

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["booking_type"] == "single"
    assert body["booking"]["status"] == "booked"
    assert body["message"] == "Session booked successfully"
    assert stub_service.calls[0][1].id == student_id


@pytest.mark.asyncio
async def test_weekly_package_with_nothing_booked_is_a_warning(
    client: httpx.AsyncClient,
    stub_service: StubBookingService,
) -> None:
    stub_service.book_result = WeeklyBookingOutcome(
        clamped_end_date=date(2025, 3, 18),
        skipped=[date(2025, 3, 4)],
        failed=[(date(2025, 3, 11), "This slot is fully booked for the selected date")],
    )

    response = await client.post(
        f"{API}/booking",
        json=booking_body(booking_type="weekly", weekly_end_date="2025-03-18"),
        headers=auth_headers(uuid4(), RoleEnum.STUDENT),
    )

    assert response.status_code == 200, response.text
    weekly = response.json()["weekly"]
    assert weekly["warning"] is True
    assert weekly["skipped"] == ["2025-03-04"]
    assert weekly["failed"] == [
        {"session_date": "2025-03-11", "reason": "This slot is fully booked for the selected date"}
    ]


@pytest.mark.asyncio
async def test_weekly_without_end_date_is_rejected_by_schema(
    client: httpx.AsyncClient,
    stub_service: StubBookingService,
) -> None:
    response = await client.post(
        f"{API}/booking",
        json=booking_body(booking_type="weekly"),
        headers=auth_headers(uuid4(), RoleEnum.STUDENT),
    )

    assert response.status_code == 422
    assert stub_service.calls == []


@pytest.mark.asyncio
async def test_domain_error_uses_unified_error_body(
    client: httpx.AsyncClient,
    stub_service: StubBookingService,
) -> None:
    stub_service.book_error = CapacityExceededException("This slot is fully booked for the selected date")

    response = await client.post(f"{API}/booking", json=booking_body(), headers=auth_headers(uuid4(), RoleEnum.STUDENT))

    assert response.status_code == 409
    assert response.json() == {
        "error": {"code": "capacity_exceeded", "message": "This slot is fully booked for the selected date"}
    }


@pytest.mark.asyncio
async def test_deactivation_refusal_reports_future_bookings(
    client: httpx.AsyncClient,
    stub_service: StubBookingService,
) -> None:
    response = await client.delete(
        f"{API}/scheduling/slots/{uuid4()}",
        headers=auth_headers(uuid4(), RoleEnum.ADMIN),
    )

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "slot_has_future_bookings"
    assert error["details"] == {"future_bookings": 3}
    assert stub_service.calls == [("deactivate", False)]


@pytest.mark.asyncio
async def test_my_bookings_page(client: httpx.AsyncClient, stub_service: StubBookingService) -> None:
    response = await client.get(
        f"{API}/booking/my",
        params={"status": "booked", "upcoming": "true", "limit": 2},
        headers=auth_headers(uuid4(), RoleEnum.STUDENT),
    )

    assert response.status_code == 200, response.text
    page = response.json()
    assert len(page["items"]) == 2
    assert (page["total"], page["limit"], page["offset"], page["next_offset"]) == (5, 2, 0, 2)
    assert stub_service.calls == [("my", (BookingStatusEnum.BOOKED, True, 2, 0))]


@pytest.mark.asyncio
async def test_missing_or_bad_token_is_unauthorized(client: httpx.AsyncClient) -> None:
    missing = await client.get(f"{API}/booking/my")
    assert missing.status_code == 401

    bad = await client.get(f"{API}/booking/my", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401
    assert bad.json() == {"error": {"code": "http_error", "message": "Invalid token"}}
