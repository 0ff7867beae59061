"""
Timekeeping tests.

Verifies:
- Only one staff-role user may be clocked in at a time
- Admins and drivers are exempt from the coverage rule
- Clock-out computes hours; admins can force clock-out
"""

import pytest

from laundromat.services import timekeeping_service
from laundromat.services.timekeeping_service import (
    AlreadyClockedInError,
    AnotherStaffActiveError,
    NotClockedInError,
)
from laundromat.validation import ValidationError

from conftest import get_auth_token, auth_headers


class TestShiftCoverage:

    def test_second_staff_blocked(self, seed):
        timekeeping_service.clock_in(user_id=seed["staff"].id)

        with pytest.raises(AnotherStaffActiveError) as exc_info:
            timekeeping_service.clock_in(user_id=seed["staff2"].id)
        assert exc_info.value.blocking_name == "Sam Staff"

    def test_admin_and_driver_exempt(self, seed):
        timekeeping_service.clock_in(user_id=seed["staff"].id)
        timekeeping_service.clock_in(user_id=seed["admin"].id)
        timekeeping_service.clock_in(user_id=seed["driver"].id)

        assert len(timekeeping_service.list_entries(open_only=True)) == 3

    def test_staff_not_blocked_by_admin(self, seed):
        timekeeping_service.clock_in(user_id=seed["admin"].id)
        entry = timekeeping_service.clock_in(user_id=seed["staff"].id)
        assert entry.status == "OPEN"

    def test_already_clocked_in(self, seed):
        timekeeping_service.clock_in(user_id=seed["staff"].id)
        with pytest.raises(AlreadyClockedInError):
            timekeeping_service.clock_in(user_id=seed["staff"].id)

    def test_next_staff_after_clock_out(self, seed):
        timekeeping_service.clock_in(user_id=seed["staff"].id, machine_counter_start=1200)
        closed = timekeeping_service.clock_out(user_id=seed["staff"].id, machine_counter_end=1260,
                                               shift_notes="  slow day ")
        assert closed.status == "CLOSED"
        assert closed.hours_worked is not None
        assert closed.machine_counter_end == 1260
        assert closed.shift_notes == "slow day"

        entry = timekeeping_service.clock_in(user_id=seed["staff2"].id)
        assert entry.user_name == "Sky Staff"


class TestClockOut:

    def test_not_clocked_in(self, seed):
        with pytest.raises(NotClockedInError):
            timekeeping_service.clock_out(user_id=seed["staff"].id)

    def test_force_clock_out(self, seed):
        timekeeping_service.clock_in(user_id=seed["staff"].id)
        entry = timekeeping_service.force_clock_out(
            target_user_id=seed["staff"].id, admin_user_id=seed["admin"].id
        )
        assert entry.closed_by_user_id == seed["admin"].id
        assert timekeeping_service.get_current_status(seed["staff"].id)["clocked_in"] is False

    def test_negative_counter_rejected(self, seed):
        with pytest.raises(ValidationError):
            timekeeping_service.clock_in(user_id=seed["staff"].id, machine_counter_start=-5)


class TestTimekeepingApi:

    def test_conflict_names_blocking_user(self, client, seed, staff_headers):
        assert client.post("/api/time-entries/clock-in", headers=staff_headers).status_code == 201

        other = auth_headers(get_auth_token(client, "staff2"))
        response = client.post("/api/time-entries/clock-in", headers=other)

        assert response.status_code == 409
        assert response.json["blocking_user"]["id"] == seed["staff"].id
        assert response.json["blocking_user"]["name"] == "Sam Staff"

    def test_status_round_trip(self, client, staff_headers):
        assert client.get("/api/time-entries/status", headers=staff_headers).json["clocked_in"] is False
        client.post("/api/time-entries/clock-in", headers=staff_headers)
        assert client.get("/api/time-entries/status", headers=staff_headers).json["clocked_in"] is True

        response = client.post("/api/time-entries/clock-out", headers=staff_headers,
                               json={"shift_notes": "done"})
        assert response.status_code == 200
        assert response.json["entry"]["status"] == "CLOSED"

    def test_clock_out_without_shift(self, client, staff_headers):
        response = client.post("/api/time-entries/clock-out", headers=staff_headers)
        assert response.status_code == 409

    def test_double_clock_in(self, client, staff_headers):
        assert client.post("/api/time-entries/clock-in", headers=staff_headers).status_code == 201
        assert client.post("/api/time-entries/clock-in", headers=staff_headers).status_code == 409

    def test_bad_counter_is_400(self, client, staff_headers):
        response = client.post("/api/time-entries/clock-in", headers=staff_headers,
                               json={"machine_counter_start": "lots"})
        assert response.status_code == 400

    def test_force_clock_out_admin_only(self, client, seed, staff_headers, admin_headers):
        client.post("/api/time-entries/clock-in", headers=staff_headers)
        body = {"user_id": seed["staff"].id}

        assert client.post("/api/time-entries/force-clock-out", headers=staff_headers, json=body).status_code == 403
        assert client.post("/api/time-entries/force-clock-out", headers=admin_headers, json=body).status_code == 200

        listing = client.get("/api/time-entries?open=true", headers=admin_headers)
        assert listing.json["entries"] == []
