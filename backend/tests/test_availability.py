"""
Staff Availability Tests

Covers the window resolution order: weekly schedule row, then tenant
business hours, then the whole day; with breaks and leave cut out.
"""

from datetime import time, timedelta

import pytest

from appointly.errors import NotFoundError, TenantIsolationError
from appointly.services import settings_service, staff_service
from appointly.services.availability_service import (
    WHOLE_DAY,
    get_available_intervals,
    is_staff_available,
    subtract_interval,
)

from conftest import BOOKING_DAY


class TestSubtractInterval:
    def test_cut_in_the_middle(self):
        assert subtract_interval([(time(9), time(18))], time(12), time(13)) == [
            (time(9), time(12)),
            (time(13), time(18)),
        ]

    def test_cut_outside_leaves_interval(self):
        assert subtract_interval([(time(9), time(12))], time(12), time(13)) == [(time(9), time(12))]

    def test_cut_covering_everything(self):
        assert subtract_interval([(time(9), time(12))], time(8), time(13)) == []

    def test_cut_overlapping_start(self):
        assert subtract_interval([(time(9), time(12))], time(8), time(10)) == [(time(10), time(12))]


class TestWindowResolution:
    def test_no_schedule_no_business_hours_is_whole_day(self, db_session, tenant_a, alice):
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == [WHOLE_DAY]
        assert is_staff_available(tenant_a.id, alice.id, BOOKING_DAY, time(0, 0), time(23, 30))

    def test_falls_back_to_business_hours(self, db_session, tenant_a, alice):
        settings_service.update_business_hours(tenant_a.id, {
            "business_start_time": "09:00",
            "business_end_time": "18:00",
            "break_start_time": "12:00",
            "break_end_time": "13:00",
        })
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == [
            (time(9), time(12)),
            (time(13), time(18)),
        ]
        assert not is_staff_available(tenant_a.id, alice.id, BOOKING_DAY, time(8), time(9))
        assert not is_staff_available(tenant_a.id, alice.id, BOOKING_DAY, time(11, 30), time(12, 30))
        assert is_staff_available(tenant_a.id, alice.id, BOOKING_DAY, time(13), time(14))

    def test_schedule_row_overrides_business_hours(self, db_session, tenant_a, alice):
        settings_service.update_business_hours(tenant_a.id, {
            "business_start_time": "09:00",
            "business_end_time": "18:00",
        })
        staff_service.update_schedule(tenant_a.id, alice.id, [
            {
                "day_of_week": BOOKING_DAY.weekday(),
                "start_time": "10:00",
                "end_time": "16:00",
                "break_start_time": "12:30",
                "break_end_time": "13:00",
            },
        ])
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == [
            (time(10), time(12, 30)),
            (time(13), time(16)),
        ]

    def test_schedule_for_other_weekday_does_not_apply(self, db_session, tenant_a, alice):
        staff_service.update_schedule(tenant_a.id, alice.id, [
            {"day_of_week": (BOOKING_DAY.weekday() + 1) % 7, "start_time": "10:00", "end_time": "16:00"},
        ])
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == [WHOLE_DAY]

    def test_non_working_day(self, db_session, tenant_a, alice):
        staff_service.update_schedule(tenant_a.id, alice.id, [
            {"day_of_week": BOOKING_DAY.weekday(), "is_working_day": False},
        ])
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == []
        assert not is_staff_available(tenant_a.id, alice.id, BOOKING_DAY, time(10), time(11))


class TestLeave:
    def test_full_day_leave(self, db_session, tenant_a, alice):
        staff_service.create_leaves(tenant_a.id, alice.id, {"leave_date": BOOKING_DAY.isoformat()})
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == []
        # The next day is unaffected
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY + timedelta(days=1)) == [WHOLE_DAY]

    def test_partial_leave_is_cut_out(self, db_session, tenant_a, alice):
        staff_service.update_schedule(tenant_a.id, alice.id, [
            {"day_of_week": BOOKING_DAY.weekday(), "start_time": "09:00", "end_time": "18:00"},
        ])
        staff_service.create_leaves(tenant_a.id, alice.id, {
            "leave_date": BOOKING_DAY.isoformat(),
            "is_full_day": False,
            "start_time": "14:00",
            "end_time": "16:00",
        })
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == [
            (time(9), time(14)),
            (time(16), time(18)),
        ]
        assert not is_staff_available(tenant_a.id, alice.id, BOOKING_DAY, time(13, 30), time(14, 30))

    def test_multi_day_leave_skips_existing_dates(self, db_session, tenant_a, alice):
        first = staff_service.create_leaves(tenant_a.id, alice.id, {"leave_date": BOOKING_DAY.isoformat()})
        assert len(first) == 1
        created = staff_service.create_leaves(tenant_a.id, alice.id, {
            "leave_dates": [
                BOOKING_DAY.isoformat(),
                (BOOKING_DAY + timedelta(days=1)).isoformat(),
            ],
        })
        assert [leave.leave_date for leave in created] == [BOOKING_DAY + timedelta(days=1)]

    def test_removing_leave_reopens_the_day(self, db_session, tenant_a, alice):
        (leave,) = staff_service.create_leaves(tenant_a.id, alice.id, {"leave_date": BOOKING_DAY.isoformat()})
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == []

        staff_service.delete_leave(tenant_a.id, alice.id, leave.id)
        assert get_available_intervals(tenant_a.id, alice.id, BOOKING_DAY) == [WHOLE_DAY]
        assert staff_service.list_leaves(tenant_a.id, alice.id) == []

    def test_leave_of_other_staff_not_found(self, db_session, tenant_a, alice, bob):
        (leave,) = staff_service.create_leaves(tenant_a.id, alice.id, {"leave_date": BOOKING_DAY.isoformat()})
        with pytest.raises(NotFoundError):
            staff_service.delete_leave(tenant_a.id, bob.id, leave.id)
        assert len(staff_service.list_leaves(tenant_a.id, alice.id)) == 1

    def test_leave_of_other_tenant_not_removed(self, db_session, tenant_a, tenant_b, alice, make_staff):
        erin = make_staff(tenant_b, "Erin")
        (leave,) = staff_service.create_leaves(tenant_b.id, erin.id, {"leave_date": BOOKING_DAY.isoformat()})
        with pytest.raises(NotFoundError):
            staff_service.delete_leave(tenant_a.id, alice.id, leave.id)
        with pytest.raises(TenantIsolationError):
            staff_service.delete_leave_by_date(tenant_a.id, erin.id, BOOKING_DAY)
        assert len(staff_service.list_leaves(tenant_b.id, erin.id)) == 1

    def test_remove_by_date(self, db_session, tenant_a, alice):
        staff_service.create_leaves(tenant_a.id, alice.id, {
            "leave_dates": [BOOKING_DAY.isoformat(), (BOOKING_DAY + timedelta(days=1)).isoformat()],
        })
        assert staff_service.delete_leave_by_date(tenant_a.id, alice.id, BOOKING_DAY) == 1
        assert [leave.leave_date for leave in staff_service.list_leaves(tenant_a.id, alice.id)] == [
            BOOKING_DAY + timedelta(days=1),
        ]
        # Nothing left on that date: not an error
        assert staff_service.delete_leave_by_date(tenant_a.id, alice.id, BOOKING_DAY) == 0

    def test_leave_can_be_recorded_again_after_removal(self, db_session, tenant_a, alice):
        staff_service.create_leaves(tenant_a.id, alice.id, {"leave_date": BOOKING_DAY.isoformat()})
        staff_service.delete_leave_by_date(tenant_a.id, alice.id, BOOKING_DAY)
        again = staff_service.create_leaves(tenant_a.id, alice.id, {"leave_date": BOOKING_DAY.isoformat()})
        assert len(again) == 1


class TestStaffState:
    def test_inactive_staff_has_no_availability(self, db_session, tenant_a, make_staff):
        carl = make_staff(tenant_a, "Carl", status="INACTIVE")
        assert get_available_intervals(tenant_a.id, carl.id, BOOKING_DAY) == []

    def test_non_bookable_staff_has_no_availability(self, db_session, tenant_a, make_staff):
        dana = make_staff(tenant_a, "Dana", is_bookable=False)
        assert get_available_intervals(tenant_a.id, dana.id, BOOKING_DAY) == []

    def test_bookable_roster(self, db_session, tenant_a, tenant_b, alice, bob, make_staff):
        make_staff(tenant_a, "Carl", status="INACTIVE")
        make_staff(tenant_a, "Dana", is_bookable=False)
        make_staff(tenant_b, "Erin")
        roster = staff_service.list_bookable_staff(tenant_a.id)
        assert [s.name for s in roster] == ["Alice", "Bob"]

    def test_staff_of_other_tenant_not_found(self, db_session, tenant_a, tenant_b, make_staff):
        erin = make_staff(tenant_b, "Erin")
        with pytest.raises(NotFoundError):
            get_available_intervals(tenant_a.id, erin.id, BOOKING_DAY)
