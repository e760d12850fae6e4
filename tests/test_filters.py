from datetime import date

from clinicdesk.services.filters import AppointmentFilter, count_appointments

from conftest import make_appointment

ROWS = [
    make_appointment(full_name="Asha Rao", mobile_number="9876543210", preferred_date=date(2025, 6, 10), status="New"),
    make_appointment(full_name="Ravi Menon", mobile_number="9123456780", preferred_date=date(2025, 6, 10), status="Confirmed"),
    make_appointment(full_name="Meera ASHOK", mobile_number="9000011111", preferred_date=date(2025, 6, 11), status="Confirmed"),
    make_appointment(full_name="Kiran Das", mobile_number="9555512345", preferred_date=date(2025, 6, 12), status="Cancelled"),
]

def names(rows):
    return [row.full_name for row in rows]

def test_no_filter_shows_everything():
    flt = AppointmentFilter()
    assert not flt.active
    assert flt.apply(ROWS) == ROWS

def test_search_matches_name_case_insensitively():
    assert names(AppointmentFilter(search="ash").apply(ROWS)) == ["Asha Rao", "Meera ASHOK"]

def test_search_matches_mobile_number():
    assert names(AppointmentFilter(search="12345").apply(ROWS)) == ["Ravi Menon", "Kiran Das"]

def test_date_and_status_combine():
    flt = AppointmentFilter(on_date=date(2025, 6, 10), status="Confirmed")
    assert flt.active
    assert names(flt.apply(ROWS)) == ["Ravi Menon"]

def test_status_all_means_no_status_filter():
    assert len(AppointmentFilter(status="All").apply(ROWS)) == 4
    assert names(AppointmentFilter(status="Cancelled").apply(ROWS)) == ["Kiran Das"]

def test_counters():
    counters = count_appointments(ROWS, today=date(2025, 6, 10))
    assert (counters.today, counters.new, counters.confirmed) == (2, 1, 2)
