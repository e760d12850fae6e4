from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from clinicdesk.schemas.appointment import AppointmentRead, AppointmentStatus

ALL_STATUSES = "All"

@dataclass(frozen=True)
class AppointmentFilter:
    search: str = ""
    on_date: Optional[date] = None
    status: str = ALL_STATUSES

    def matches(self, appointment: AppointmentRead) -> bool:
        if self.search:
            query = self.search.lower()
            if (
                query not in appointment.full_name.lower()
                and query not in appointment.mobile_number.lower()
            ):
                return False
        if self.on_date is not None and appointment.preferred_date != self.on_date:
            return False
        if self.status != ALL_STATUSES and appointment.status.value != self.status:
            return False
        return True

    def apply(self, appointments: Iterable[AppointmentRead]) -> List[AppointmentRead]:
        return [appointment for appointment in appointments if self.matches(appointment)]

    @property
    def active(self) -> bool:
        return bool(self.search) or self.on_date is not None or self.status != ALL_STATUSES

@dataclass(frozen=True)
class DashboardCounters:
    today: int
    new: int
    confirmed: int

def count_appointments(appointments: Iterable[AppointmentRead], today: Optional[date] = None) -> DashboardCounters:
    today = today or date.today()
    today_count = new_count = confirmed_count = 0
    for appointment in appointments:
        if appointment.preferred_date == today:
            today_count += 1
        if appointment.status == AppointmentStatus.NEW:
            new_count += 1
        elif appointment.status == AppointmentStatus.CONFIRMED:
            confirmed_count += 1
    return DashboardCounters(today=today_count, new=new_count, confirmed=confirmed_count)
