from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Iterator, List, Optional, Set
from uuid import UUID


def build_date_range(end_date: date, today: Optional[date] = None) -> List[date]:
    if today is None:
        today = date.today()
    current = today + timedelta(days=1)
    dates = []
    while current <= end_date:
        dates.append(current)
        current += timedelta(days=1)
    return dates


class SelectionSet:
    def __init__(self, dates: Iterable[date] = ()):
        self._dates: Set[date] = set(dates)

    def toggle(self, day: date) -> bool:
        """Add `day` if absent, remove it if present. Returns membership after."""
        if day in self._dates:
            self._dates.remove(day)
            return False
        self._dates.add(day)
        return True

    def contains(self, day: date) -> bool:
        return day in self._dates

    def all(self) -> List[date]:
        return sorted(self._dates)

    def restrict_to(self, candidates: Iterable[date]) -> None:
        self._dates &= set(candidates)

    def clear(self) -> None:
        self._dates.clear()

    def __contains__(self, day: object) -> bool:
        return day in self._dates

    def __iter__(self) -> Iterator[date]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._dates)

    def __bool__(self) -> bool:
        return bool(self._dates)


@dataclass
class FollowUpRequest:
    source_appointment_id: UUID
    end_date: Optional[date] = None
    candidate_dates: List[date] = field(default_factory=list)
    selection: SelectionSet = field(default_factory=SelectionSet)

    def choose_end_date(self, end_date: Optional[date], today: Optional[date] = None) -> List[date]:
        self.end_date = end_date
        if end_date is None:
            self.candidate_dates = []
            self.selection.clear()
        else:
            self.candidate_dates = build_date_range(end_date, today=today)
            self.selection.restrict_to(self.candidate_dates)
        return self.candidate_dates

    def toggle(self, day: date) -> bool:
        if day not in self.candidate_dates:
            raise ValueError(f"{day.isoformat()} is not between tomorrow and {self.end_date}")
        return self.selection.toggle(day)

    @property
    def selected_dates(self) -> List[date]:
        return self.selection.all()
