import asyncio
from bisect import insort
from dataclasses import dataclass
from datetime import date, time
from typing import List, Optional, Tuple
from uuid import UUID

from clinicdesk.core.errors import FetchError, RemoteStoreError
from clinicdesk.core.logger import logger
from clinicdesk.schemas.appointment import AppointmentRead
from clinicdesk.services.change_events import ChangeEvent, Created, Deleted, Updated


def sort_key(appointment: AppointmentRead) -> Tuple[date, bool, time]:
    # (preferred_date, preferred_time) ascending, appointments without a time last
    preferred_time = appointment.preferred_time
    return (
        appointment.preferred_date,
        preferred_time is None,
        preferred_time or time.min,
    )


@dataclass(frozen=True)
class StoreProjection:
    appointments: Tuple[AppointmentRead, ...]
    loading: bool
    error: Optional[str]


class SyncStore:
    def __init__(self, remote):
        self._remote = remote
        self._items: List[AppointmentRead] = []
        self._snapshot_lock = asyncio.Lock()
        self.loading = False
        self.error: Optional[str] = None

    @property
    def appointments(self) -> Tuple[AppointmentRead, ...]:
        return tuple(self._items)

    def get(self, appointment_id: UUID) -> Optional[AppointmentRead]:
        index = self._index_of(appointment_id)
        return None if index is None else self._items[index]

    def projection(self) -> StoreProjection:
        return StoreProjection(self.appointments, self.loading, self.error)

    def __len__(self) -> int:
        return len(self._items)

    async def load_snapshot(self) -> List[AppointmentRead]:
        async with self._snapshot_lock:
            self.loading = True
            self.error = None
            try:
                rows = await self._remote.fetch_all()
            except RemoteStoreError as e:
                self.error = e.message or "Failed to fetch appointments"
                logger.error(f"Snapshot load failed: {self.error}")
                raise FetchError(self.error) from e
            finally:
                self.loading = False

            self._items = sorted(rows, key=sort_key)
            logger.info(f"Snapshot loaded: {len(self._items)} appointments")
            return list(self._items)

    def apply(self, event: ChangeEvent) -> None:
        if isinstance(event, Deleted):
            index = self._index_of(event.appointment_id)
            if index is not None:
                del self._items[index]
            return

        if not isinstance(event, (Created, Updated)):
            raise TypeError(f"not a change event: {event!r}")

        appointment = event.appointment
        index = self._index_of(appointment.id)
        if index is None:
            insort(self._items, appointment, key=sort_key)
            if isinstance(event, Created):
                logger.info(f"New appointment received: {appointment.id}")
            return

        if sort_key(self._items[index]) == sort_key(appointment):
            self._items[index] = appointment
        else:
            del self._items[index]
            insort(self._items, appointment, key=sort_key)

    def _index_of(self, appointment_id: UUID) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.id == appointment_id:
                return index
        return None
