import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timezone
from uuid import UUID, uuid4

import pytest

from clinicdesk.core.errors import RemoteStoreError
from clinicdesk.schemas.appointment import AppointmentRead
from clinicdesk.services.sync_store import SyncStore, sort_key

A1 = UUID("00000000-0000-0000-0000-0000000000a1")

def make_appointment(**overrides) -> AppointmentRead:
    data = {
        "id": uuid4(),
        "full_name": "Asha Rao",
        "mobile_number": "9876543210",
        "age": 34,
        "gender": "Female",
        "problem": "Lower back pain",
        "preferred_date": date(2025, 6, 10),
        "preferred_time": time(10, 30),
        "status": "New",
        "created_at": datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return AppointmentRead.model_validate(data)

class FakeRemote:
    """In-memory stand-in for the remote appointment store."""

    def __init__(self, rows=()):
        self.rows = {row.id: row for row in rows}
        self.fetch_error = None
        self.update_error = None
        self.insert_error = None
        self.fetch_calls = 0
        self.update_calls = []
        self.insert_calls = []

    async def fetch_all(self):
        self.fetch_calls += 1
        if self.fetch_error:
            raise self.fetch_error
        return sorted(self.rows.values(), key=sort_key)

    async def update(self, appointment_id, fields):
        self.update_calls.append((appointment_id, dict(fields)))
        if self.update_error:
            raise self.update_error
        row = self.rows.get(appointment_id)
        if row is None:
            return None
        updated = AppointmentRead.model_validate({**row.model_dump(), **fields})
        self.rows[appointment_id] = updated
        return updated

    async def insert_many(self, drafts):
        drafts = list(drafts)
        self.insert_calls.append(drafts)
        if self.insert_error:
            raise self.insert_error
        inserted = []
        for draft in drafts:
            row = AppointmentRead.model_validate({"id": uuid4(), **draft.model_dump()})
            self.rows[row.id] = row
            inserted.append(row)
        return inserted

class FakeChangeSource:
    """Change stream backed by one asyncio.Queue per subscription."""

    def __init__(self):
        self.subscriptions = []

    @asynccontextmanager
    async def subscribe_changes(self):
        queue = asyncio.Queue()
        self.subscriptions.append(queue)
        yield self._drain(queue)

    @staticmethod
    async def _drain(queue):
        while True:
            item = await queue.get()
            if isinstance(item, Exception):
                raise item
            yield item

    def push(self, raw):
        self.subscriptions[-1].put_nowait(raw)

    def disconnect(self):
        self.subscriptions[-1].put_nowait(ConnectionError("connection reset by peer"))

async def wait_for(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)

@pytest.fixture
def source_appointment():
    return make_appointment(id=A1, status="New", preferred_date=date(2025, 6, 10))

@pytest.fixture
def remote(source_appointment):
    return FakeRemote([source_appointment])

@pytest.fixture
def store(remote):
    return SyncStore(remote)

@pytest.fixture
def permission_error():
    return RemoteStoreError('new row violates row-level security policy for table "appointments"', code="42501")
