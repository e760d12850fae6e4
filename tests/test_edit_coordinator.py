from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from clinicdesk.core.errors import RemoteStoreError
from clinicdesk.schemas.appointment import AppointmentStatus, AppointmentType
from clinicdesk.services.edit_coordinator import (
    EditTransactionCoordinator,
    SaveErrorKind,
    SaveState,
    classify_remote_error,
    derive_follow_ups,
)
from clinicdesk.services.sync_store import SyncStore

from conftest import A1, make_appointment

NOW = datetime(2025, 6, 9, 12, 0, tzinfo=timezone.utc)
FOLLOW_UP_DATES = [date(2025, 6, 17), date(2025, 6, 24)]

@pytest.fixture
def coordinator(store, remote):
    return EditTransactionCoordinator(store, remote, clock=lambda: NOW)

@pytest.mark.asyncio
async def test_confirm_and_create_two_follow_ups(store, remote, coordinator):
    await store.load_snapshot()

    outcome = await coordinator.save(A1, {"status": "Confirmed"}, FOLLOW_UP_DATES)

    assert outcome.state == SaveState.FOLLOW_UP_SUCCEEDED
    assert outcome.primary.ok
    assert outcome.follow_up.ok
    assert outcome.created_count == 2
    assert store.get(A1).status == AppointmentStatus.CONFIRMED

    follow_ups = [a for a in store.appointments if a.id != A1]
    assert [a.preferred_date for a in follow_ups] == FOLLOW_UP_DATES
    for appointment in follow_ups:
        assert appointment.appointment_type == AppointmentType.FOLLOW_UP
        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.full_name == "Asha Rao"
        assert appointment.admin_note == "Follow-up appointment created from 2025-06-10"

@pytest.mark.asyncio
async def test_update_is_stamped_and_store_uses_confirmed_row(store, remote, coordinator):
    await store.load_snapshot()

    outcome = await coordinator.save(A1, {"admin_note": "Called twice"})

    ((appointment_id, fields),) = remote.update_calls
    assert appointment_id == A1
    assert fields == {"admin_note": "Called twice", "updated_at": NOW}
    assert outcome.state == SaveState.DONE
    assert outcome.follow_up is None
    assert outcome.created_count == 0
    assert store.get(A1) == remote.rows[A1]
    assert store.get(A1).updated_at == NOW
    assert remote.insert_calls == []

@pytest.mark.asyncio
async def test_permission_denied_blocks_follow_ups(store, remote, coordinator, permission_error):
    await store.load_snapshot()
    before = store.appointments
    remote.update_error = permission_error

    outcome = await coordinator.save(A1, {"status": "Confirmed"}, FOLLOW_UP_DATES)

    assert outcome.state == SaveState.PRIMARY_FAILED
    assert outcome.primary.error_kind == SaveErrorKind.PERMISSION_DENIED
    assert outcome.primary.message.startswith("Permission denied.")
    assert outcome.follow_up is None
    assert remote.insert_calls == []
    assert store.appointments == before

@pytest.mark.asyncio
async def test_vanished_row_is_not_found(store, remote, coordinator):
    await store.load_snapshot()
    del remote.rows[A1]

    outcome = await coordinator.save(A1, {"status": "Cancelled"}, FOLLOW_UP_DATES)

    assert outcome.state == SaveState.PRIMARY_FAILED
    assert outcome.primary.error_kind == SaveErrorKind.NOT_FOUND
    assert outcome.follow_up is None
    assert store.get(A1).status == AppointmentStatus.NEW

@pytest.mark.asyncio
async def test_network_failure_is_transient(store, remote, coordinator):
    remote.update_error = RemoteStoreError("connection was closed in the middle of operation")

    outcome = await coordinator.save(A1, {"status": "Confirmed"})

    assert outcome.primary.error_kind == SaveErrorKind.TRANSIENT
    assert outcome.follow_up is None

@pytest.mark.asyncio
async def test_follow_up_failure_is_reported_separately(store, remote, coordinator):
    await store.load_snapshot()
    remote.insert_error = RemoteStoreError("deadlock detected", code="40P01")

    outcome = await coordinator.save(A1, {"status": "Confirmed"}, FOLLOW_UP_DATES)

    assert outcome.state == SaveState.FOLLOW_UP_FAILED
    assert outcome.primary.ok
    assert not outcome.follow_up.ok
    assert outcome.follow_up.error_kind == SaveErrorKind.TRANSIENT
    assert "2 follow-up" in outcome.follow_up.message
    assert outcome.created_count == 0
    assert store.get(A1).status == AppointmentStatus.CONFIRMED
    assert len(store) == 1

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "updates",
    [
        {"status": "Rescheduled"},
        {"patient_response": "Maybe"},
        {"appointment_type": "Walk-in"},
        {"full_name": "Someone Else"},
        {"admin_note": "bell\x07"},
        {"preferred_date": None},
    ],
)
async def test_invalid_updates_never_reach_the_network(store, remote, coordinator, updates):
    await store.load_snapshot()
    before = store.appointments

    outcome = await coordinator.save(A1, updates, FOLLOW_UP_DATES)

    assert outcome.state == SaveState.INVALID
    assert outcome.primary.error_kind == SaveErrorKind.VALIDATION
    assert outcome.follow_up is None
    assert remote.update_calls == []
    assert store.appointments == before

@pytest.mark.asyncio
async def test_clearing_fields(store, remote, coordinator):
    await store.load_snapshot()

    await coordinator.save(
        A1,
        {"patient_response": "none", "appointment_type": None, "admin_note": "", "assessment_images": []},
    )

    fields = remote.update_calls[0][1]
    assert fields["patient_response"] is None
    assert fields["appointment_type"] is None
    assert fields["admin_note"] is None
    assert fields["assessment_images"] is None

@pytest.mark.asyncio
async def test_multiline_note_is_accepted(store, remote, coordinator):
    outcome = await coordinator.save(A1, {"admin_note": "line one\nline two\ttabbed"})
    assert outcome.primary.ok

@pytest.mark.asyncio
async def test_follow_ups_use_form_assignee(store, remote, coordinator):
    await store.load_snapshot()

    outcome = await coordinator.save(A1, {"assigned_to": "Dr. Iyer"}, FOLLOW_UP_DATES[:1])

    assert outcome.follow_ups[0].assigned_to == "Dr. Iyer"

@pytest.mark.asyncio
async def test_follow_ups_fall_back_to_existing_assignee(coordinator, remote, store):
    remote.rows[A1] = remote.rows[A1].model_copy(update={"assigned_to": "Dr. Khan"})
    await store.load_snapshot()

    outcome = await coordinator.save(A1, {"assigned_to": ""}, FOLLOW_UP_DATES[:1])

    assert store.get(A1).assigned_to is None
    assert outcome.follow_ups[0].assigned_to == "Dr. Khan"

@pytest.mark.asyncio
async def test_follow_up_note_names_date_before_reschedule(store, remote, coordinator):
    await store.load_snapshot()

    outcome = await coordinator.save(A1, {"preferred_date": "2025-06-12"}, FOLLOW_UP_DATES[:1])

    assert store.get(A1).preferred_date == date(2025, 6, 12)
    assert outcome.follow_ups[0].admin_note == "Follow-up appointment created from 2025-06-10"

@pytest.mark.asyncio
async def test_duplicate_selected_dates_create_one_each(store, remote, coordinator):
    await store.load_snapshot()

    outcome = await coordinator.save(A1, {}, [FOLLOW_UP_DATES[1], FOLLOW_UP_DATES[0], FOLLOW_UP_DATES[1]])

    assert outcome.created_count == 2
    assert [d.preferred_date for d in remote.insert_calls[0]] == FOLLOW_UP_DATES

def test_follow_ups_copy_patient_fields():
    source = make_appointment(preferred_date=date(2025, 6, 10), age=61, gender="Male", problem="Knee pain")

    (draft,) = derive_follow_ups(source, [date(2025, 6, 12)], assigned_to="Dr. Rao")

    assert draft.full_name == source.full_name
    assert draft.mobile_number == source.mobile_number
    assert draft.problem == "Knee pain"
    assert draft.preferred_time == source.preferred_time
    assert draft.age == 61
    assert draft.gender == "Male"
    assert draft.status == "Confirmed"
    assert draft.appointment_type == "Follow-up"
    assert draft.assigned_to == "Dr. Rao"

@pytest.mark.parametrize(
    "error, kind",
    [
        (RemoteStoreError("denied", code="42501"), SaveErrorKind.PERMISSION_DENIED),
        (RemoteStoreError("violates row-level security policy"), SaveErrorKind.PERMISSION_DENIED),
        (RemoteStoreError("permission denied for table appointments"), SaveErrorKind.PERMISSION_DENIED),
        (RemoteStoreError("timeout", code=None), SaveErrorKind.TRANSIENT),
        (RemoteStoreError("unique violation", code="23505"), SaveErrorKind.TRANSIENT),
    ],
)
def test_classify_remote_error(error, kind):
    assert classify_remote_error(error) == kind

@pytest.mark.asyncio
async def test_save_for_row_missing_locally_still_updates(remote):
    other = make_appointment(id=uuid4())
    remote.rows[other.id] = other
    store = SyncStore(remote)
    coordinator = EditTransactionCoordinator(store, remote, clock=lambda: NOW)

    outcome = await coordinator.save(other.id, {"status": "Completed"})

    assert outcome.primary.ok
    assert store.get(other.id).status == AppointmentStatus.COMPLETED
