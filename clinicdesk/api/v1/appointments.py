from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from clinicdesk.api.deps import get_coordinator, get_store
from clinicdesk.core.errors import FetchError
from clinicdesk.schemas.appointment import (
    AppointmentListResponse,
    AppointmentRead,
    AppointmentSaveRequest,
    AppointmentStatus,
    DashboardCountersResponse,
    FollowUpDatesResponse,
    PhaseResultResponse,
    SaveOutcomeResponse,
)
from clinicdesk.services.edit_coordinator import (
    EditTransactionCoordinator,
    PhaseResult,
    SaveErrorKind,
    SaveOutcome,
    SaveState,
)
from clinicdesk.services.filters import ALL_STATUSES, AppointmentFilter, count_appointments
from clinicdesk.services.follow_up import FollowUpRequest, build_date_range
from clinicdesk.services.sync_store import SyncStore

router = APIRouter()

STATUS_FILTERS = {ALL_STATUSES} | {s.value for s in AppointmentStatus}

PRIMARY_FAILURE_STATUS = {
    SaveErrorKind.VALIDATION: 422,
    SaveErrorKind.PERMISSION_DENIED: 403,
    SaveErrorKind.NOT_FOUND: 404,
    SaveErrorKind.TRANSIENT: 503,
}

def phase_response(result: Optional[PhaseResult]) -> Optional[PhaseResultResponse]:
    if result is None:
        return None
    return PhaseResultResponse(
        ok=result.ok,
        error_kind=result.error_kind.value if result.error_kind else None,
        message=result.message,
    )

def construct_response(outcome: SaveOutcome) -> SaveOutcomeResponse:
    return SaveOutcomeResponse(
        state=outcome.state.value,
        primary=phase_response(outcome.primary),
        follow_up=phase_response(outcome.follow_up),
        created_count=outcome.created_count,
        appointment=outcome.appointment,
        follow_ups=outcome.follow_ups,
    )

def outcome_status_code(outcome: SaveOutcome) -> int:
    if outcome.primary_succeeded:
        return 200
    return PRIMARY_FAILURE_STATUS[outcome.primary.error_kind]

@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    search: str = "",
    on_date: Optional[date] = Query(None, alias="date"),
    status: str = ALL_STATUSES,
    store: SyncStore = Depends(get_store),
):
    if status not in STATUS_FILTERS:
        raise HTTPException(status_code=422, detail=f"Unknown status filter: {status}")
    projection = store.projection()
    visible = AppointmentFilter(search=search, on_date=on_date, status=status).apply(projection.appointments)
    return AppointmentListResponse(
        appointments=visible,
        total=len(projection.appointments),
        showing=len(visible),
        loading=projection.loading,
        error=projection.error,
    )

@router.get("/counters", response_model=DashboardCountersResponse)
async def dashboard_counters(store: SyncStore = Depends(get_store)):
    return count_appointments(store.appointments)

@router.post("/refresh", response_model=AppointmentListResponse)
async def refresh_appointments(store: SyncStore = Depends(get_store)):
    try:
        rows = await store.load_snapshot()
    except FetchError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return AppointmentListResponse(
        appointments=rows, total=len(rows), showing=len(rows), loading=False, error=None
    )

@router.get("/{appointment_id}", response_model=AppointmentRead)
async def read_appointment(appointment_id: UUID, store: SyncStore = Depends(get_store)):
    appointment = store.get(appointment_id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment

@router.get("/{appointment_id}/follow-up-dates", response_model=FollowUpDatesResponse)
async def follow_up_dates(appointment_id: UUID, end_date: date, store: SyncStore = Depends(get_store)):
    if not store.get(appointment_id):
        raise HTTPException(status_code=404, detail="Appointment not found")
    return FollowUpDatesResponse(
        appointment_id=appointment_id,
        end_date=end_date,
        dates=build_date_range(end_date),
    )

@router.patch("/{appointment_id}", response_model=SaveOutcomeResponse)
async def save_appointment(
    appointment_id: UUID,
    request: AppointmentSaveRequest,
    coordinator: EditTransactionCoordinator = Depends(get_coordinator),
):
    selected = []
    if request.follow_up is not None:
        picker = FollowUpRequest(source_appointment_id=appointment_id)
        picker.choose_end_date(request.follow_up.end_date)
        for day in sorted(set(request.follow_up.selected_dates)):
            try:
                picker.toggle(day)
            except ValueError as e:
                raise HTTPException(status_code=422, detail=str(e))
        selected = picker.selected_dates

    outcome = await coordinator.save(appointment_id, request.updates, selected)
    if outcome.state == SaveState.INVALID:
        raise HTTPException(status_code=422, detail=outcome.primary.message)
    return JSONResponse(
        status_code=outcome_status_code(outcome),
        content=jsonable_encoder(construct_response(outcome)),
    )
