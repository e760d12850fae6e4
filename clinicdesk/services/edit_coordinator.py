from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Mapping, Optional
from uuid import UUID

from pydantic import ValidationError

from clinicdesk.core.errors import RemoteStoreError
from clinicdesk.core.logger import logger
from clinicdesk.schemas.appointment import (
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatus,
    AppointmentType,
    AppointmentUpdate,
)
from clinicdesk.services.change_events import Created, Updated

PERMISSION_DENIED_CODE = "42501"

class SaveState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    INVALID = "invalid"
    PRIMARY_UPDATING = "primary_updating"
    PRIMARY_FAILED = "primary_failed"
    DONE = "done"
    FOLLOW_UP_CREATING = "follow_up_creating"
    FOLLOW_UP_FAILED = "follow_up_failed"
    FOLLOW_UP_SUCCEEDED = "follow_up_succeeded"

class SaveErrorKind(str, Enum):
    VALIDATION = "validation"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"

@dataclass(frozen=True)
class PhaseResult:
    ok: bool
    error_kind: Optional[SaveErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, message: Optional[str] = None) -> "PhaseResult":
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, kind: SaveErrorKind, message: str) -> "PhaseResult":
        return cls(ok=False, error_kind=kind, message=message)

@dataclass
class SaveOutcome:
    state: SaveState = SaveState.IDLE
    primary: Optional[PhaseResult] = None
    follow_up: Optional[PhaseResult] = None
    created_count: int = 0
    appointment: Optional[AppointmentRead] = None
    follow_ups: List[AppointmentRead] = field(default_factory=list)

    @property
    def primary_succeeded(self) -> bool:
        return self.primary is not None and self.primary.ok

def classify_remote_error(error: RemoteStoreError) -> SaveErrorKind:
    message = (error.message or "").lower()
    if error.code == PERMISSION_DENIED_CODE or "policy" in message or "permission denied" in message:
        return SaveErrorKind.PERMISSION_DENIED
    return SaveErrorKind.TRANSIENT

def derive_follow_ups(
    source: AppointmentRead,
    dates: Iterable[date],
    assigned_to: Optional[str] = None,
    origin_date: Optional[date] = None,
) -> List[AppointmentCreate]:
    """One confirmed follow-up appointment per date, copied from `source`."""
    note = f"Follow-up appointment created from {(origin_date or source.preferred_date).isoformat()}"
    return [
        AppointmentCreate(
            full_name=source.full_name,
            mobile_number=source.mobile_number,
            problem=source.problem,
            preferred_date=day,
            preferred_time=source.preferred_time,
            age=source.age,
            gender=source.gender,
            status=AppointmentStatus.CONFIRMED,
            appointment_type=AppointmentType.FOLLOW_UP,
            assigned_to=assigned_to,
            admin_note=note,
        )
        for day in sorted(set(dates))
    ]

class EditTransactionCoordinator:
    def __init__(self, store, remote, clock: Callable[[], datetime] = None):
        self.store = store
        self.remote = remote
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def save(
        self,
        appointment_id: UUID,
        field_updates: Mapping,
        follow_up_selection: Iterable[date] = (),
    ) -> SaveOutcome:
        outcome = SaveOutcome()
        selected = sorted(set(follow_up_selection))

        # 1. Validate before anything touches the network
        outcome.state = SaveState.VALIDATING
        try:
            updates = AppointmentUpdate.model_validate(dict(field_updates))
        except ValidationError as e:
            outcome.state = SaveState.INVALID
            outcome.primary = PhaseResult.failure(SaveErrorKind.VALIDATION, _describe(e))
            logger.warning(f"Rejected edit for appointment {appointment_id}: {outcome.primary.message}")
            return outcome

        before = self.store.get(appointment_id)
        changes = updates.changes()
        changes["updated_at"] = self.clock()

        # 2. Primary update
        outcome.state = SaveState.PRIMARY_UPDATING
        try:
            confirmed = await self.remote.update(appointment_id, changes)
        except RemoteStoreError as e:
            kind = classify_remote_error(e)
            return self._primary_failed(outcome, appointment_id, kind, e.message)
        if confirmed is None:
            return self._primary_failed(
                outcome, appointment_id, SaveErrorKind.NOT_FOUND, "Appointment not found or update failed"
            )

        self.store.apply(Updated(confirmed))
        outcome.appointment = confirmed
        outcome.primary = PhaseResult.success("Appointment updated successfully")
        logger.info(f"Appointment {appointment_id} updated")

        if not selected:
            outcome.state = SaveState.DONE
            return outcome

        # 3. Follow-up batch, derived from the confirmed row
        outcome.state = SaveState.FOLLOW_UP_CREATING
        original = before or confirmed
        assigned_to = changes.get("assigned_to") or original.assigned_to
        drafts = derive_follow_ups(
            confirmed, selected, assigned_to=assigned_to, origin_date=original.preferred_date
        )
        try:
            created = await self.remote.insert_many(drafts)
        except RemoteStoreError as e:
            outcome.state = SaveState.FOLLOW_UP_FAILED
            outcome.follow_up = PhaseResult.failure(
                classify_remote_error(e),
                f"Appointment was updated, but {len(drafts)} follow-up appointment(s) failed to create: {e.message}",
            )
            logger.error(f"Follow-up creation failed for appointment {appointment_id}: {e.message}")
            return outcome

        for appointment in created:
            self.store.apply(Created(appointment))
        outcome.follow_ups = list(created)
        outcome.created_count = len(created)
        outcome.follow_up = PhaseResult.success(
            f"Updated appointment and created {len(created)} follow-up appointment(s)"
        )
        outcome.state = SaveState.FOLLOW_UP_SUCCEEDED
        logger.info(f"Created {len(created)} follow-up appointment(s) from {appointment_id}")
        return outcome

    def _primary_failed(self, outcome, appointment_id, kind, message) -> SaveOutcome:
        if kind == SaveErrorKind.PERMISSION_DENIED:
            message = f"Permission denied. {message}"
        outcome.state = SaveState.PRIMARY_FAILED
        outcome.primary = PhaseResult.failure(kind, message)
        logger.error(f"Update failed for appointment {appointment_id} ({kind.value}): {message}")
        return outcome

def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "updates"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
