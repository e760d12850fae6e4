import json
from dataclasses import dataclass
from typing import Any, Mapping, Union
from uuid import UUID

from pydantic import ValidationError

from clinicdesk.core.errors import MalformedEvent
from clinicdesk.schemas.appointment import AppointmentRead


@dataclass(frozen=True)
class Created:
    appointment: AppointmentRead


@dataclass(frozen=True)
class Updated:
    appointment: AppointmentRead


@dataclass(frozen=True)
class Deleted:
    appointment_id: UUID


ChangeEvent = Union[Created, Updated, Deleted]


def normalize(raw: Union[str, bytes, Mapping[str, Any]]) -> ChangeEvent:
    """Turn a raw `{"op": ..., "row": {...}}` notification into a typed event."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise MalformedEvent(f"undecodable change payload: {e}") from e
    if not isinstance(raw, Mapping):
        raise MalformedEvent(f"change payload must be an object, got {type(raw).__name__}")

    op = raw.get("op")
    row = raw.get("row")
    if not isinstance(op, str):
        raise MalformedEvent(f"missing change tag: {op!r}")
    if not isinstance(row, Mapping):
        raise MalformedEvent(f"{op} event without a row")

    op = op.lower()
    if op == "delete":
        try:
            return Deleted(UUID(str(row["id"])))
        except (KeyError, ValueError) as e:
            raise MalformedEvent(f"delete event without a valid id: {row.get('id')!r}") from e

    if op not in ("insert", "update"):
        raise MalformedEvent(f"unknown change tag: {op!r}")
    try:
        appointment = AppointmentRead.model_validate(row)
    except ValidationError as e:
        raise MalformedEvent(f"{op} event row is not an appointment: {e.error_count()} error(s)") from e
    return Created(appointment) if op == "insert" else Updated(appointment)
