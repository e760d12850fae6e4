from typing import Iterable, List, Optional
from uuid import UUID

from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlmodel import select

from clinicdesk.core.errors import RemoteStoreError
from clinicdesk.core.logger import logger
from clinicdesk.db.models.appointment import Appointment
from clinicdesk.schemas.appointment import AppointmentCreate, AppointmentRead

def translate_error(exc: Exception) -> RemoteStoreError:
    """Map a driver or network failure onto a RemoteStoreError with the SQLSTATE code."""
    code = None
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        message = str(exc.orig)
    else:
        message = str(exc) or exc.__class__.__name__
    return RemoteStoreError(message, code=code)

class AppointmentRepository:
    def __init__(self, session_factory, publisher=None):
        self.session_factory = session_factory
        self.publisher = publisher

    async def fetch_all(self) -> List[AppointmentRead]:
        stmt = select(Appointment).order_by(
            Appointment.preferred_date.asc(),
            Appointment.preferred_time.asc().nulls_last(),
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise translate_error(e) from e
        try:
            return [AppointmentRead.model_validate(row) for row in rows]
        except ValidationError as e:
            raise RemoteStoreError(f"Stored appointment failed validation: {e.error_count()} error(s)") from e

    async def update(self, appointment_id: UUID, fields: dict) -> Optional[AppointmentRead]:
        """Write `fields` onto one row. Returns None when the row does not exist."""
        try:
            async with self.session_factory() as session:
                row = await session.get(Appointment, appointment_id)
                if row is None:
                    return None
                for name, value in fields.items():
                    setattr(row, name, value)
                session.add(row)
                await session.commit()
                await session.refresh(row)
                updated = AppointmentRead.model_validate(row)
        except (SQLAlchemyError, OSError) as e:
            raise translate_error(e) from e
        except ValidationError as e:
            raise RemoteStoreError(f"Updated appointment {appointment_id} failed validation: {e.error_count()} error(s)") from e

        await self._publish("update", updated)
        return updated

    async def insert_many(self, drafts: Iterable[AppointmentCreate]) -> List[AppointmentRead]:
        rows = [Appointment(**draft.model_dump()) for draft in drafts]
        if not rows:
            return []
        try:
            async with self.session_factory() as session:
                session.add_all(rows)
                await session.commit()
                for row in rows:
                    await session.refresh(row)
                inserted = [AppointmentRead.model_validate(row) for row in rows]
        except (SQLAlchemyError, OSError) as e:
            raise translate_error(e) from e
        except ValidationError as e:
            raise RemoteStoreError(f"Inserted appointment failed validation: {e.error_count()} error(s)") from e

        for appointment in inserted:
            await self._publish("insert", appointment)
        return inserted

    async def _publish(self, op: str, appointment: AppointmentRead) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher.publish_change(op, appointment.model_dump(mode="json"))
        except (RedisError, OSError) as e:
            # Write is already committed
            logger.warning(f"Could not publish {op} for appointment {appointment.id}: {e}")
