"""Record Store and Activity Logger contracts, plus the SQLAlchemy store."""
import logging
import uuid
from typing import Any, Mapping, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_import.db.base import Base
from crm_import.models import Account, Job, User

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class RecordStore(Protocol):
    async def find_one(self, table: str, match: Mapping[str, Any]) -> Record | None:
        """First record whose fields equal every entry of `match`."""

    async def insert(self, table: str, fields: Mapping[str, Any]) -> Any:
        """Insert and return the new record's id."""

    async def update(self, table: str, record_id: Any, fields: Mapping[str, Any]) -> None:
        ...

    async def commit(self) -> None:
        """Make the current batch durable."""


class ActivityLogger(Protocol):
    async def log(self, entity_type: str, entity_id: str, action: str, details: Mapping[str, Any]) -> None:
        ...


# ─── SQLAlchemy implementation ───

DEFAULT_MODELS: dict[str, type[Base]] = {
    "accounts": Account,
    "jobs": Job,
    "users": User,
}


class SqlAlchemyRecordStore:
    """RecordStore over an AsyncSession.

    Every write runs inside a SAVEPOINT, so a row whose insert violates a
    constraint rolls back alone and the batch carries on.
    """

    def __init__(self, session: AsyncSession, models: Mapping[str, type[Base]] | None = None):
        self.session = session
        self.models = dict(models or DEFAULT_MODELS)

    def _model(self, table: str) -> type[Base]:
        try:
            return self.models[table]
        except KeyError:
            raise ValueError(f"No model registered for table '{table}'") from None

    def _columns(self, model: type[Base], fields: Mapping[str, Any]) -> dict[str, Any]:
        known = model.column_names()
        unknown = sorted(set(fields) - known)
        if unknown:
            logger.debug("Dropping unknown %s fields: %s", model.__tablename__, ", ".join(unknown))
        return {k: v for k, v in fields.items() if k in known}

    async def find_one(self, table: str, match: Mapping[str, Any]) -> Record | None:
        model = self._model(table)
        stmt = select(model).where(*(getattr(model, k) == v for k, v in match.items())).limit(1)
        result = await self.session.execute(stmt)
        obj = result.scalars().first()
        return obj.to_record() if obj is not None else None

    async def insert(self, table: str, fields: Mapping[str, Any]) -> uuid.UUID:
        model = self._model(table)
        obj = model(**self._columns(model, fields))
        async with self.session.begin_nested():
            self.session.add(obj)
            await self.session.flush()
        return obj.id

    async def update(self, table: str, record_id: Any, fields: Mapping[str, Any]) -> None:
        model = self._model(table)
        async with self.session.begin_nested():
            obj = await self.session.get(model, record_id)
            if obj is None:
                raise LookupError(f"{table} record {record_id} no longer exists")
            for key, value in self._columns(model, fields).items():
                setattr(obj, key, value)
            await self.session.flush()

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
