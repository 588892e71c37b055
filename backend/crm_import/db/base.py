import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, inspect, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):

    def to_record(self) -> dict[str, Any]:
        """Column values as a plain dict (the shape the import engine sees)."""
        return {attr.key: getattr(self, attr.key) for attr in inspect(self).mapper.column_attrs}

    @classmethod
    def column_names(cls) -> frozenset[str]:
        return frozenset(attr.key for attr in inspect(cls).column_attrs)


class UUIDMixin:
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("now()"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
