from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm_import.db.base import Base, TimestampMixin, UUIDMixin


class Account(Base, UUIDMixin, TimestampMixin):
    """Client account. `name` is the natural key used by imports."""

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    legal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    industry: Mapped[str] = mapped_column(String(100), nullable=False, default="Professional Services")
    industry_group: Mapped[str] = mapped_column(String(50), nullable=False, default="NEW_BUSINESS")
    billing_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_terms: Mapped[str] = mapped_column(String(50), nullable=False, default="Net 30")

    jobs: Mapped[list["Job"]] = relationship("Job", back_populates="account")
