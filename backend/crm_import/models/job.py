import uuid
from datetime import date

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm_import.db.base import Base, TimestampMixin, UUIDMixin


class Job(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "jobs"
    __table_args__ = (UniqueConstraint("name", "account_id", name="uq_jobs_name_account"),)

    job_code: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True
    )
    value: Mapped[float] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    stage: Mapped[str] = mapped_column(
        String(50), nullable=False, default="backlog"
    )  # proposal_preparation, proposal_sent, final_negotiation, backlog, closed, lost
    project_status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="to_be_started"
    )  # to_be_started, ongoing, finished, closed
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    project_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    project_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    account: Mapped["Account"] = relationship("Account", back_populates="jobs")
