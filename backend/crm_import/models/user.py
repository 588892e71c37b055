from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from crm_import.db.base import Base, TimestampMixin, UUIDMixin


class User(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default="client_leader"
    )  # industry_leader, account_owner, client_leader, admin
    industry_groups: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
