"""
Employee account model.
"""
import enum
from datetime import datetime
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class EmployeeAccount(Base, TimestampMixin):
    """
    Staff account linked 1:1 to an identity-provider subject.

    The primary key is the identity's subject id, so a verified identity maps to
    at most one account by exact match.
    """
    __tablename__ = "employee_accounts"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    # Reference into the employee records owned by the HR handlers
    employee_id: Mapped[str] = mapped_column(String(26), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AccountStatus.ACTIVE.value,
        server_default=AccountStatus.ACTIVE.value,
    )

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<EmployeeAccount(id={self.id}, email={self.email!r}, status={self.status})>"
