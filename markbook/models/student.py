"""Student model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from markbook.core.database import Base
from markbook.models.base import ActiveFlagMixin, IDMixin, TimestampMixin


class Student(Base, IDMixin, TimestampMixin, ActiveFlagMixin):
    """Read model of a student account, owned by user management."""

    __tablename__ = "students"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    roll_number: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, name={self.name}, roll={self.roll_number})>"
