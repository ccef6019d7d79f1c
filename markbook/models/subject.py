"""Subject model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from markbook.core.database import Base
from markbook.models.base import ActiveFlagMixin, IDMixin, TimestampMixin


class Subject(Base, IDMixin, TimestampMixin, ActiveFlagMixin):
    """Read model of a subject, owned by subject management."""

    __tablename__ = "subjects"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Subject(id={self.id}, code={self.code})>"
