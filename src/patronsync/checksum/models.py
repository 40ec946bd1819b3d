"""ORM model and gate status for the checksum table."""

from datetime import date
from enum import StrEnum

from sqlalchemy import Date, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

__all__ = ["Base", "ChecksumRecord", "ChecksumStatus"]


class Base(DeclarativeBase):
    pass


class ChecksumRecord(Base):
    """Last digest seen for one student.

    Attributes
    ----------
    student_key : str
        Namespace + client id + student id.
    digest : str
        ``sha256:`` digest of the validated record.
    date_added : date
        Date the digest was first stored or last changed.
    """

    __tablename__ = "checksums"

    student_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    digest: Mapped[str] = mapped_column(String(80), nullable=False)
    date_added: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"ChecksumRecord(student_key={self.student_key!r}, date_added={self.date_added})"


class ChecksumStatus(StrEnum):
    """Result of the checksum gate."""

    CHANGED = "changed"
    UNCHANGED = "unchanged"
