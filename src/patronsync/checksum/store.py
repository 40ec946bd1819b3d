"""SQLAlchemy-backed checksum store.

One row per student key holds the digest of the last record written to
the directory. The ingest run consults it through ``check_and_update``
so rows whose content did not change since the previous run are skipped.
"""

from datetime import date, timedelta

from sqlalchemy import Engine, create_engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from patronsync.checksum.models import Base, ChecksumRecord, ChecksumStatus
from patronsync.errors import SetupError
from patronsync.utils import local_today

__all__ = ["ChecksumStore"]


def _upsert(
    session: Session, row: ChecksumRecord | None, key: str, digest: str, today: date | None
) -> None:
    added = today or local_today()
    if row is None:
        session.add(ChecksumRecord(student_key=key, digest=digest, date_added=added))
    else:
        row.digest = digest
        row.date_added = added


class ChecksumStore:
    """Key/value store of record digests.

    Parameters
    ----------
    engine : Engine
        SQLAlchemy engine bound to the checksum database.

    Notes
    -----
    Every operation commits immediately; a run interrupted midway keeps
    the digests of rows already written.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str) -> "ChecksumStore":
        """Create a store for a database URL.

        Raises
        ------
        SetupError
            If the URL cannot be turned into an engine.
        """
        try:
            engine = create_engine(url, future=True)
        except (SQLAlchemyError, ImportError, ValueError) as e:
            raise SetupError(f"Could not open checksum database {url!r}: {e}") from e
        return cls(engine)

    def _session(self) -> Session:
        return self._sessions()

    def create_schema(self) -> None:
        """Create the ``checksums`` table if it does not exist.

        Raises
        ------
        SetupError
            If the database cannot be reached.
        """
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise SetupError(f"Could not create checksum table: {e}") from e

    def get(self, key: str) -> ChecksumRecord | None:
        with self._session() as session:
            return session.get(ChecksumRecord, key)

    def put(self, key: str, digest: str, today: date | None = None) -> None:
        """Insert or replace the digest for ``key``."""
        with self._session() as session, session.begin():
            _upsert(session, session.get(ChecksumRecord, key), key, digest, today)

    def delete(self, key: str) -> bool:
        """Remove the row for ``key``.

        Returns
        -------
        bool
            True if a row was deleted.
        """
        with self._session() as session, session.begin():
            stmt = delete(ChecksumRecord).where(ChecksumRecord.student_key == key)
            result = session.execute(stmt)
            return bool(result.rowcount)

    def check_and_update(self, key: str, digest: str, today: date | None = None) -> ChecksumStatus:
        """Compare ``digest`` with the stored one and record it.

        Parameters
        ----------
        key : str
            Student key.
        digest : str
            Digest of the incoming record.
        today : date | None, optional
            Date stored with a new or changed digest.

        Returns
        -------
        ChecksumStatus
            ``UNCHANGED`` if the stored digest is equal (row untouched),
            otherwise ``CHANGED`` after inserting or updating the row.
        """
        with self._session() as session, session.begin():
            row = session.get(ChecksumRecord, key)
            if row is not None and row.digest == digest:
                return ChecksumStatus.UNCHANGED
            _upsert(session, row, key, digest, today)
            return ChecksumStatus.CHANGED

    def expire(self, max_age_days: int, today: date | None = None) -> int:
        """Delete rows older than ``max_age_days``.

        Returns
        -------
        int
            Number of rows deleted.
        """
        cutoff = (today or local_today()) - timedelta(days=max_age_days)
        with self._session() as session, session.begin():
            stmt = delete(ChecksumRecord).where(ChecksumRecord.date_added < cutoff)
            result = session.execute(stmt)
            return int(result.rowcount or 0)

    def date_counts(self) -> list[tuple[date, int]]:
        """Number of rows per ``date_added``, oldest first."""
        stmt = (
            select(ChecksumRecord.date_added, func.count())
            .group_by(ChecksumRecord.date_added)
            .order_by(ChecksumRecord.date_added)
        )
        with self._session() as session:
            return [(row[0], int(row[1])) for row in session.execute(stmt)]

    def count(self) -> int:
        with self._session() as session:
            return int(session.scalar(select(func.count()).select_from(ChecksumRecord)) or 0)

    def close(self) -> None:
        self.engine.dispose()
