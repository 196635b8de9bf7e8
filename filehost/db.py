"""
Metadata repository for file records and account profiles.

Two implementations share the ``DbClient`` protocol: an in-memory one for
development and tests, and a SQLAlchemy one for Postgres (or SQLite).
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    func,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from filehost.errors import DatabaseError
from filehost.storage import storage_key

logger = logging.getLogger(__name__)

ROLE_STANDARD = "standard"
ROLE_SUPERADMIN = "superadmin"
ANONYMOUS_OWNER_ID = "public"


@dataclass
class FileRecord:
    owner_id: str
    name: str
    content_type: str
    size_bytes: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=lambda: time.time())
    last_edited_at: Optional[float] = None

    @property
    def storage_key(self) -> str:
        return storage_key(self.owner_id, self.name)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
            "last_edited_at": self.last_edited_at,
        }


@dataclass
class Profile:
    id: str
    role: str = ROLE_STANDARD
    storage_used: int = 0
    suspended: bool = False
    created_at: float = field(default_factory=lambda: time.time())

    @property
    def is_superadmin(self) -> bool:
        return self.role == ROLE_SUPERADMIN

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "storage_used": self.storage_used,
            "suspended": self.suspended,
            "created_at": self.created_at,
        }


class DbClient(Protocol):
    """Interface for metadata access."""

    def ensure_profile(self, owner_id: str) -> Profile:
        ...

    def get_profile(self, owner_id: str) -> Optional[Profile]:
        ...

    def list_profiles(self) -> list[Profile]:
        ...

    def set_role(self, owner_id: str, role: str) -> Optional[Profile]:
        ...

    def set_suspended(self, owner_id: str, suspended: bool) -> Optional[Profile]:
        ...

    def delete_profile(self, owner_id: str) -> bool:
        ...

    def insert_file(self, record: FileRecord) -> str:
        ...

    def replace_file(
        self, record: FileRecord
    ) -> tuple[FileRecord, Optional[FileRecord]]:
        ...

    def find_by_owner(self, owner_id: str) -> list[FileRecord]:
        ...

    def find_by_owner_and_name(
        self, owner_id: str, name: str
    ) -> Optional[FileRecord]:
        ...

    def find_by_id(self, file_id: str) -> Optional[FileRecord]:
        ...

    def list_files(self, limit: Optional[int] = None) -> list[FileRecord]:
        ...

    def delete_file(self, file_id: str) -> Optional[FileRecord]:
        ...

    def update_size(self, file_id: str, size_bytes: int) -> None:
        ...

    def update_last_edited(self, file_id: str, timestamp: float) -> None:
        ...

    def update_storage_used(self, owner_id: str, delta: int) -> int:
        ...

    def total_storage(self) -> int:
        ...


def _newest_first(records: list[FileRecord]) -> list[FileRecord]:
    return sorted(records, key=lambda r: r.created_at, reverse=True)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.files: Dict[str, FileRecord] = {}
        self.profiles: Dict[str, Profile] = {}
        # Serializes counter updates so concurrent uploads cannot lose one.
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.files.clear()
        self.profiles.clear()

    def ensure_profile(self, owner_id: str) -> Profile:
        with self._lock:
            profile = self.profiles.get(owner_id)
            if profile is None:
                profile = Profile(id=owner_id)
                self.profiles[owner_id] = profile
            return replace(profile)

    def get_profile(self, owner_id: str) -> Optional[Profile]:
        profile = self.profiles.get(owner_id)
        return replace(profile) if profile else None

    def list_profiles(self) -> list[Profile]:
        return [
            replace(p)
            for p in sorted(self.profiles.values(), key=lambda p: p.created_at)
        ]

    def set_role(self, owner_id: str, role: str) -> Optional[Profile]:
        profile = self.profiles.get(owner_id)
        if not profile:
            return None
        profile.role = role
        return replace(profile)

    def set_suspended(self, owner_id: str, suspended: bool) -> Optional[Profile]:
        profile = self.profiles.get(owner_id)
        if not profile:
            return None
        profile.suspended = suspended
        return replace(profile)

    def delete_profile(self, owner_id: str) -> bool:
        return self.profiles.pop(owner_id, None) is not None

    def insert_file(self, record: FileRecord) -> str:
        with self._lock:
            for existing in self.files.values():
                if existing.owner_id == record.owner_id and existing.name == record.name:
                    raise DatabaseError("Database operation failed")
            self.files[record.id] = replace(record)
        return record.id

    def replace_file(
        self, record: FileRecord
    ) -> tuple[FileRecord, Optional[FileRecord]]:
        previous = self.find_by_owner_and_name(record.owner_id, record.name)
        delta = record.size_bytes
        if previous:
            delta -= previous.size_bytes
            self.files.pop(previous.id, None)
        self.insert_file(record)
        self.update_storage_used(record.owner_id, delta)
        return replace(record), previous

    def find_by_owner(self, owner_id: str) -> list[FileRecord]:
        return _newest_first(
            [replace(r) for r in self.files.values() if r.owner_id == owner_id]
        )

    def find_by_owner_and_name(
        self, owner_id: str, name: str
    ) -> Optional[FileRecord]:
        for record in self.files.values():
            if record.owner_id == owner_id and record.name == name:
                return replace(record)
        return None

    def find_by_id(self, file_id: str) -> Optional[FileRecord]:
        record = self.files.get(file_id)
        return replace(record) if record else None

    def list_files(self, limit: Optional[int] = None) -> list[FileRecord]:
        records = _newest_first([replace(r) for r in self.files.values()])
        return records[:limit] if limit is not None else records

    def delete_file(self, file_id: str) -> Optional[FileRecord]:
        record = self.files.pop(file_id, None)
        return replace(record) if record else None

    def update_size(self, file_id: str, size_bytes: int) -> None:
        record = self.files.get(file_id)
        if record:
            record.size_bytes = size_bytes

    def update_last_edited(self, file_id: str, timestamp: float) -> None:
        record = self.files.get(file_id)
        if record:
            record.last_edited_at = timestamp

    def update_storage_used(self, owner_id: str, delta: int) -> int:
        with self._lock:
            profile = self.profiles.get(owner_id)
            if profile is None:
                profile = Profile(id=owner_id)
                self.profiles[owner_id] = profile
            profile.storage_used += delta
            return profile.storage_used

    def total_storage(self) -> int:
        return sum(r.size_bytes for r in self.files.values())


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("Database operation failed")
            raise DatabaseError("Database operation failed") from exc

    @staticmethod
    def _to_file_record(row: "FileRow") -> FileRecord:
        return FileRecord(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            content_type=row.content_type,
            size_bytes=row.size_bytes,
            created_at=row.created_at,
            last_edited_at=row.last_edited_at,
        )

    @staticmethod
    def _to_profile(row: "ProfileRow") -> Profile:
        return Profile(
            id=row.id,
            role=row.role,
            storage_used=row.storage_used,
            suspended=row.suspended,
            created_at=row.created_at,
        )

    @staticmethod
    def _get_or_create_profile(session: Session, owner_id: str) -> "ProfileRow":
        row = session.get(ProfileRow, owner_id)
        if row is None:
            row = ProfileRow(
                id=owner_id,
                role=ROLE_STANDARD,
                storage_used=0,
                suspended=False,
                created_at=time.time(),
            )
            session.add(row)
            session.flush()
        return row

    def ensure_profile(self, owner_id: str) -> Profile:
        with self._session() as session:
            row = self._get_or_create_profile(session, owner_id)
            session.commit()
            return self._to_profile(row)

    def get_profile(self, owner_id: str) -> Optional[Profile]:
        with self._session() as session:
            row = session.get(ProfileRow, owner_id)
            return self._to_profile(row) if row else None

    def list_profiles(self) -> list[Profile]:
        with self._session() as session:
            rows = session.execute(
                select(ProfileRow).order_by(ProfileRow.created_at.asc())
            ).scalars()
            return [self._to_profile(row) for row in rows]

    def set_role(self, owner_id: str, role: str) -> Optional[Profile]:
        with self._session() as session:
            row = session.get(ProfileRow, owner_id)
            if not row:
                return None
            row.role = role
            session.commit()
            return self._to_profile(row)

    def set_suspended(self, owner_id: str, suspended: bool) -> Optional[Profile]:
        with self._session() as session:
            row = session.get(ProfileRow, owner_id)
            if not row:
                return None
            row.suspended = suspended
            session.commit()
            return self._to_profile(row)

    def delete_profile(self, owner_id: str) -> bool:
        with self._session() as session:
            row = session.get(ProfileRow, owner_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def insert_file(self, record: FileRecord) -> str:
        with self._session() as session:
            session.add(self._to_row(record))
            session.commit()
            return record.id

    def replace_file(
        self, record: FileRecord
    ) -> tuple[FileRecord, Optional[FileRecord]]:
        with self._session() as session:
            existing = session.execute(
                select(FileRow)
                .where(FileRow.owner_id == record.owner_id, FileRow.name == record.name)
                .limit(1)
            ).scalar_one_or_none()
            previous = self._to_file_record(existing) if existing else None
            delta = record.size_bytes
            if existing:
                delta -= existing.size_bytes
                session.delete(existing)
                session.flush()
            session.add(self._to_row(record))
            self._get_or_create_profile(session, record.owner_id)
            session.execute(
                update(ProfileRow)
                .where(ProfileRow.id == record.owner_id)
                .values(storage_used=ProfileRow.storage_used + delta)
            )
            session.commit()
            return record, previous

    def find_by_owner(self, owner_id: str) -> list[FileRecord]:
        with self._session() as session:
            rows = session.execute(
                select(FileRow)
                .where(FileRow.owner_id == owner_id)
                .order_by(FileRow.created_at.desc())
            ).scalars()
            return [self._to_file_record(row) for row in rows]

    def find_by_owner_and_name(
        self, owner_id: str, name: str
    ) -> Optional[FileRecord]:
        with self._session() as session:
            row = session.execute(
                select(FileRow)
                .where(FileRow.owner_id == owner_id, FileRow.name == name)
                .limit(1)
            ).scalar_one_or_none()
            return self._to_file_record(row) if row else None

    def find_by_id(self, file_id: str) -> Optional[FileRecord]:
        with self._session() as session:
            row = session.get(FileRow, file_id)
            return self._to_file_record(row) if row else None

    def list_files(self, limit: Optional[int] = None) -> list[FileRecord]:
        with self._session() as session:
            stmt = select(FileRow).order_by(FileRow.created_at.desc())
            if limit is not None:
                stmt = stmt.limit(limit)
            return [self._to_file_record(row) for row in session.execute(stmt).scalars()]

    def delete_file(self, file_id: str) -> Optional[FileRecord]:
        with self._session() as session:
            row = session.get(FileRow, file_id)
            if not row:
                return None
            record = self._to_file_record(row)
            session.delete(row)
            session.commit()
            return record

    def update_size(self, file_id: str, size_bytes: int) -> None:
        with self._session() as session:
            row = session.get(FileRow, file_id)
            if not row:
                return
            row.size_bytes = size_bytes
            session.commit()

    def update_last_edited(self, file_id: str, timestamp: float) -> None:
        with self._session() as session:
            row = session.get(FileRow, file_id)
            if not row:
                return
            row.last_edited_at = timestamp
            session.commit()

    def update_storage_used(self, owner_id: str, delta: int) -> int:
        with self._session() as session:
            self._get_or_create_profile(session, owner_id)
            # Single UPDATE so concurrent writers add rather than overwrite.
            session.execute(
                update(ProfileRow)
                .where(ProfileRow.id == owner_id)
                .values(storage_used=ProfileRow.storage_used + delta)
            )
            session.commit()
            return session.execute(
                select(ProfileRow.storage_used).where(ProfileRow.id == owner_id)
            ).scalar_one()

    def total_storage(self) -> int:
        with self._session() as session:
            total = session.execute(select(func.sum(FileRow.size_bytes))).scalar()
            return int(total or 0)

    @staticmethod
    def _to_row(record: FileRecord) -> "FileRow":
        return FileRow(
            id=record.id,
            owner_id=record.owner_id,
            name=record.name,
            content_type=record.content_type,
            size_bytes=record.size_bytes,
            created_at=record.created_at,
            last_edited_at=record.last_edited_at,
        )


Base = declarative_base()


class FileRow(Base):
    __tablename__ = "files"
    __table_args__ = (UniqueConstraint("owner_id", "name", name="uq_files_owner_name"),)

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    content_type = Column(String, nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)
    created_at = Column(Float, nullable=False, index=True)
    last_edited_at = Column(Float, nullable=True)


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    role = Column(String, nullable=False, default=ROLE_STANDARD)
    storage_used = Column(Integer, nullable=False, default=0)
    suspended = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False)
