"""Catalog row model and the in-flight record schema."""

import os
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from sqlalchemy import BigInteger, DateTime, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from filedex.db.session import Base


class FsPath(TypeDecorator):
    """Path stored as its raw OS bytes.

    Names that are not valid UTF-8 come back from os.scandir with surrogate
    escapes, which SQLite refuses to bind as text. os.fsencode/os.fsdecode
    round-trip them exactly.
    """

    impl = LargeBinary
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return os.fsencode(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return os.fsdecode(value)


class FileEntry(Base):
    """One catalogued file. (hostname, filename) is the key: a path seen again updates in place."""

    __tablename__ = "files"

    hostname: Mapped[str] = mapped_column(String(255), primary_key=True)
    filename: Mapped[str] = mapped_column(FsPath(4096), primary_key=True)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # naive UTC
    modtimestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    primary_digest: Mapped[str] = mapped_column(String(16), nullable=False, default="")  # xxh64 hex
    secondary_digest: Mapped[str] = mapped_column(
        String(64), nullable=False, default="", index=True
    )  # BLAKE3 hex


class FileRecord(BaseModel):
    """Completed observation of one file, passed from hasher to reconciler."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    path: str
    size: int
    mod_time: datetime
    primary_digest: str
    secondary_digest: str

    def to_entry(self) -> FileEntry:
        return FileEntry(
            hostname=self.hostname,
            filename=self.path,
            size=self.size,
            modtimestamp=self.mod_time,
            primary_digest=self.primary_digest,
            secondary_digest=self.secondary_digest,
        )
