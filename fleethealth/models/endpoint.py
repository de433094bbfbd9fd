"""
Endpoint: identity record for a monitored machine.

Created on first sighting in an import. Later imports overwrite
`fullname` / `env`; `shortname` never changes and rows are never deleted,
even when the endpoint stops appearing in snapshots.
"""
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from fleethealth.db.base import Base


class Endpoint(Base):
    __tablename__ = "endpoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    shortname: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    fullname: Mapped[str | None] = mapped_column(String(500), nullable=True)
    env: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
