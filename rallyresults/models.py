from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rallyresults.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Rally(Base):
    __tablename__ = "rallies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    entries: Mapped[list["RallyEntry"]] = relationship(
        "RallyEntry",
        back_populates="rally",
        cascade="all, delete-orphan",
        order_by="RallyEntry.row_index",
    )


class RallyEntry(Base):
    __tablename__ = "rally_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rally_id: Mapped[int] = mapped_column(ForeignKey("rallies.id"), nullable=False, index=True)
    row_index: Mapped[int] = mapped_column(Integer, nullable=False)  # position in the source export
    stage_number: Mapped[int] = mapped_column(Integer, nullable=False)
    stage_name: Mapped[str] = mapped_column(String(256), nullable=False)
    user_name: Mapped[str] = mapped_column(String(128), nullable=False)
    group_name: Mapped[str] = mapped_column(String(128), nullable=False)
    car: Mapped[str] = mapped_column(String(256), nullable=False)
    stage_time: Mapped[str] = mapped_column(String(32), nullable=False)  # exact decimal text
    super_rally: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    finished: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    comment: Mapped[str] = mapped_column(Text, default="", nullable=False)

    rally: Mapped[Rally] = relationship("Rally", back_populates="entries")

    __table_args__ = (UniqueConstraint("rally_id", "row_index", name="uq_rally_entry_row"),)
