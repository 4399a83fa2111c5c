# scriptgate/app/models/script_version.py
from sqlalchemy import String, DateTime, Boolean, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional

from app.db.base import Base, utc_now


class ScriptVersion(Base):
    __tablename__ = "script_versions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # Deveria ser único, mas não é imposto
    version: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    # SHA-256 do payload em texto plano
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    update_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    __table_args__ = (Index("ix_script_versions_is_active", "is_active"),)
