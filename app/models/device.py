# scriptgate/app/models/device.py
import enum
from sqlalchemy import String, DateTime, ForeignKey, Integer, Index, UniqueConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from app.db.base import Base, utc_now

if TYPE_CHECKING:
    from .user import User  # noqa F401


class DeviceStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    BLOCKED = "blocked"
    EXPIRED = "expired"


class Device(Base):
    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    # Chaves canônicas (ver app.core.fingerprint), nunca o valor bruto quando longo
    hwid: Mapped[str] = mapped_column(String(400), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(800), nullable=False)

    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    browser_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    os_info: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=DeviceStatus.PENDING.value, nullable=False, index=True
    )
    # Segredo por dispositivo, usado na entrega cifrada
    aes_key: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    owner: Mapped["User"] = relationship(back_populates="devices", lazy="joined")

    __table_args__ = (
        UniqueConstraint("owner_id", "hwid", "fingerprint", name="uq_devices_owner_hwid_fingerprint"),
        Index("ix_devices_owner_id", "owner_id"),
    )
