# scriptgate/app/models/device_request.py
import enum
from sqlalchemy import String, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from app.db.base import Base, utc_now

if TYPE_CHECKING:
    from .device import Device  # noqa F401


class RequestType(str, enum.Enum):
    NEW = "new"
    REPLACE = "replace"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class DeviceApprovalRequest(Base):
    __tablename__ = "device_approval_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    device_id: Mapped[int] = mapped_column(ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    requested_identity: Mapped[str] = mapped_column(String(255), nullable=False)
    request_type: Mapped[str] = mapped_column(String(20), default=RequestType.NEW.value, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=RequestStatus.PENDING.value, nullable=False)

    processed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    device: Mapped["Device"] = relationship(lazy="joined")

    __table_args__ = (
        Index("ix_device_approval_requests_device_id", "device_id"),
        Index("ix_device_approval_requests_status", "status"),
    )
