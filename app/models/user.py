# scriptgate/app/models/user.py
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import List, TYPE_CHECKING

from app.db.base import Base, utc_now

if TYPE_CHECKING:
    from .device import Device  # noqa F401


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # Username ou email, comparado exatamente como foi guardado
    identity: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    last_active: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    devices: Mapped[List["Device"]] = relationship(back_populates="owner")
