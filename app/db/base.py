# scriptgate/app/db/base.py
from datetime import datetime, timezone
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utc_now() -> datetime:
    # O banco guarda datetimes naive em UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)
