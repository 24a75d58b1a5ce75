import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Uuid


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite round-trips unchanged."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseMixin:
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_on = Column(DateTime, default=utcnow, nullable=False)
    updated_on = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
