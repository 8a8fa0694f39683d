"""Column defaults shared by all tables."""
import uuid
from datetime import datetime, timezone


def utcnow():
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid.uuid4())


def isoformat(value):
    return value.isoformat() if value is not None else None
