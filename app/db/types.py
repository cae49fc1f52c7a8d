import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

JSONType = JSON().with_variant(JSONB(), "postgresql")


def new_record_id() -> str:
    """String ids are shared with client-side records, so keep them opaque text."""
    return uuid.uuid4().hex


def utc_now_naive() -> datetime:
    # stored columns are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)
