"""Collision-resistant, date-partitioned storage keys."""

import re
import uuid
from datetime import datetime, timezone
from typing import Optional

ORIGINALS_CATEGORY = "originals"

_SEGMENT = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def generate_key(category: str, ext: str, now: Optional[datetime] = None) -> str:
    """Build a fresh storage key.

    Keys look like ``{category}/{YYYY}/{MM}/{DD}/{uuid4 hex}.{ext}``. The
    random component makes keys unique, so they are never reused.

    Args:
        category: Top-level grouping such as ``originals`` or a rendition name.
        ext: File extension without the dot.
        now: Timestamp for the date partition. Defaults to the current UTC time.
    """
    category = category.lower()
    ext = ext.lower().lstrip(".")
    if not _SEGMENT.match(category):
        raise ValueError(f"Invalid key category: {category!r}")
    if not _SEGMENT.match(ext):
        raise ValueError(f"Invalid key extension: {ext!r}")

    now = now or datetime.now(timezone.utc)
    return f"{category}/{now:%Y/%m/%d}/{uuid.uuid4().hex}.{ext}"
