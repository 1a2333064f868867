"""ID helpers."""

from __future__ import annotations

import uuid

_POINT_NAMESPACE = uuid.UUID("6f1c2f4e-3b7a-5d2c-9a0e-2c1d4b8e7f10")


def point_id(content_hash: str) -> str:
    """Stable vector point id for a content hash; re-ingesting the same text overwrites in place."""
    return str(uuid.uuid5(_POINT_NAMESPACE, content_hash))


__all__ = ["point_id"]
